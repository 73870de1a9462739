from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import AcademicCourseYearCreate, AcademicCourseYearResponse
from . import service

router = APIRouter(prefix="/api/v1/academic-course-years", tags=["academic-course-years"])


@router.post("", response_model=AcademicCourseYearResponse, status_code=status.HTTP_201_CREATED)
async def create_academic_course_year(
    payload: AcademicCourseYearCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.create_academic_course_year(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[AcademicCourseYearResponse])
async def list_academic_course_years(db: AsyncSession = Depends(get_db)):
    """Academic course years in year_order (First Year first)."""
    return await service.list_academic_course_years(db)
