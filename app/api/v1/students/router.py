from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import DuplicateCheckResponse, StudentCreate, StudentResponse, StudentUpdate
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[StudentResponse])
async def list_students(
    course_id: Optional[int] = Query(None, gt=0),
    academic_course_year_id: Optional[int] = Query(None, gt=0),
    student_status: Optional[str] = Query(None, description="ACTIVE or INACTIVE"),
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    return await service.list_students(
        db,
        course_id=course_id,
        academic_course_year_id=academic_course_year_id,
        student_status=student_status,
    )


@router.get("/check-duplicate", response_model=DuplicateCheckResponse)
async def check_duplicate(
    mobile_no: Optional[str] = Query(None),
    email_id: Optional[str] = Query(None),
    username: Optional[str] = Query(None, description="Exclude this student (when editing)"),
    db: AsyncSession = Depends(get_db),
) -> DuplicateCheckResponse:
    """409 when another student already has the mobile number or email ID."""
    try:
        is_duplicate, message = await service.check_duplicate(db, mobile_no, email_id, exclude_username=username)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if is_duplicate:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)
    return DuplicateCheckResponse(message=message)


@router.get(
    "/by-course-and-year/{course_id}/{academic_course_year_id}",
    response_model=List[StudentResponse],
)
async def list_students_by_course_and_year(
    course_id: int,
    academic_course_year_id: int,
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    """Candidates for promotion: students currently in this course and year."""
    try:
        return await service.list_students_by_course_and_year(db, course_id, academic_course_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{username}", response_model=StudentResponse)
async def get_student(
    username: str,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    obj = await service.get_student(db, username)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return obj


@router.put("/{username}", response_model=StudentResponse)
async def update_student(
    username: str,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        obj = await service.update_student(db, username, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return obj


@router.delete("/{username}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(
    username: str,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        deleted = await service.delete_student(db, username)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
