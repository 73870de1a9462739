from typing import List, Optional

from fastapi import status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.core.models import AcademicCourseYear, Course

from .schemas import AcademicCourseYearCreate, AcademicCourseYearResponse, CourseCreate, CourseResponse


def _to_course_response(c: Course) -> CourseResponse:
    return CourseResponse(
        course_id=c.course_id,
        course_name=c.course_name,
        course_code=c.course_code,
        duration_years=c.duration_years,
        created_at=c.created_at,
    )


def _to_year_response(y: AcademicCourseYear) -> AcademicCourseYearResponse:
    return AcademicCourseYearResponse(
        academic_course_year_id=y.academic_course_year_id,
        academic_course_year_name=y.academic_course_year_name,
        year_order=y.year_order,
        created_at=y.created_at,
    )


async def create_course(db: AsyncSession, payload: CourseCreate) -> CourseResponse:
    name = payload.course_name.strip()
    code = payload.course_code.strip().upper()
    existing = await db.execute(
        select(Course).where(or_(Course.course_name == name, Course.course_code == code))
    )
    if existing.scalars().first():
        raise ServiceError(f"Course '{name}' or code '{code}' already exists", status.HTTP_409_CONFLICT)
    try:
        obj = Course(course_name=name, course_code=code, duration_years=payload.duration_years)
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
        return _to_course_response(obj)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(f"Course '{name}' or code '{code}' already exists", status.HTTP_409_CONFLICT)


async def list_courses(db: AsyncSession) -> List[CourseResponse]:
    result = await db.execute(select(Course).order_by(Course.course_name))
    return [_to_course_response(c) for c in result.scalars().all()]


async def get_course(db: AsyncSession, course_id: int) -> Optional[Course]:
    result = await db.execute(select(Course).where(Course.course_id == course_id))
    return result.scalar_one_or_none()


async def create_academic_course_year(
    db: AsyncSession,
    payload: AcademicCourseYearCreate,
) -> AcademicCourseYearResponse:
    name = payload.academic_course_year_name.strip()
    existing = await db.execute(
        select(AcademicCourseYear).where(AcademicCourseYear.academic_course_year_name == name)
    )
    if existing.scalar_one_or_none():
        raise ServiceError(f"Academic course year '{name}' already exists", status.HTTP_409_CONFLICT)
    try:
        obj = AcademicCourseYear(academic_course_year_name=name, year_order=payload.year_order)
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
        return _to_year_response(obj)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(f"Academic course year '{name}' already exists", status.HTTP_409_CONFLICT)


async def list_academic_course_years(db: AsyncSession) -> List[AcademicCourseYearResponse]:
    result = await db.execute(
        select(AcademicCourseYear).order_by(AcademicCourseYear.year_order, AcademicCourseYear.academic_course_year_id)
    )
    return [_to_year_response(y) for y in result.scalars().all()]


async def get_academic_course_year(db: AsyncSession, academic_course_year_id: int) -> Optional[AcademicCourseYear]:
    result = await db.execute(
        select(AcademicCourseYear).where(AcademicCourseYear.academic_course_year_id == academic_course_year_id)
    )
    return result.scalar_one_or_none()
