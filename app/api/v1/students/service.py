from datetime import date
from typing import List, Optional, Tuple

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ServiceError
from app.core.logging_config import get_logger
from app.core.models import AcademicCourseYear, Course, Student, StudentPromotion
from app.api.v1.courses import service as course_service

from .schemas import StudentCreate, StudentResponse, StudentUpdate

logger = get_logger("students")


def _to_response(
    s: Student,
    course_name: Optional[str] = None,
    academic_course_year_name: Optional[str] = None,
) -> StudentResponse:
    return StudentResponse(
        student_id=s.student_id,
        username=s.username,
        full_name=s.full_name,
        father_name=s.father_name,
        gender=s.gender,
        date_of_birth=s.date_of_birth,
        mobile_no=s.mobile_no,
        email_id=s.email_id,
        address=s.address,
        course_id=s.course_id,
        course_name=course_name,
        academic_course_year_id=s.academic_course_year_id,
        academic_course_year_name=academic_course_year_name,
        enrollment_year=s.enrollment_year,
        student_status=s.student_status,
        version=s.version,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _student_with_names():
    """Student rows joined with their course and current year names."""
    return (
        select(Student, Course.course_name, AcademicCourseYear.academic_course_year_name)
        .outerjoin(Course, Student.course_id == Course.course_id)
        .outerjoin(AcademicCourseYear, Student.academic_course_year_id == AcademicCourseYear.academic_course_year_id)
    )


async def find_duplicate_field(
    db: AsyncSession,
    mobile_no: Optional[str],
    email_id: Optional[str],
    exclude_username: Optional[str] = None,
) -> Optional[str]:
    """
    Return "mobile_no" or "email_id" when another student already uses that value.
    Mobile is checked first, so a request clashing on both always reports the mobile number.
    """
    for field, column, value in (
        ("mobile_no", Student.mobile_no, mobile_no),
        ("email_id", Student.email_id, email_id),
    ):
        if not value:
            continue
        stmt = select(Student.student_id).where(column == value)
        if exclude_username:
            stmt = stmt.where(Student.username != exclude_username)
        result = await db.execute(stmt.limit(1))
        if result.first() is not None:
            return field
    return None


def _duplicate_message(field: str) -> str:
    return f"{'Mobile Number' if field == 'mobile_no' else 'Email ID'} already exists!"


async def get_student_by_username(db: AsyncSession, username: str) -> Optional[Student]:
    # populate_existing: the promotion engine needs the stored version, not the identity map's copy.
    result = await db.execute(
        select(Student).where(Student.username == username).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_student(db: AsyncSession, username: str) -> Optional[StudentResponse]:
    result = await db.execute(_student_with_names().where(Student.username == username))
    row = result.first()
    if row is None:
        return None
    return _to_response(*row)


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    if not await course_service.get_course(db, payload.course_id):
        raise ServiceError("Invalid course", status.HTTP_400_BAD_REQUEST)
    if not await course_service.get_academic_course_year(db, payload.academic_course_year_id):
        raise ServiceError("Invalid Academic Course Year ID", status.HTTP_400_BAD_REQUEST)

    username = payload.username.strip()
    if await get_student_by_username(db, username):
        raise ServiceError(f"Username '{username}' already exists", status.HTTP_409_CONFLICT)
    email_id = str(payload.email_id) if payload.email_id else None
    duplicate = await find_duplicate_field(db, payload.mobile_no, email_id)
    if duplicate:
        raise ServiceError(_duplicate_message(duplicate), status.HTTP_409_CONFLICT)

    try:
        obj = Student(
            username=username,
            full_name=payload.full_name.strip(),
            father_name=payload.father_name,
            gender=payload.gender.value if payload.gender else None,
            date_of_birth=payload.date_of_birth,
            mobile_no=payload.mobile_no,
            email_id=email_id,
            address=payload.address,
            course_id=payload.course_id,
            academic_course_year_id=payload.academic_course_year_id,
            enrollment_year=payload.enrollment_year or date.today().year,
            student_status=payload.student_status.value,
            version=1,
        )
        db.add(obj)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Duplicate username, mobile number or email ID", status.HTTP_409_CONFLICT)
    logger.info("Student created", extra={"username": username, "course_id": payload.course_id})
    return await get_student(db, username)


async def list_students(
    db: AsyncSession,
    course_id: Optional[int] = None,
    academic_course_year_id: Optional[int] = None,
    student_status: Optional[str] = None,
) -> List[StudentResponse]:
    stmt = _student_with_names()
    if course_id is not None:
        stmt = stmt.where(Student.course_id == course_id)
    if academic_course_year_id is not None:
        stmt = stmt.where(Student.academic_course_year_id == academic_course_year_id)
    if student_status:
        stmt = stmt.where(Student.student_status == student_status.upper())
    stmt = stmt.order_by(Student.username)
    result = await db.execute(stmt)
    return [_to_response(*row) for row in result.all()]


async def list_students_by_course_and_year(
    db: AsyncSession,
    course_id: int,
    academic_course_year_id: int,
) -> List[StudentResponse]:
    """Students currently in the given course and year. Raises NotFoundError when there are none."""
    students = await list_students(db, course_id=course_id, academic_course_year_id=academic_course_year_id)
    if not students:
        raise NotFoundError("No students found for the given course and year.")
    return students


async def update_student(
    db: AsyncSession,
    username: str,
    payload: StudentUpdate,
) -> Optional[StudentResponse]:
    obj = await get_student_by_username(db, username)
    if not obj:
        return None
    if payload.course_id is not None and payload.course_id != obj.course_id:
        if not await course_service.get_course(db, payload.course_id):
            raise ServiceError("Invalid course", status.HTTP_400_BAD_REQUEST)
        obj.course_id = payload.course_id
        # A promotion staged against the old course must not match this row any more.
        obj.version += 1
    email_id = str(payload.email_id) if payload.email_id else None
    duplicate = await find_duplicate_field(db, payload.mobile_no, email_id, exclude_username=username)
    if duplicate:
        raise ServiceError(_duplicate_message(duplicate), status.HTTP_409_CONFLICT)
    if payload.full_name is not None:
        obj.full_name = payload.full_name.strip()
    if payload.father_name is not None:
        obj.father_name = payload.father_name
    if payload.gender is not None:
        obj.gender = payload.gender.value
    if payload.date_of_birth is not None:
        obj.date_of_birth = payload.date_of_birth
    if payload.mobile_no is not None:
        obj.mobile_no = payload.mobile_no
    if email_id is not None:
        obj.email_id = email_id
    if payload.address is not None:
        obj.address = payload.address
    if payload.student_status is not None:
        obj.student_status = payload.student_status.value
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Duplicate mobile number or email ID", status.HTTP_409_CONFLICT)
    return await get_student(db, username)


async def delete_student(db: AsyncSession, username: str) -> bool:
    """Delete a student. Refused while promotion history exists, since that history is append-only."""
    obj = await get_student_by_username(db, username)
    if not obj:
        return False
    promotions = await db.execute(
        select(func.count(StudentPromotion.promotion_id)).where(StudentPromotion.student_id == obj.student_id)
    )
    if promotions.scalar_one() > 0:
        raise ServiceError(
            f"Student '{username}' has promotion history and cannot be deleted",
            status.HTTP_409_CONFLICT,
        )
    await db.delete(obj)
    await db.commit()
    logger.info("Student deleted", extra={"username": username})
    return True


async def check_duplicate(
    db: AsyncSession,
    mobile_no: Optional[str],
    email_id: Optional[str],
    exclude_username: Optional[str] = None,
) -> Tuple[bool, str]:
    """Returns (is_duplicate, message)."""
    if not mobile_no and not email_id:
        raise ServiceError("Mobile number or Email ID is required.", status.HTTP_400_BAD_REQUEST)
    field = await find_duplicate_field(db, mobile_no, email_id, exclude_username)
    if field:
        return True, _duplicate_message(field)
    return False, "No duplicates found."
