from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.core.enums import Gender, StudentStatus


class StudentCreate(BaseModel):
    """academic_course_year_id is the year the student starts in; later changes go through promotions."""

    username: str = Field(..., min_length=1, max_length=50, description='Roll/registration number, e.g. "B224001"')
    full_name: str = Field(..., min_length=1, max_length=255)
    father_name: Optional[str] = Field(None, max_length=255)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    mobile_no: Optional[str] = Field(None, max_length=20)
    email_id: Optional[EmailStr] = None
    address: Optional[str] = None
    course_id: int = Field(..., gt=0)
    academic_course_year_id: int = Field(..., gt=0)
    enrollment_year: Optional[int] = Field(None, ge=1900, le=2200, description="Defaults to the current year")
    student_status: StudentStatus = StudentStatus.ACTIVE


class StudentUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    father_name: Optional[str] = Field(None, max_length=255)
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    mobile_no: Optional[str] = Field(None, max_length=20)
    email_id: Optional[EmailStr] = None
    address: Optional[str] = None
    course_id: Optional[int] = Field(None, gt=0)
    student_status: Optional[StudentStatus] = None
    # username, enrollment_year and academic_course_year_id are NOT editable here


class StudentResponse(BaseModel):
    student_id: int
    username: str
    full_name: str
    father_name: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    mobile_no: Optional[str] = None
    email_id: Optional[str] = None
    address: Optional[str] = None
    course_id: int
    course_name: Optional[str] = None
    academic_course_year_id: int
    academic_course_year_name: Optional[str] = None
    enrollment_year: int
    student_status: str
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DuplicateCheckResponse(BaseModel):
    success: bool = True
    message: str = "No duplicates found."
