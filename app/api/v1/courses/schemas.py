from datetime import datetime

from pydantic import BaseModel, Field


class CourseCreate(BaseModel):
    course_name: str = Field(..., min_length=1, max_length=255)
    course_code: str = Field(..., min_length=1, max_length=50)
    duration_years: int = Field(4, ge=1, le=10)


class CourseResponse(BaseModel):
    course_id: int
    course_name: str
    course_code: str
    duration_years: int
    created_at: datetime

    class Config:
        from_attributes = True


class AcademicCourseYearCreate(BaseModel):
    academic_course_year_name: str = Field(..., min_length=1, max_length=50, description='e.g. "Second Year"')
    year_order: int = Field(..., ge=1, description="Position of the year within a course (1 = first year)")


class AcademicCourseYearResponse(BaseModel):
    academic_course_year_id: int
    academic_course_year_name: str
    year_order: int
    created_at: datetime

    class Config:
        from_attributes = True
