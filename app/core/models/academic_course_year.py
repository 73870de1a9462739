from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.db.session import Base


class AcademicCourseYear(Base):
    """
    Year/level within a course ("First Year", "Second Year", ...).
    Promotions move a student's current year between these rows.
    """

    __tablename__ = "academic_course_years"

    academic_course_year_id = Column(Integer, primary_key=True, autoincrement=True)
    academic_course_year_name = Column(String(50), nullable=False, unique=True)
    year_order = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
