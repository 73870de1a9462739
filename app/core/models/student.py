from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text

from app.db.session import Base


class Student(Base):
    """
    Student directory entry. username is the stable external key callers use.
    academic_course_year_id is the current year; it only changes through promotion,
    and every change bumps version so concurrent promotions can be detected.
    """

    __tablename__ = "students"

    student_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)
    father_name = Column(String(255), nullable=True)
    gender = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    mobile_no = Column(String(20), nullable=True, unique=True)
    email_id = Column(String(255), nullable=True, unique=True)
    address = Column(Text, nullable=True)
    course_id = Column(Integer, ForeignKey("courses.course_id", ondelete="RESTRICT"), nullable=False)
    academic_course_year_id = Column(
        Integer,
        ForeignKey("academic_course_years.academic_course_year_id", ondelete="RESTRICT"),
        nullable=False,
    )
    enrollment_year = Column(Integer, nullable=False)
    student_status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE | INACTIVE
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
