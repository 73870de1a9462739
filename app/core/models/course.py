from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.db.session import Base


class Course(Base):
    """Degree programme a student is enrolled in (e.g. B.Tech CSE)."""

    __tablename__ = "courses"

    course_id = Column(Integer, primary_key=True, autoincrement=True)
    course_name = Column(String(255), nullable=False, unique=True)
    course_code = Column(String(50), nullable=False, unique=True)
    duration_years = Column(Integer, nullable=False, default=4)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
