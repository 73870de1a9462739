from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer

from app.db.session import Base


class StudentPromotion(Base):
    """
    One student's year transition. Append-only: rows are never updated or deleted,
    a student's history is all of its rows ordered by created_at.
    """

    __tablename__ = "student_promotions"

    promotion_id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="RESTRICT"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.course_id", ondelete="RESTRICT"), nullable=False)
    from_year = Column(
        Integer,
        ForeignKey("academic_course_years.academic_course_year_id", ondelete="RESTRICT"),
        nullable=False,
    )
    to_year = Column(
        Integer,
        ForeignKey("academic_course_years.academic_course_year_id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
