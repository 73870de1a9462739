from app.core.models.course import Course
from app.core.models.academic_course_year import AcademicCourseYear
from app.core.models.student import Student
from app.core.models.student_promotion import StudentPromotion

__all__ = [
    "AcademicCourseYear",
    "Course",
    "Student",
    "StudentPromotion",
]
