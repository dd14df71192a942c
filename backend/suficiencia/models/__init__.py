"""
SQLAlchemy models. Import here so Alembic and app can use them.
"""
from suficiencia.models.user import User, UserRole
from suficiencia.models.student import Estudiante
from suficiencia.models.course import Course
from suficiencia.models.enrollment import CourseStudent, CourseTeacher
from suficiencia.models.exam import ExamSchedule, ExamBooking

__all__ = ["User", "UserRole", "Estudiante", "Course", "CourseStudent", "CourseTeacher", "ExamSchedule", "ExamBooking"]
