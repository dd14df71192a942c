"""
Admin routes (/api/admin): dashboard, users and roles, student/teacher directories,
enrollment and assignment maintenance. Every route requires the administrador role.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from suficiencia.api.deps import authorize
from suficiencia.database import get_db
from suficiencia.models.user import ROLE_ADMIN
from suficiencia.schemas.course import AssignmentUpdate, EnrollmentStatusUpdate, EnrollStudentRequest
from suficiencia.schemas.user import Role, RoleRequest, RolesReplace, StatusRequest, UserCreate, UserUpdate
from suficiencia.services import courses as course_service
from suficiencia.services import enrollment as enrollment_service
from suficiencia.services import users as user_service

require_admin = authorize(ROLE_ADMIN)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


@router.get("/dashboard/stats")
def dashboard_stats(db: Session = Depends(get_db)):
    return user_service.dashboard_stats(db)


# --- Users ---

@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    search: str = "",
    role: str = "",
    status: str = "",
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, page=page, limit=limit, search=search, role=role, status=status)


@router.get("/users/stats")
def user_stats(db: Session = Depends(get_db)):
    return user_service.user_stats(db)


@router.get("/users/{id}")
def get_user(id: UUID, db: Session = Depends(get_db)):
    return user_service.get_user(db, id)


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(data: UserCreate, db: Session = Depends(get_db)):
    return user_service.create_user(db, data)


@router.put("/users/{id}")
def update_user(id: UUID, data: UserUpdate, db: Session = Depends(get_db)):
    return user_service.update_user(db, id, data.model_dump(exclude_unset=True))


@router.delete("/users/{id}")
def delete_user(id: UUID, db: Session = Depends(get_db)):
    return user_service.delete_user(db, id)


@router.put("/users/{id}/status")
def set_user_status(id: UUID, data: StatusRequest, db: Session = Depends(get_db)):
    usuario = user_service.set_user_status(db, id, data.active)
    verb = "activado" if data.active else "desactivado"
    return {"message": f"Usuario {verb} exitosamente", "usuario": usuario}


@router.get("/users/{id}/roles")
def get_user_roles(id: UUID, db: Session = Depends(get_db)):
    return user_service.get_roles(db, id)


@router.post("/users/{id}/roles", status_code=status.HTTP_201_CREATED)
def add_user_role(id: UUID, data: RoleRequest, db: Session = Depends(get_db)):
    return user_service.add_role(db, id, data.rol)


@router.put("/users/{id}/roles")
def replace_user_roles(id: UUID, data: RolesReplace, db: Session = Depends(get_db)):
    return user_service.replace_roles(db, id, data.roles)


@router.delete("/users/{id}/roles/{role}")
def remove_user_role(id: UUID, role: Role, db: Session = Depends(get_db)):
    return user_service.remove_role(db, id, role)


# --- Students ---

@router.get("/students")
def list_students(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    search: str = "",
    course: UUID | None = None,
    includeEnrollments: bool = False,
    db: Session = Depends(get_db),
):
    return user_service.list_students(
        db, page=page, limit=limit, search=search, course=course, include_enrollments=includeEnrollments
    )


@router.get("/students/{id}/courses")
def student_courses(
    id: UUID,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    student = user_service.get_user(db, id)
    result = enrollment_service.student_courses(db, id, page=page, limit=limit)
    result["student"] = student
    return result


@router.post("/courses/{id}/enroll-student", status_code=status.HTTP_201_CREATED)
def enroll_student(id: UUID, data: EnrollStudentRequest, db: Session = Depends(get_db)):
    enrollment = enrollment_service.enroll(db, id, data.usuario_id, data.estado)
    return {"message": "Estudiante inscrito exitosamente", "enrollment": enrollment}


@router.put("/student-enrollments/{id}")
def update_enrollment(id: UUID, data: EnrollmentStatusUpdate, db: Session = Depends(get_db)):
    return enrollment_service.update_enrollment(db, id, data.estado, data.nota_final)


@router.delete("/student-enrollments/{id}")
def delete_enrollment(id: UUID, db: Session = Depends(get_db)):
    return enrollment_service.remove_enrollment(db, id)


# --- Teachers ---

@router.get("/teachers")
def list_teachers(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    search: str = "",
    includeAssignments: bool = False,
    db: Session = Depends(get_db),
):
    return user_service.list_teachers(
        db, page=page, limit=limit, search=search, include_assignments=includeAssignments
    )


@router.get("/teachers/{id}/courses")
def teacher_courses(
    id: UUID,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    teacher = user_service.get_user(db, id)
    result = enrollment_service.teacher_courses(db, id, page=page, limit=limit)
    result["teacher"] = teacher
    return result


@router.put("/teacher-assignments/{id}")
def update_assignment(id: UUID, data: AssignmentUpdate, db: Session = Depends(get_db)):
    return enrollment_service.update_assignment(db, id, data.tipo_asignacion, data.activo)


@router.delete("/teacher-assignments/{id}")
def delete_assignment(id: UUID, db: Session = Depends(get_db)):
    return enrollment_service.remove_assignment(db, id)


@router.get("/courses/stats")
def course_stats(db: Session = Depends(get_db)):
    return course_service.course_stats(db)
