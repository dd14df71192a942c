"""
Course routes (/api/courses): catalogue, own-course listings, enrollment and teacher assignment.
Static paths (/student, /teacher) are declared before /{id}.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from suficiencia.api.deps import authorize, get_current_user, get_student_context, require_course_access
from suficiencia.database import get_db
from suficiencia.models.user import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER
from suficiencia.schemas.course import (
    AssignTeacherRequest,
    CourseCreate,
    CourseUpdate,
    EnrollmentStatusUpdate,
    EnrollStudentRequest,
)
from suficiencia.services import courses as course_service
from suficiencia.services import enrollment as enrollment_service
from suficiencia.services.access import AuthContext

router = APIRouter(prefix="/api/courses", tags=["courses"])
logger = logging.getLogger(__name__)


@router.get("")
def list_courses(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    search: str = "",
    activo: bool | None = None,
    ctx: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return course_service.list_courses(db, page=page, limit=limit, search=search, activo=activo)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_course(
    data: CourseCreate,
    ctx: AuthContext = Depends(authorize(ROLE_TEACHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    return course_service.create_course(db, data, creado_por=ctx.usuario_id)


@router.get("/student")
def my_student_courses(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    ctx: AuthContext = Depends(authorize(ROLE_STUDENT)),
    db: Session = Depends(get_db),
):
    return enrollment_service.student_courses(db, ctx.usuario_id, page=page, limit=limit)


@router.get("/teacher")
def my_teacher_courses(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    ctx: AuthContext = Depends(authorize(ROLE_TEACHER)),
    db: Session = Depends(get_db),
):
    return enrollment_service.teacher_courses(db, ctx.usuario_id, page=page, limit=limit)


@router.get("/{id}")
def get_course(id: UUID, ctx: AuthContext = Depends(require_course_access("id")), db: Session = Depends(get_db)):
    course = course_service.get_course(db, id)
    course["acceso"] = ctx.course_access
    return course


@router.put("/{id}")
def update_course(
    id: UUID,
    data: CourseUpdate,
    ctx: AuthContext = Depends(authorize(ROLE_TEACHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    return course_service.update_course(db, id, data.model_dump(exclude_unset=True))


@router.delete("/{id}")
def delete_course(id: UUID, ctx: AuthContext = Depends(authorize(ROLE_ADMIN)), db: Session = Depends(get_db)):
    return course_service.delete_course(db, id)


@router.get("/{id}/students")
def course_students(
    id: UUID,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    ctx: AuthContext = Depends(authorize(ROLE_TEACHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    return enrollment_service.list_course_students(db, id, page=page, limit=limit)


@router.get("/{id}/teachers")
def course_teachers(id: UUID, ctx: AuthContext = Depends(authorize(ROLE_ADMIN)), db: Session = Depends(get_db)):
    return enrollment_service.list_course_teachers(db, id)


@router.post("/{id}/assign-teacher", status_code=status.HTTP_201_CREATED)
def assign_teacher(
    id: UUID,
    data: AssignTeacherRequest,
    ctx: AuthContext = Depends(authorize(ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    assignment = enrollment_service.assign_teacher(db, id, data.usuario_id, data.tipo_asignacion)
    return {"message": "Docente asignado exitosamente", "assignment": assignment}


@router.post("/{id}/assign-student", status_code=status.HTTP_201_CREATED)
def assign_student(
    id: UUID,
    data: EnrollStudentRequest,
    ctx: AuthContext = Depends(authorize(ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    enrollment = enrollment_service.enroll(db, id, data.usuario_id, data.estado)
    return {"message": "Estudiante asignado exitosamente", "enrollment": enrollment}


@router.post("/{id}/enroll-student", status_code=status.HTTP_201_CREATED)
def enroll_student(
    id: UUID,
    data: EnrollStudentRequest,
    ctx: AuthContext = Depends(authorize(ROLE_TEACHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    enrollment = enrollment_service.enroll(db, id, data.usuario_id, data.estado)
    return {"message": "Estudiante inscrito exitosamente", "enrollment": enrollment}


@router.post("/{id}/withdraw")
def withdraw(id: UUID, ctx: AuthContext = Depends(get_student_context), db: Session = Depends(get_db)):
    enrollment = enrollment_service.withdraw(db, id, ctx.usuario_id)
    return {"message": "Retiro registrado exitosamente", "enrollment": enrollment}


@router.put("/{course_id}/students/{student_id}")
def update_student_status(
    course_id: UUID,
    student_id: UUID,
    data: EnrollmentStatusUpdate,
    ctx: AuthContext = Depends(authorize(ROLE_TEACHER, ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    enrollment = enrollment_service.update_status(db, course_id, student_id, data.estado, data.nota_final)
    return {"message": "Estado del estudiante actualizado exitosamente", "enrollment": enrollment}
