"""
Self-service routes (/api/users) for the authenticated caller: profile, own courses
and self-enrollment.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from suficiencia.api.deps import get_current_user, get_student_context
from suficiencia.database import get_db
from suficiencia.schemas.user import ProfileUpdate
from suficiencia.services import enrollment as enrollment_service
from suficiencia.services import users as user_service
from suficiencia.services.access import AuthContext

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.get("/profile")
def get_profile(ctx: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return user_service.get_user(db, ctx.usuario_id)


@router.put("/profile")
def update_profile(data: ProfileUpdate, ctx: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    """Omitted or null fields keep their stored value."""
    return user_service.update_profile(db, ctx.usuario_id, nombres=data.nombres, apellidos=data.apellidos)


@router.get("/courses")
def my_courses(
    limit: int | None = Query(None, ge=1),
    ctx: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Courses the caller studies and teaches, whatever roles the caller holds."""
    return {
        "cursos_estudiante": enrollment_service.student_courses(db, ctx.usuario_id, limit=limit)["courses"],
        "cursos_docente": enrollment_service.teacher_courses(db, ctx.usuario_id, limit=limit)["courses"],
    }


@router.post("/enroll/{course_id}", status_code=status.HTTP_201_CREATED)
def enroll(course_id: UUID, ctx: AuthContext = Depends(get_student_context), db: Session = Depends(get_db)):
    enrollment = enrollment_service.enroll(db, course_id, ctx.usuario_id)
    logger.info("User %s self-enrolled in course %s", ctx.usuario_id, course_id)
    return {"message": "Inscripción exitosa", "enrollment": enrollment}
