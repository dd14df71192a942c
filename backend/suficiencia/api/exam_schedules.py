"""
Exam schedule routes (/api/admin/exam-schedules): schedule CRUD, stats and student bookings.
Administrators only.
"""
import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from suficiencia.api.admin import require_admin
from suficiencia.database import get_db
from suficiencia.schemas.exam import BookingStatusUpdate, ScheduleCreate, ScheduleStudentRequest, ScheduleUpdate
from suficiencia.services import exams as exam_service
from suficiencia.services.access import AuthContext

router = APIRouter(prefix="/api/admin/exam-schedules", tags=["exam-schedules"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


@router.get("")
def list_schedules(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    search: str = "",
    fecha: date | None = None,
    status: str = "",
    db: Session = Depends(get_db),
):
    return exam_service.list_schedules(db, page=page, limit=limit, search=search, fecha=fecha, status=status)


@router.get("/stats")
def schedule_stats(db: Session = Depends(get_db)):
    return exam_service.schedule_stats(db)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_schedule(data: ScheduleCreate, ctx: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return exam_service.create_schedule(db, data, creado_por=ctx.usuario_id)


@router.get("/{id}")
def get_schedule(id: UUID, db: Session = Depends(get_db)):
    return exam_service.get_schedule(db, id)


@router.put("/{id}")
def update_schedule(id: UUID, data: ScheduleUpdate, db: Session = Depends(get_db)):
    return exam_service.update_schedule(db, id, data.model_dump(exclude_unset=True))


@router.delete("/{id}")
def delete_schedule(id: UUID, db: Session = Depends(get_db)):
    return exam_service.delete_schedule(db, id)


@router.get("/{id}/students")
def schedule_students(id: UUID, db: Session = Depends(get_db)):
    return exam_service.list_schedule_students(db, id)


@router.get("/{id}/available-students")
def available_students(id: UUID, db: Session = Depends(get_db)):
    return exam_service.list_available_students(db, id)


@router.post("/{id}/students", status_code=status.HTTP_201_CREATED)
def add_student(id: UUID, data: ScheduleStudentRequest, db: Session = Depends(get_db)):
    return exam_service.add_student(db, id, data.usuario_id)


@router.delete("/{id}/students/{student_id}")
def remove_student(id: UUID, student_id: UUID, db: Session = Depends(get_db)):
    return exam_service.remove_student(db, id, student_id)


@router.put("/{id}/students/{student_id}/status")
def update_student_status(id: UUID, student_id: UUID, data: BookingStatusUpdate, db: Session = Depends(get_db)):
    return exam_service.update_student_status(db, id, student_id, data.estado)
