"""
Exam schedules (horarios_examenes) and student bookings (agendamientos_examen).

cupos_ocupados moves only inside the same transaction as the booking insert/delete:
+1 through a conditional UPDATE guarded by cupos_ocupados < cupos_disponibles (zero rows
updated means the last slot went to a concurrent request), -1 floored at 0 on removal.
Booking status changes never touch the count: a cancelado booking keeps its slot until the
student is removed from the schedule.

Two schedules conflict only when they share the same date and start time.
"""
import logging
import re
from datetime import date

from sqlalchemy import String, and_, case, cast, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from suficiencia.database import transaction
from suficiencia.errors import (
    AppointmentNotFound,
    InvalidCapacity,
    InvalidExamDate,
    InvalidTimeRange,
    NoFieldsToUpdate,
    NoSlotsAvailable,
    ScheduleConflict,
    ScheduleHasStudents,
    ScheduleNotFound,
    StudentAlreadyScheduled,
    StudentNotFound,
)
from suficiencia.models.exam import BOOKED, CANCELLED, ExamBooking, ExamSchedule
from suficiencia.models.student import Estudiante
from suficiencia.models.user import User
from suficiencia.services.pagination import envelope, page_window

logger = logging.getLogger(__name__)

_DMY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
AVAILABLE_STUDENTS_LIMIT = 100


def _today() -> date:
    return date.today()


def schedule_to_dict(s: ExamSchedule, creator: User | None = None) -> dict:
    item = {
        "id": s.id,
        "fecha_examen": s.fecha_examen,
        "hora_inicio": s.hora_inicio,
        "hora_fin": s.hora_fin,
        "cupos_disponibles": s.cupos_disponibles,
        "cupos_ocupados": s.cupos_ocupados,
        "activo": s.activo,
        "creado_por": s.creado_por,
        "fecha_creacion": s.fecha_creacion,
        "fecha_actualizacion": s.fecha_actualizacion,
    }
    if creator is not None:
        item["creado_por_nombre"] = creator.nombres
        item["creado_por_apellidos"] = creator.apellidos
    return item


def booking_to_dict(b: ExamBooking) -> dict:
    return {
        "id": b.id,
        "horario_examen_id": b.horario_examen_id,
        "estudiante_id": b.estudiante_id,
        "estado": b.estado,
        "fecha_agendamiento": b.fecha_agendamiento,
    }


def _validate_slot(db: Session, fecha_examen, hora_inicio, hora_fin, exclude_id=None) -> None:
    if fecha_examen < _today():
        raise InvalidExamDate()
    if hora_fin <= hora_inicio:
        raise InvalidTimeRange()
    q = db.query(ExamSchedule.id).filter(
        ExamSchedule.fecha_examen == fecha_examen, ExamSchedule.hora_inicio == hora_inicio
    )
    if exclude_id is not None:
        q = q.filter(ExamSchedule.id != exclude_id)
    if q.first():
        raise ScheduleConflict(details={"fecha_examen": str(fecha_examen), "hora_inicio": str(hora_inicio)})


def create_schedule(db: Session, data, creado_por=None) -> dict:
    _validate_slot(db, data.fecha_examen, data.hora_inicio, data.hora_fin)
    schedule = ExamSchedule(
        fecha_examen=data.fecha_examen,
        hora_inicio=data.hora_inicio,
        hora_fin=data.hora_fin,
        cupos_disponibles=data.cupos_disponibles,
        cupos_ocupados=0,
        activo=True,
        creado_por=creado_por,
    )
    with transaction(db):
        db.add(schedule)
    db.refresh(schedule)
    logger.info(
        "Exam schedule %s created for %s %s-%s (%s slots)",
        schedule.id, schedule.fecha_examen, schedule.hora_inicio, schedule.hora_fin, schedule.cupos_disponibles,
    )
    return {"message": "Horario de examen creado exitosamente", "schedule": schedule_to_dict(schedule)}


def _schedule(db: Session, schedule_id, active_only: bool = False) -> ExamSchedule:
    q = db.query(ExamSchedule).filter(ExamSchedule.id == schedule_id)
    if active_only:
        q = q.filter(ExamSchedule.activo.is_(True))
    schedule = q.first()
    if schedule is None:
        raise ScheduleNotFound()
    return schedule


def get_schedule(db: Session, schedule_id) -> dict:
    schedule = _schedule(db, schedule_id)
    return schedule_to_dict(schedule, schedule.creator)


def update_schedule(db: Session, schedule_id, fields: dict) -> dict:
    """Changed date/time fields are revalidated against the other schedules; capacity never drops below occupied."""
    allowed = ("fecha_examen", "hora_inicio", "hora_fin", "cupos_disponibles", "activo")
    fields = {k: v for k, v in fields.items() if k in allowed and v is not None}
    if not fields:
        raise NoFieldsToUpdate()
    schedule = _schedule(db, schedule_id)
    if {"fecha_examen", "hora_inicio", "hora_fin"} & fields.keys():
        _validate_slot(
            db,
            fields.get("fecha_examen", schedule.fecha_examen),
            fields.get("hora_inicio", schedule.hora_inicio),
            fields.get("hora_fin", schedule.hora_fin),
            exclude_id=schedule.id,
        )
    if "cupos_disponibles" in fields and fields["cupos_disponibles"] < schedule.cupos_ocupados:
        raise InvalidCapacity(details={"cupos_ocupados": schedule.cupos_ocupados})
    with transaction(db):
        for key, value in fields.items():
            setattr(schedule, key, value)
    db.refresh(schedule)
    return {"message": "Horario actualizado exitosamente", "schedule": schedule_to_dict(schedule)}


def delete_schedule(db: Session, schedule_id) -> dict:
    schedule = _schedule(db, schedule_id)
    bookings = db.query(func.count(ExamBooking.id)).filter(ExamBooking.horario_examen_id == schedule.id).scalar()
    if bookings:
        raise ScheduleHasStudents(details={"agendamientos": bookings})
    with transaction(db):
        db.delete(schedule)
    logger.info("Exam schedule %s deleted", schedule_id)
    return {"message": "Horario eliminado exitosamente", "id": schedule_id}


def _search_clause(search: str):
    term = search.strip()
    m = _DMY_RE.match(term)
    if m:
        day, month, year = m.groups()
        term = f"{year}-{int(month):02d}-{int(day):02d}"
    like = f"%{term}%"
    return or_(
        cast(ExamSchedule.fecha_examen, String).ilike(like),
        cast(ExamSchedule.hora_inicio, String).ilike(like),
        cast(ExamSchedule.hora_fin, String).ilike(like),
    )


def list_schedules(db: Session, page=1, limit=None, search: str = "", fecha: date | None = None, status: str = "") -> dict:
    page, limit, offset = page_window(page, limit)
    q = db.query(ExamSchedule)
    if search and search.strip():
        q = q.filter(_search_clause(search))
    if fecha is not None:
        q = q.filter(ExamSchedule.fecha_examen == fecha)
    status = (status or "").strip().lower()
    if status in ("activo", "inactivo"):
        q = q.filter(ExamSchedule.activo.is_(status == "activo"))
    total = q.count()
    rows = (
        q.outerjoin(User, User.id == ExamSchedule.creado_por)
        .add_entity(User)
        .order_by(ExamSchedule.fecha_examen.desc(), ExamSchedule.hora_inicio.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return envelope("schedules", [schedule_to_dict(s, u) for s, u in rows], page, limit, total)


def schedule_stats(db: Session) -> dict:
    total, active, capacity, occupied, upcoming = db.query(
        func.count(ExamSchedule.id),
        func.count(case((ExamSchedule.activo.is_(True), 1))),
        func.coalesce(func.sum(ExamSchedule.cupos_disponibles), 0),
        func.coalesce(func.sum(ExamSchedule.cupos_ocupados), 0),
        func.count(case((ExamSchedule.fecha_examen >= _today(), 1))),
    ).one()
    scheduled = (
        db.query(func.count(func.distinct(ExamBooking.estudiante_id)))
        .filter(ExamBooking.estado != CANCELLED)
        .scalar()
    )
    return {
        "total_horarios": int(total or 0),
        "horarios_activos": int(active or 0),
        "cupos_totales": int(capacity or 0),
        "cupos_ocupados": int(occupied or 0),
        "horarios_futuros": int(upcoming or 0),
        "estudiantes_agendados": int(scheduled or 0),
    }


# --- Students on a schedule ---

def list_schedule_students(db: Session, schedule_id) -> dict:
    _schedule(db, schedule_id)
    rows = (
        db.query(ExamBooking, User)
        .join(Estudiante, Estudiante.id == ExamBooking.estudiante_id)
        .join(User, User.id == Estudiante.usuario_id)
        .filter(ExamBooking.horario_examen_id == schedule_id)
        .order_by(ExamBooking.fecha_agendamiento.desc())
        .all()
    )
    return {
        "students": [
            {
                "agendamiento_id": b.id,
                "estado": b.estado,
                "fecha_agendamiento": b.fecha_agendamiento,
                "id": u.id,
                "nombres": u.nombres,
                "apellidos": u.apellidos,
                "email": u.email,
                "codigo_institucional": u.codigo_institucional,
            }
            for b, u in rows
        ]
    }


def list_available_students(db: Session, schedule_id) -> dict:
    """Active students not yet booked on this schedule."""
    _schedule(db, schedule_id)
    booked = select(ExamBooking.estudiante_id).where(ExamBooking.horario_examen_id == schedule_id)
    rows = (
        db.query(User)
        .join(Estudiante, Estudiante.usuario_id == User.id)
        .filter(User.activo.is_(True), Estudiante.id.not_in(booked))
        .order_by(User.nombres, User.apellidos)
        .limit(AVAILABLE_STUDENTS_LIMIT)
        .all()
    )
    return {
        "students": [
            {
                "id": u.id,
                "nombres": u.nombres,
                "apellidos": u.apellidos,
                "email": u.email,
                "codigo_institucional": u.codigo_institucional,
            }
            for u in rows
        ]
    }


def _booking_for_user(db: Session, schedule_id, usuario_id) -> ExamBooking | None:
    return (
        db.query(ExamBooking)
        .join(Estudiante, Estudiante.id == ExamBooking.estudiante_id)
        .filter(ExamBooking.horario_examen_id == schedule_id, Estudiante.usuario_id == usuario_id)
        .first()
    )


def add_student(db: Session, schedule_id, usuario_id) -> dict:
    """
    Book a student on a schedule and take one slot, all in one transaction.
    Raises ScheduleNotFound, NoSlotsAvailable, StudentAlreadyScheduled, StudentNotFound (checked in that order).
    """
    with transaction(db):
        schedule = _schedule(db, schedule_id, active_only=True)
        if schedule.cupos_ocupados >= schedule.cupos_disponibles:
            raise NoSlotsAvailable()
        if _booking_for_user(db, schedule_id, usuario_id) is not None:
            raise StudentAlreadyScheduled()
        estudiante_id = db.query(Estudiante.id).filter(Estudiante.usuario_id == usuario_id).scalar()
        if estudiante_id is None:
            raise StudentNotFound("Estudiante no encontrado")

        booking = ExamBooking(horario_examen_id=schedule.id, estudiante_id=estudiante_id, estado=BOOKED)
        db.add(booking)
        try:
            db.flush()
        except IntegrityError as e:
            raise StudentAlreadyScheduled() from e

        taken = db.execute(
            update(ExamSchedule)
            .where(
                and_(
                    ExamSchedule.id == schedule.id,
                    ExamSchedule.cupos_ocupados < ExamSchedule.cupos_disponibles,
                )
            )
            .values(cupos_ocupados=ExamSchedule.cupos_ocupados + 1)
            .execution_options(synchronize_session=False)
        )
        if taken.rowcount == 0:
            logger.info("Schedule %s filled up while booking user %s", schedule_id, usuario_id)
            raise NoSlotsAvailable()
    db.refresh(booking)
    logger.info("User %s booked on exam schedule %s", usuario_id, schedule_id)
    return {"message": "Estudiante agregado al horario exitosamente", "agendamiento": booking_to_dict(booking)}


def remove_student(db: Session, schedule_id, usuario_id) -> dict:
    """Delete the booking and give the slot back (count floored at 0), in one transaction."""
    with transaction(db):
        booking = _booking_for_user(db, schedule_id, usuario_id)
        if booking is None:
            raise AppointmentNotFound()
        db.delete(booking)
        db.flush()
        db.execute(
            update(ExamSchedule)
            .where(ExamSchedule.id == schedule_id)
            .values(
                cupos_ocupados=case(
                    (ExamSchedule.cupos_ocupados > 0, ExamSchedule.cupos_ocupados - 1),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
    logger.info("User %s removed from exam schedule %s", usuario_id, schedule_id)
    return {"message": "Estudiante removido del horario exitosamente"}


def update_student_status(db: Session, schedule_id, usuario_id, estado: str) -> dict:
    """Booking status only; cupos_ocupados is left as is."""
    booking = _booking_for_user(db, schedule_id, usuario_id)
    if booking is None:
        raise AppointmentNotFound()
    with transaction(db):
        booking.estado = estado
    db.refresh(booking)
    return {"message": "Estado del agendamiento actualizado exitosamente", "agendamiento": booking_to_dict(booking)}
