"""Exam scheduling and capacity accounting."""
import uuid
from datetime import date, time, timedelta
from types import SimpleNamespace

import pytest

from suficiencia.errors import (
    AppointmentNotFound,
    InvalidCapacity,
    InvalidExamDate,
    InvalidTimeRange,
    NoSlotsAvailable,
    ScheduleConflict,
    ScheduleHasStudents,
    ScheduleNotFound,
    StudentAlreadyScheduled,
    StudentNotFound,
)
from suficiencia.models.exam import ExamBooking, ExamSchedule
from suficiencia.services import exams as svc

NEXT_WEEK = date.today() + timedelta(days=7)


def _slot(fecha=NEXT_WEEK, inicio=time(9, 0), fin=time(11, 0), cupos=2):
    return SimpleNamespace(fecha_examen=fecha, hora_inicio=inicio, hora_fin=fin, cupos_disponibles=cupos)


def _create(db, **kw):
    return svc.create_schedule(db, _slot(**kw))["schedule"]


def _occupied(db, schedule_id):
    db.expire_all()
    return db.query(ExamSchedule.cupos_ocupados).filter(ExamSchedule.id == schedule_id).scalar()


def test_create_schedule_starts_empty(db):
    s = _create(db)
    assert s["cupos_ocupados"] == 0
    assert s["cupos_disponibles"] == 2
    assert s["activo"] is True


def test_create_schedule_today_is_allowed(db):
    assert _create(db, fecha=date.today())["fecha_examen"] == date.today()


def test_create_schedule_in_past_rejected(db):
    with pytest.raises(InvalidExamDate):
        _create(db, fecha=date.today() - timedelta(days=1))


@pytest.mark.parametrize("fin", [time(9, 0), time(8, 0)])
def test_create_schedule_end_must_follow_start(db, fin):
    with pytest.raises(InvalidTimeRange):
        _create(db, inicio=time(9, 0), fin=fin)


def test_same_date_and_start_conflicts(db):
    _create(db, inicio=time(9, 0), fin=time(11, 0))
    with pytest.raises(ScheduleConflict):
        _create(db, inicio=time(9, 0), fin=time(10, 0))


def test_overlapping_ranges_with_different_start_are_accepted(db):
    """Only an identical (date, start time) pair conflicts; overlap alone is allowed."""
    _create(db, inicio=time(9, 0), fin=time(11, 0))
    other = _create(db, inicio=time(10, 0), fin=time(12, 0))
    assert other["hora_inicio"] == time(10, 0)
    assert db.query(ExamSchedule).count() == 2


def test_capacity_two_third_booking_refused(db, make_user):
    s = _create(db, cupos=2)
    a, b, c = make_user(), make_user(), make_user()
    svc.add_student(db, s["id"], a.id)
    svc.add_student(db, s["id"], b.id)
    with pytest.raises(NoSlotsAvailable):
        svc.add_student(db, s["id"], c.id)
    assert _occupied(db, s["id"]) == 2
    assert db.query(ExamBooking).count() == 2


def test_booking_is_agendado_and_counts(db, make_user):
    s = _create(db)
    student = make_user()
    result = svc.add_student(db, s["id"], student.id)
    assert result["agendamiento"]["estado"] == "agendado"
    assert result["agendamiento"]["estudiante_id"] == student.estudiante.id
    assert _occupied(db, s["id"]) == 1


def test_add_student_check_order(db, make_user):
    with pytest.raises(ScheduleNotFound):
        svc.add_student(db, uuid.uuid4(), make_user().id)

    full = _create(db, cupos=1)
    svc.add_student(db, full["id"], make_user().id)
    teacher = make_user(roles=("docente",))
    # A full schedule reports NoSlotsAvailable before looking at the student
    with pytest.raises(NoSlotsAvailable):
        svc.add_student(db, full["id"], teacher.id)

    open_slot = _create(db, inicio=time(14, 0), fin=time(15, 0))
    with pytest.raises(StudentNotFound):
        svc.add_student(db, open_slot["id"], teacher.id)
    assert _occupied(db, open_slot["id"]) == 0


def test_inactive_schedule_not_bookable(db, make_user):
    s = _create(db)
    svc.update_schedule(db, s["id"], {"activo": False})
    with pytest.raises(ScheduleNotFound):
        svc.add_student(db, s["id"], make_user().id)


def test_double_booking_rejected(db, make_user):
    s = _create(db, cupos=3)
    student = make_user()
    svc.add_student(db, s["id"], student.id)
    with pytest.raises(StudentAlreadyScheduled):
        svc.add_student(db, s["id"], student.id)
    assert _occupied(db, s["id"]) == 1


def test_last_slot_taken_concurrently_rolls_back_booking(db, make_user, monkeypatch):
    """The guarded increment refuses when the stored count is already at capacity."""
    s = _create(db, cupos=1)
    svc.add_student(db, s["id"], make_user().id)
    late = make_user()

    real_schedule = svc._schedule

    def stale_schedule(session, schedule_id, active_only=False):
        row = real_schedule(session, schedule_id, active_only)
        return SimpleNamespace(id=row.id, cupos_ocupados=0, cupos_disponibles=row.cupos_disponibles)

    monkeypatch.setattr(svc, "_schedule", stale_schedule)
    with pytest.raises(NoSlotsAvailable):
        svc.add_student(db, s["id"], late.id)
    monkeypatch.undo()

    assert _occupied(db, s["id"]) == 1
    assert db.query(ExamBooking).count() == 1


def test_remove_student_frees_slot(db, make_user):
    s = _create(db, cupos=1)
    student = make_user()
    svc.add_student(db, s["id"], student.id)
    svc.remove_student(db, s["id"], student.id)
    assert _occupied(db, s["id"]) == 0
    svc.add_student(db, s["id"], make_user().id)
    assert _occupied(db, s["id"]) == 1


def test_remove_student_floors_count_at_zero(db, make_user):
    s = _create(db)
    student = make_user()
    svc.add_student(db, s["id"], student.id)
    db.query(ExamSchedule).filter(ExamSchedule.id == s["id"]).update({"cupos_ocupados": 0})
    db.commit()
    svc.remove_student(db, s["id"], student.id)
    assert _occupied(db, s["id"]) == 0


def test_remove_twice_leaves_count_alone(db, make_user):
    s = _create(db, cupos=3)
    student = make_user()
    svc.add_student(db, s["id"], make_user().id)
    svc.add_student(db, s["id"], student.id)
    svc.remove_student(db, s["id"], student.id)
    assert _occupied(db, s["id"]) == 1
    with pytest.raises(AppointmentNotFound):
        svc.remove_student(db, s["id"], student.id)
    assert _occupied(db, s["id"]) == 1


def test_remove_missing_booking(db, make_user):
    s = _create(db)
    with pytest.raises(AppointmentNotFound):
        svc.remove_student(db, s["id"], make_user().id)
    with pytest.raises(AppointmentNotFound):
        svc.remove_student(db, s["id"], make_user(roles=("docente",)).id)


def test_cancelled_booking_still_consumes_capacity(db, make_user):
    s = _create(db, cupos=1)
    student = make_user()
    svc.add_student(db, s["id"], student.id)
    result = svc.update_student_status(db, s["id"], student.id, "cancelado")
    assert result["agendamiento"]["estado"] == "cancelado"
    assert _occupied(db, s["id"]) == 1
    with pytest.raises(NoSlotsAvailable):
        svc.add_student(db, s["id"], make_user().id)


def test_any_status_change_allowed_administratively(db, make_user):
    s = _create(db)
    student = make_user()
    svc.add_student(db, s["id"], student.id)
    for estado in ("cancelado", "confirmado", "completado", "agendado"):
        assert svc.update_student_status(db, s["id"], student.id, estado)["agendamiento"]["estado"] == estado


def test_update_status_missing_booking(db, make_user):
    s = _create(db)
    with pytest.raises(AppointmentNotFound):
        svc.update_student_status(db, s["id"], make_user().id, "confirmado")


def test_delete_schedule_refused_with_bookings(db, make_user):
    s = _create(db)
    student = make_user()
    svc.add_student(db, s["id"], student.id)
    svc.update_student_status(db, s["id"], student.id, "cancelado")
    with pytest.raises(ScheduleHasStudents):
        svc.delete_schedule(db, s["id"])
    svc.remove_student(db, s["id"], student.id)
    svc.delete_schedule(db, s["id"])
    with pytest.raises(ScheduleNotFound):
        svc.get_schedule(db, s["id"])


def test_update_schedule_capacity_not_below_occupied(db, make_user):
    s = _create(db, cupos=3)
    svc.add_student(db, s["id"], make_user().id)
    svc.add_student(db, s["id"], make_user().id)
    with pytest.raises(InvalidCapacity):
        svc.update_schedule(db, s["id"], {"cupos_disponibles": 1})
    assert svc.update_schedule(db, s["id"], {"cupos_disponibles": 2})["schedule"]["cupos_disponibles"] == 2


def test_update_schedule_revalidates_slot(db):
    first = _create(db, inicio=time(9, 0), fin=time(10, 0))
    second = _create(db, inicio=time(11, 0), fin=time(12, 0))
    with pytest.raises(ScheduleConflict):
        svc.update_schedule(db, second["id"], {"hora_inicio": time(9, 0)})
    # Moving a schedule onto its own slot is not a conflict
    svc.update_schedule(db, first["id"], {"hora_fin": time(10, 30)})
    with pytest.raises(InvalidTimeRange):
        svc.update_schedule(db, first["id"], {"hora_fin": time(8, 0)})


def test_list_and_stats(db, make_user):
    a = _create(db, inicio=time(8, 0), fin=time(9, 0), cupos=5)
    _create(db, fecha=NEXT_WEEK + timedelta(days=1), inicio=time(8, 0), fin=time(9, 0), cupos=3)
    student = make_user()
    svc.add_student(db, a["id"], student.id)

    listing = svc.list_schedules(db, fecha=NEXT_WEEK)
    assert [s["id"] for s in listing["schedules"]] == [a["id"]]
    dmy = NEXT_WEEK.strftime("%d/%m/%Y")
    assert svc.list_schedules(db, search=dmy)["pagination"]["total"] == 1
    assert svc.list_schedules(db, status="inactivo")["pagination"]["total"] == 0

    stats = svc.schedule_stats(db)
    assert stats["total_horarios"] == 2
    assert stats["cupos_totales"] == 8
    assert stats["cupos_ocupados"] == 1
    assert stats["estudiantes_agendados"] == 1


def test_schedule_students_and_available(db, make_user):
    s = _create(db)
    booked, free = make_user(), make_user()
    make_user(activo=False)
    svc.add_student(db, s["id"], booked.id)
    on_schedule = svc.list_schedule_students(db, s["id"])["students"]
    assert [r["id"] for r in on_schedule] == [booked.id]
    available = svc.list_available_students(db, s["id"])["students"]
    assert [r["id"] for r in available] == [free.id]
