"""Enrollment lifecycle and teacher assignment."""
import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from suficiencia.errors import (
    AlreadyAssigned,
    AlreadyEnrolled,
    AssignmentNotFound,
    CourseNotFound,
    EnrollmentNotFound,
    InvalidStatusTransition,
    NoFieldsToUpdate,
    StudentNotFound,
    UserNotTeacher,
)
from suficiencia.models.enrollment import CourseStudent, CourseTeacher
from suficiencia.services import enrollment as svc


def test_enroll_creates_inscrito_row(db, make_user, make_course):
    student = make_user()
    course = make_course()
    row = svc.enroll(db, course.id, student.id)
    assert row["estado"] == "inscrito"
    assert row["curso_id"] == course.id
    assert db.query(CourseStudent).count() == 1


def test_enroll_checks_course_before_student(db, make_user, make_course):
    teacher = make_user(roles=("docente",))
    with pytest.raises(CourseNotFound):
        svc.enroll(db, uuid.uuid4(), teacher.id)
    inactive = make_course(activo=False)
    with pytest.raises(CourseNotFound):
        svc.enroll(db, inactive.id, teacher.id)


def test_enroll_requires_active_student(db, make_user, make_course):
    course = make_course()
    teacher = make_user(roles=("docente",))
    with pytest.raises(StudentNotFound):
        svc.enroll(db, course.id, teacher.id)
    inactive = make_user(activo=False)
    with pytest.raises(StudentNotFound):
        svc.enroll(db, course.id, inactive.id)


def test_enroll_twice_rejected(db, make_user, make_course):
    student = make_user()
    course = make_course()
    svc.enroll(db, course.id, student.id)
    with pytest.raises(AlreadyEnrolled):
        svc.enroll(db, course.id, student.id)
    assert db.query(CourseStudent).count() == 1


def test_enroll_race_ends_in_already_enrolled(db, make_user, make_course, monkeypatch):
    """A concurrent insert that slips past the existence check hits the unique constraint."""
    student = make_user()
    course = make_course()
    db.add(CourseStudent(curso_id=course.id, usuario_id=student.id))
    db.commit()

    real_query = db.query

    def blind_query(*entities, **kw):
        q = real_query(*entities, **kw)
        if len(entities) == 1 and entities[0] is CourseStudent.id:
            return q.filter(CourseStudent.id.is_(None))
        return q

    monkeypatch.setattr(db, "query", blind_query)
    with pytest.raises(AlreadyEnrolled):
        svc.enroll(db, course.id, student.id)
    monkeypatch.undo()
    assert db.query(CourseStudent).count() == 1


def test_unique_pair_enforced_by_table(db, make_user, make_course):
    student = make_user()
    course = make_course()
    db.add(CourseStudent(curso_id=course.id, usuario_id=student.id))
    db.commit()
    db.add(CourseStudent(curso_id=course.id, usuario_id=student.id))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


@pytest.mark.parametrize("target", ["aprobado", "reprobado", "retirado"])
def test_transitions_from_inscrito_allowed(target):
    svc.check_enrollment_transition("inscrito", target)


@pytest.mark.parametrize(
    "current, target",
    [
        ("aprobado", "inscrito"),
        ("reprobado", "aprobado"),
        ("retirado", "inscrito"),
        ("retirado", "retirado"),
        ("inscrito", "inscrito"),
    ],
)
def test_transitions_out_of_terminal_states_rejected(current, target):
    with pytest.raises(InvalidStatusTransition):
        svc.check_enrollment_transition(current, target)


def test_withdraw_follows_state_machine(db, make_user, make_course):
    student = make_user()
    course = make_course()
    svc.enroll(db, course.id, student.id)
    row = svc.withdraw(db, course.id, student.id)
    assert row["estado"] == "retirado"
    with pytest.raises(InvalidStatusTransition):
        svc.withdraw(db, course.id, student.id)


def test_update_status_is_an_override(db, make_user, make_course):
    student = make_user()
    course = make_course()
    svc.enroll(db, course.id, student.id, estado="retirado")
    row = svc.update_status(db, course.id, student.id, estado="inscrito", nota_final=85)
    assert row["estado"] == "inscrito"
    assert float(row["nota_final"]) == 85.0


def test_update_status_errors(db, make_user, make_course):
    student = make_user()
    course = make_course()
    with pytest.raises(EnrollmentNotFound):
        svc.update_status(db, course.id, student.id, estado="aprobado")
    svc.enroll(db, course.id, student.id)
    with pytest.raises(NoFieldsToUpdate):
        svc.update_status(db, course.id, student.id)


def test_remove_enrollment(db, make_user, make_course):
    student = make_user()
    course = make_course()
    row = svc.enroll(db, course.id, student.id)
    svc.remove_enrollment(db, row["id"])
    assert db.query(CourseStudent).count() == 0
    with pytest.raises(EnrollmentNotFound):
        svc.remove_enrollment(db, row["id"])


def test_assign_teacher(db, make_user, make_course):
    teacher = make_user(roles=("docente",))
    course = make_course()
    row = svc.assign_teacher(db, course.id, teacher.id, "asistente")
    assert row["tipo_asignacion"] == "asistente"
    assert row["activo"] is True
    with pytest.raises(AlreadyAssigned):
        svc.assign_teacher(db, course.id, teacher.id)


def test_assign_teacher_errors(db, make_user, make_course):
    teacher = make_user(roles=("docente",))
    student = make_user()
    course = make_course()
    with pytest.raises(CourseNotFound):
        svc.assign_teacher(db, uuid.uuid4(), teacher.id)
    with pytest.raises(UserNotTeacher):
        svc.assign_teacher(db, course.id, student.id)


def test_assign_teacher_race_ends_in_already_assigned(db, make_user, make_course, monkeypatch):
    """Same as the enrollment race: the unique pair on curso_docentes decides."""
    teacher = make_user(roles=("docente",))
    course = make_course()
    svc.assign_teacher(db, course.id, teacher.id)

    real_query = db.query

    def blind_query(*entities, **kw):
        q = real_query(*entities, **kw)
        if len(entities) == 1 and entities[0] is CourseTeacher.id:
            return q.filter(CourseTeacher.id.is_(None))
        return q

    monkeypatch.setattr(db, "query", blind_query)
    with pytest.raises(AlreadyAssigned):
        svc.assign_teacher(db, course.id, teacher.id, tipo_asignacion="asistente")
    monkeypatch.undo()
    rows = db.query(CourseTeacher).filter(CourseTeacher.curso_id == course.id).all()
    assert [r.tipo_asignacion for r in rows] == ["titular"]


def test_update_and_remove_assignment(db, make_user, make_course):
    teacher = make_user(roles=("docente",))
    course = make_course()
    row = svc.assign_teacher(db, course.id, teacher.id)
    updated = svc.update_assignment(db, row["id"], activo=False)
    assert updated["activo"] is False
    with pytest.raises(NoFieldsToUpdate):
        svc.update_assignment(db, row["id"])
    svc.remove_assignment(db, row["id"])
    with pytest.raises(AssignmentNotFound):
        svc.remove_assignment(db, row["id"])


def test_own_course_listings(db, make_user, make_course):
    student = make_user()
    teacher = make_user(roles=("docente",))
    c1, c2 = make_course(), make_course()
    hidden = make_course(activo=False)
    svc.enroll(db, c1.id, student.id)
    svc.enroll(db, c2.id, student.id)
    db.add(CourseStudent(curso_id=hidden.id, usuario_id=student.id))
    db.commit()
    for c in (c1, c2, hidden):
        svc.assign_teacher(db, c.id, teacher.id)

    mine = svc.student_courses(db, student.id)
    assert {c["id"] for c in mine["courses"]} == {c1.id, c2.id}
    assert mine["pagination"]["total"] == 2

    taught = svc.teacher_courses(db, teacher.id)
    assert {c["id"] for c in taught["courses"]} == {c1.id, c2.id}
    assert all(c["total_estudiantes"] == 1 for c in taught["courses"])


def test_course_students_listing_is_paginated(db, make_user, make_course):
    course = make_course()
    for _ in range(3):
        svc.enroll(db, course.id, make_user().id)
    page = svc.list_course_students(db, course.id, page=2, limit=2)
    assert len(page["estudiantes"]) == 1
    assert page["pagination"] == {
        "page": 2, "limit": 2, "total": 3, "totalPages": 2, "hasNext": False, "hasPrev": True,
    }
