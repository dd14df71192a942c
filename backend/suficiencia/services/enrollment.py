"""
Enrollment lifecycle (curso_estudiantes) and teacher assignment (curso_docentes).

Students move inscrito -> aprobado | reprobado | retirado; terminal states stay put.
update_status/update_enrollment are the administrative override and do not check the prior
state; withdraw() is the student's own transition and does. Pair uniqueness is enforced by
the table constraints, so concurrent duplicate requests end in AlreadyEnrolled/AlreadyAssigned.
"""
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from suficiencia.database import transaction
from suficiencia.errors import (
    AlreadyAssigned,
    AlreadyEnrolled,
    AssignmentNotFound,
    EnrollmentNotFound,
    InvalidStatusTransition,
    NoFieldsToUpdate,
    StudentNotFound,
    UserNotTeacher,
)
from suficiencia.models.course import Course
from suficiencia.models.enrollment import (
    ENROLLED,
    FAILED,
    PASSED,
    WITHDRAWN,
    CourseStudent,
    CourseTeacher,
)
from suficiencia.models.user import ROLE_STUDENT, ROLE_TEACHER, User, UserRole
from suficiencia.services.courses import course_to_dict, get_course_row
from suficiencia.services.pagination import envelope, page_window

logger = logging.getLogger(__name__)

ENROLLMENT_TRANSITIONS: dict[str, frozenset] = {
    ENROLLED: frozenset({PASSED, FAILED, WITHDRAWN}),
    PASSED: frozenset(),
    FAILED: frozenset(),
    WITHDRAWN: frozenset(),
}


def check_enrollment_transition(current: str, target: str) -> None:
    if target not in ENROLLMENT_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(details={"from": current, "to": target})


def enrollment_to_dict(cs: CourseStudent) -> dict:
    return {
        "id": cs.id,
        "curso_id": cs.curso_id,
        "usuario_id": cs.usuario_id,
        "estado": cs.estado,
        "nota_final": cs.nota_final,
        "fecha_inscripcion": cs.fecha_inscripcion,
        "fecha_estado": cs.fecha_estado,
    }


def assignment_to_dict(ct: CourseTeacher) -> dict:
    return {
        "id": ct.id,
        "curso_id": ct.curso_id,
        "usuario_id": ct.usuario_id,
        "tipo_asignacion": ct.tipo_asignacion,
        "activo": ct.activo,
        "fecha_asignacion": ct.fecha_asignacion,
    }


def _holds_role(db: Session, usuario_id, role: str, active_only: bool = True) -> bool:
    q = db.query(UserRole.id).join(User, User.id == UserRole.usuario_id).filter(
        UserRole.usuario_id == usuario_id, UserRole.rol == role
    )
    if active_only:
        q = q.filter(User.activo.is_(True))
    return q.first() is not None


# --- Students ---

def enroll(db: Session, course_id, usuario_id, estado: str = ENROLLED) -> dict:
    """Checks in order: course exists and is active, user is an active student, not already enrolled."""
    get_course_row(db, course_id, active_only=True)
    if not _holds_role(db, usuario_id, ROLE_STUDENT):
        raise StudentNotFound()
    exists = (
        db.query(CourseStudent.id)
        .filter(CourseStudent.curso_id == course_id, CourseStudent.usuario_id == usuario_id)
        .first()
    )
    if exists:
        raise AlreadyEnrolled()
    row = CourseStudent(curso_id=course_id, usuario_id=usuario_id, estado=estado)
    try:
        with transaction(db):
            db.add(row)
    except IntegrityError as e:
        logger.info("Concurrent enrollment of %s in %s", usuario_id, course_id)
        raise AlreadyEnrolled() from e
    db.refresh(row)
    logger.info("User %s enrolled in course %s (%s)", usuario_id, course_id, estado)
    return enrollment_to_dict(row)


def _apply_status(db: Session, row: CourseStudent, estado, nota_final) -> dict:
    if estado is None and nota_final is None:
        raise NoFieldsToUpdate()
    with transaction(db):
        if estado is not None:
            row.estado = estado
            row.fecha_estado = func.now()
        if nota_final is not None:
            row.nota_final = nota_final
    db.refresh(row)
    return enrollment_to_dict(row)


def _enrollment(db: Session, course_id, usuario_id) -> CourseStudent:
    row = (
        db.query(CourseStudent)
        .filter(CourseStudent.curso_id == course_id, CourseStudent.usuario_id == usuario_id)
        .first()
    )
    if row is None:
        raise EnrollmentNotFound()
    return row


def update_status(db: Session, course_id, usuario_id, estado: str | None = None, nota_final=None) -> dict:
    """Administrative override by (course, student); prior state is not checked."""
    row = _enrollment(db, course_id, usuario_id)
    return _apply_status(db, row, estado, nota_final)


def withdraw(db: Session, course_id, usuario_id) -> dict:
    row = _enrollment(db, course_id, usuario_id)
    check_enrollment_transition(row.estado, WITHDRAWN)
    logger.info("User %s withdrew from course %s", usuario_id, course_id)
    return _apply_status(db, row, WITHDRAWN, None)


def update_enrollment(db: Session, enrollment_id, estado: str | None = None, nota_final=None) -> dict:
    row = db.query(CourseStudent).filter(CourseStudent.id == enrollment_id).first()
    if row is None:
        raise EnrollmentNotFound()
    return _apply_status(db, row, estado, nota_final)


def remove_enrollment(db: Session, enrollment_id) -> dict:
    row = db.query(CourseStudent).filter(CourseStudent.id == enrollment_id).first()
    if row is None:
        raise EnrollmentNotFound()
    with transaction(db):
        db.delete(row)
    return {"message": "Inscripción eliminada exitosamente", "id": enrollment_id}


# --- Teachers ---

def assign_teacher(db: Session, course_id, usuario_id, tipo_asignacion: str = "titular") -> dict:
    get_course_row(db, course_id)
    if not _holds_role(db, usuario_id, ROLE_TEACHER, active_only=False):
        raise UserNotTeacher()
    exists = (
        db.query(CourseTeacher.id)
        .filter(CourseTeacher.curso_id == course_id, CourseTeacher.usuario_id == usuario_id)
        .first()
    )
    if exists:
        raise AlreadyAssigned()
    row = CourseTeacher(curso_id=course_id, usuario_id=usuario_id, tipo_asignacion=tipo_asignacion)
    try:
        with transaction(db):
            db.add(row)
    except IntegrityError as e:
        raise AlreadyAssigned() from e
    db.refresh(row)
    logger.info("Teacher %s assigned to course %s as %s", usuario_id, course_id, tipo_asignacion)
    return assignment_to_dict(row)


def _assignment(db: Session, assignment_id) -> CourseTeacher:
    row = db.query(CourseTeacher).filter(CourseTeacher.id == assignment_id).first()
    if row is None:
        raise AssignmentNotFound()
    return row


def update_assignment(db: Session, assignment_id, tipo_asignacion: str | None = None, activo: bool | None = None) -> dict:
    if tipo_asignacion is None and activo is None:
        raise NoFieldsToUpdate()
    row = _assignment(db, assignment_id)
    with transaction(db):
        if tipo_asignacion is not None:
            row.tipo_asignacion = tipo_asignacion
        if activo is not None:
            row.activo = activo
    db.refresh(row)
    return assignment_to_dict(row)


def remove_assignment(db: Session, assignment_id) -> dict:
    row = _assignment(db, assignment_id)
    with transaction(db):
        db.delete(row)
    return {"message": "Asignación eliminada exitosamente", "id": assignment_id}


# --- Listings ---

def list_course_students(db: Session, course_id, page=1, limit=None) -> dict:
    get_course_row(db, course_id)
    page, limit, offset = page_window(page, limit)
    q = (
        db.query(CourseStudent, User)
        .join(User, User.id == CourseStudent.usuario_id)
        .filter(CourseStudent.curso_id == course_id)
    )
    total = q.count()
    rows = q.order_by(User.apellidos, User.nombres).offset(offset).limit(limit).all()
    items = [
        {
            "id": u.id,
            "nombres": u.nombres,
            "apellidos": u.apellidos,
            "email": u.email,
            "codigo_institucional": u.codigo_institucional,
            "inscripcion_id": cs.id,
            "estado": cs.estado,
            "nota_final": cs.nota_final,
            "fecha_inscripcion": cs.fecha_inscripcion,
            "fecha_estado": cs.fecha_estado,
        }
        for cs, u in rows
    ]
    return envelope("estudiantes", items, page, limit, total)


def list_course_teachers(db: Session, course_id) -> dict:
    get_course_row(db, course_id)
    rows = (
        db.query(CourseTeacher, User)
        .join(User, User.id == CourseTeacher.usuario_id)
        .filter(CourseTeacher.curso_id == course_id)
        .order_by(CourseTeacher.fecha_asignacion)
        .all()
    )
    return {
        "docentes": [
            {
                "id": u.id,
                "nombres": u.nombres,
                "apellidos": u.apellidos,
                "email": u.email,
                "codigo_institucional": u.codigo_institucional,
                "asignacion_id": ct.id,
                "tipo_asignacion": ct.tipo_asignacion,
                "activo": ct.activo,
                "fecha_asignacion": ct.fecha_asignacion,
            }
            for ct, u in rows
        ]
    }


def student_courses(db: Session, usuario_id, page=1, limit=None) -> dict:
    """Active courses the user is enrolled in, any enrollment state."""
    page, limit, offset = page_window(page, limit)
    q = (
        db.query(Course, CourseStudent)
        .join(CourseStudent, CourseStudent.curso_id == Course.id)
        .filter(CourseStudent.usuario_id == usuario_id, Course.activo.is_(True))
    )
    total = q.count()
    rows = q.order_by(CourseStudent.fecha_inscripcion.desc()).offset(offset).limit(limit).all()
    items = []
    for c, cs in rows:
        item = course_to_dict(c)
        item.update(
            estado=cs.estado,
            nota_final=cs.nota_final,
            fecha_inscripcion=cs.fecha_inscripcion,
            fecha_estado=cs.fecha_estado,
        )
        items.append(item)
    return envelope("courses", items, page, limit, total)


def teacher_courses(db: Session, usuario_id, page=1, limit=None) -> dict:
    """Active courses with an active assignment for the user, with student counts."""
    page, limit, offset = page_window(page, limit)
    q = (
        db.query(Course, CourseTeacher)
        .join(CourseTeacher, CourseTeacher.curso_id == Course.id)
        .filter(
            CourseTeacher.usuario_id == usuario_id,
            CourseTeacher.activo.is_(True),
            Course.activo.is_(True),
        )
    )
    total = q.count()
    rows = q.order_by(CourseTeacher.fecha_asignacion.desc()).offset(offset).limit(limit).all()
    ids = [c.id for c, _ in rows]
    counts = {}
    if ids:
        counts = dict(
            db.query(CourseStudent.curso_id, func.count(CourseStudent.id))
            .filter(CourseStudent.curso_id.in_(ids))
            .group_by(CourseStudent.curso_id)
            .all()
        )
    items = []
    for c, ct in rows:
        item = course_to_dict(c)
        item.update(
            tipo_asignacion=ct.tipo_asignacion,
            fecha_asignacion=ct.fecha_asignacion,
            asignacion_activa=ct.activo,
            total_estudiantes=counts.get(c.id, 0),
        )
        items.append(item)
    return envelope("courses", items, page, limit, total)
