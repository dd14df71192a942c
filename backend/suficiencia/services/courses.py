"""
Course catalogue: list with per-course counts, create, get, update, delete (refused while
students or teachers are attached), and course stats for the admin dashboard.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from suficiencia.database import transaction
from suficiencia.errors import CourseCodeExists, CourseHasDependents, CourseNotFound, NoFieldsToUpdate
from suficiencia.models.course import Course
from suficiencia.models.enrollment import CourseStudent, CourseTeacher
from suficiencia.services.pagination import envelope, page_window

logger = logging.getLogger(__name__)

_UPDATABLE = ("codigo_curso", "nombre", "descripcion", "porcentaje_minimo_examen", "activo")


def course_to_dict(course: Course) -> dict:
    return {
        "id": course.id,
        "codigo_curso": course.codigo_curso,
        "nombre": course.nombre,
        "descripcion": course.descripcion,
        "porcentaje_minimo_examen": course.porcentaje_minimo_examen,
        "activo": course.activo,
        "creado_por": course.creado_por,
        "fecha_creacion": course.fecha_creacion,
        "fecha_actualizacion": course.fecha_actualizacion,
    }


def get_course_row(db: Session, course_id, active_only: bool = False) -> Course:
    q = db.query(Course).filter(Course.id == course_id)
    if active_only:
        q = q.filter(Course.activo.is_(True))
    course = q.first()
    if course is None:
        raise CourseNotFound()
    return course


def _counts(db: Session, course_ids: list) -> tuple[dict, dict]:
    if not course_ids:
        return {}, {}
    students = dict(
        db.query(CourseStudent.curso_id, func.count(CourseStudent.id))
        .filter(CourseStudent.curso_id.in_(course_ids))
        .group_by(CourseStudent.curso_id)
        .all()
    )
    teachers = dict(
        db.query(CourseTeacher.curso_id, func.count(CourseTeacher.id))
        .filter(CourseTeacher.curso_id.in_(course_ids), CourseTeacher.activo.is_(True))
        .group_by(CourseTeacher.curso_id)
        .all()
    )
    return students, teachers


def list_courses(db: Session, page=1, limit=None, search: str = "", activo=None) -> dict:
    page, limit, offset = page_window(page, limit)
    q = db.query(Course)
    if isinstance(activo, bool):
        q = q.filter(Course.activo.is_(activo))
    if search and search.strip():
        like = f"%{search.strip()}%"
        q = q.filter(or_(Course.nombre.ilike(like), Course.codigo_curso.ilike(like), Course.descripcion.ilike(like)))
    total = q.count()
    rows = q.order_by(Course.fecha_creacion.desc(), Course.codigo_curso).offset(offset).limit(limit).all()
    students, teachers = _counts(db, [c.id for c in rows])
    items = []
    for c in rows:
        item = course_to_dict(c)
        item["total_estudiantes"] = students.get(c.id, 0)
        item["total_docentes"] = teachers.get(c.id, 0)
        items.append(item)
    return envelope("courses", items, page, limit, total)


def get_course(db: Session, course_id) -> dict:
    course = get_course_row(db, course_id)
    item = course_to_dict(course)
    students, teachers = _counts(db, [course.id])
    item["total_estudiantes"] = students.get(course.id, 0)
    item["total_docentes"] = teachers.get(course.id, 0)
    return item


def create_course(db: Session, data, creado_por) -> dict:
    codigo = data.codigo_curso.strip()
    if db.query(Course.id).filter(Course.codigo_curso == codigo).first():
        raise CourseCodeExists()
    course = Course(
        codigo_curso=codigo,
        nombre=data.nombre,
        descripcion=data.descripcion,
        porcentaje_minimo_examen=data.porcentaje_minimo_examen,
        activo=data.activo,
        creado_por=creado_por,
    )
    try:
        with transaction(db):
            db.add(course)
    except IntegrityError as e:
        raise CourseCodeExists() from e
    logger.info("Course %s created by %s", codigo, creado_por)
    db.refresh(course)
    return course_to_dict(course)


def update_course(db: Session, course_id, fields: dict) -> dict:
    fields = {k: v for k, v in fields.items() if k in _UPDATABLE}
    if not fields:
        raise NoFieldsToUpdate()
    course = get_course_row(db, course_id)
    if "codigo_curso" in fields:
        fields["codigo_curso"] = fields["codigo_curso"].strip()
        taken = (
            db.query(Course.id)
            .filter(Course.codigo_curso == fields["codigo_curso"], Course.id != course.id)
            .first()
        )
        if taken:
            raise CourseCodeExists()
    try:
        with transaction(db):
            for key, value in fields.items():
                setattr(course, key, value)
    except IntegrityError as e:
        raise CourseCodeExists() from e
    db.refresh(course)
    return course_to_dict(course)


def delete_course(db: Session, course_id) -> dict:
    course = get_course_row(db, course_id)
    students = db.query(func.count(CourseStudent.id)).filter(CourseStudent.curso_id == course.id).scalar()
    teachers = db.query(func.count(CourseTeacher.id)).filter(CourseTeacher.curso_id == course.id).scalar()
    if students or teachers:
        raise CourseHasDependents(details={"estudiantes": students, "docentes": teachers})
    with transaction(db):
        db.delete(course)
    logger.info("Course %s deleted", course_id)
    return {"message": "Curso eliminado exitosamente", "id": course_id}


def course_stats(db: Session) -> dict:
    month_ago = datetime.now(timezone.utc) - timedelta(days=30)
    total = db.query(func.count(Course.id)).scalar() or 0
    active = db.query(func.count(Course.id)).filter(Course.activo.is_(True)).scalar() or 0
    enrollments, unique_students, courses_with_students = db.query(
        func.count(CourseStudent.id),
        func.count(func.distinct(CourseStudent.usuario_id)),
        func.count(func.distinct(CourseStudent.curso_id)),
    ).one()
    return {
        "total_cursos": total,
        "cursos_activos": active,
        "cursos_inactivos": total - active,
        "nuevos_ultimo_mes": db.query(func.count(Course.id)).filter(Course.fecha_creacion >= month_ago).scalar() or 0,
        "total_inscripciones": enrollments or 0,
        "estudiantes_unicos": unique_students or 0,
        "cursos_con_estudiantes": courses_with_students or 0,
    }
