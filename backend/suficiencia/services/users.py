"""
User administration: CRUD, role memberships, student/teacher directories and dashboard counts.
Granting the estudiante role always creates the user's estudiante record.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from suficiencia.database import transaction
from suficiencia.errors import (
    EmailExists,
    NoFieldsToUpdate,
    RoleAlreadyExists,
    UserNotFound,
    UserOrRoleNotFound,
)
from suficiencia.models.course import Course
from suficiencia.models.enrollment import CourseStudent, CourseTeacher
from suficiencia.models.student import Estudiante
from suficiencia.models.user import ROLE_STUDENT, ROLE_TEACHER, ROLES, User, UserRole
from suficiencia.services.pagination import envelope, page_window
from suficiencia.services.passwords import hash_password

logger = logging.getLogger(__name__)

_ACTIVE_WORDS = {"activo", "active", "true", "1"}
_INACTIVE_WORDS = {"inactivo", "inactive", "false", "0"}
_UPDATABLE = ("codigo_institucional", "email", "nombres", "apellidos", "activo")


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "codigo_institucional": user.codigo_institucional,
        "email": user.email,
        "nombres": user.nombres,
        "apellidos": user.apellidos,
        "activo": user.activo,
        "roles": user.roles,
        "fecha_creacion": user.fecha_creacion,
        "fecha_actualizacion": user.fecha_actualizacion,
    }


def grant_role(db: Session, user: User, role: str) -> None:
    """Append a role row to user (caller commits)."""
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    user.role_rows.append(UserRole(rol=role))
    if role == ROLE_STUDENT and user.estudiante is None:
        user.estudiante = Estudiante()


def _get_user(db: Session, user_id) -> User:
    user = db.query(User).options(selectinload(User.role_rows)).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFound()
    return user


def _search_filter(search: str):
    like = f"%{search.strip()}%"
    return or_(
        User.nombres.ilike(like),
        User.apellidos.ilike(like),
        User.email.ilike(like),
        User.codigo_institucional.ilike(like),
    )


def _with_role(role: str):
    return User.id.in_(select(UserRole.usuario_id).where(UserRole.rol == role))


def _status_filter(status: str | None):
    s = (status or "").strip().lower()
    if s in _ACTIVE_WORDS:
        return User.activo.is_(True)
    if s in _INACTIVE_WORDS:
        return User.activo.is_(False)
    return None


def list_users(db: Session, page=1, limit=None, search: str = "", role: str = "", status: str = "") -> dict:
    page, limit, offset = page_window(page, limit)
    q = db.query(User)
    if search and search.strip():
        q = q.filter(_search_filter(search))
    if role:
        q = q.filter(_with_role(role))
    status_clause = _status_filter(status)
    if status_clause is not None:
        q = q.filter(status_clause)
    total = q.count()
    rows = (
        q.options(selectinload(User.role_rows))
        .order_by(User.fecha_creacion.desc(), User.email)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return envelope("usuarios", [user_to_dict(u) for u in rows], page, limit, total)


def get_user(db: Session, user_id) -> dict:
    return user_to_dict(_get_user(db, user_id))


def create_user(db: Session, data) -> dict:
    """Insert the user and all of its roles as one transaction."""
    email = data.email.strip().lower()
    if db.query(User.id).filter(User.email == email).first():
        raise EmailExists()
    roles = list(dict.fromkeys(data.roles or [ROLE_STUDENT]))
    try:
        with transaction(db):
            user = User(
                codigo_institucional=data.codigo_institucional,
                email=email,
                nombres=data.nombres,
                apellidos=data.apellidos,
                password_hash=hash_password(data.password) if data.password else None,
                activo=True,
            )
            db.add(user)
            for role in roles:
                grant_role(db, user, role)
    except IntegrityError as e:
        logger.warning("create_user IntegrityError: %s", e)
        raise EmailExists() from e
    logger.info("Created user %s with roles %s", user.id, roles)
    return get_user(db, user.id)


def update_user(db: Session, user_id, fields: dict) -> dict:
    fields = {k: v for k, v in fields.items() if k in _UPDATABLE or k == "password"}
    if not fields:
        raise NoFieldsToUpdate()
    user = _get_user(db, user_id)
    if "email" in fields and fields["email"]:
        fields["email"] = fields["email"].strip().lower()
        taken = db.query(User.id).filter(User.email == fields["email"], User.id != user.id).first()
        if taken:
            raise EmailExists()
    try:
        with transaction(db):
            for key, value in fields.items():
                if key == "password":
                    user.password_hash = hash_password(value) if value else None
                else:
                    setattr(user, key, value)
    except IntegrityError as e:
        logger.warning("update_user IntegrityError: %s", e)
        raise EmailExists() from e
    return get_user(db, user_id)


# --- Own profile ---

def update_profile(db: Session, user_id, nombres: str | None = None, apellidos: str | None = None) -> dict:
    """Only nombres and apellidos; a None keeps the stored value. Always bumps fecha_actualizacion."""
    user = _get_user(db, user_id)
    with transaction(db):
        if nombres is not None:
            user.nombres = nombres
        if apellidos is not None:
            user.apellidos = apellidos
        user.fecha_actualizacion = func.now()
    return get_user(db, user_id)


def set_user_status(db: Session, user_id, activo: bool) -> dict:
    user = _get_user(db, user_id)
    with transaction(db):
        user.activo = activo
    logger.info("User %s activo=%s", user_id, activo)
    return get_user(db, user_id)


def delete_user(db: Session, user_id) -> dict:
    """Soft delete: the row stays so enrollments and bookings keep their history."""
    set_user_status(db, user_id, False)
    return {"message": "Usuario desactivado exitosamente", "id": user_id}


# --- Roles ---

def get_roles(db: Session, user_id) -> dict:
    user = _get_user(db, user_id)
    return {"usuario_id": user.id, "roles": user.roles}


def add_role(db: Session, user_id, role: str) -> dict:
    user = _get_user(db, user_id)
    if user.has_role(role):
        raise RoleAlreadyExists()
    try:
        with transaction(db):
            grant_role(db, user, role)
    except IntegrityError as e:
        raise RoleAlreadyExists() from e
    return get_roles(db, user_id)


def remove_role(db: Session, user_id, role: str) -> dict:
    row = db.query(UserRole).filter(UserRole.usuario_id == user_id, UserRole.rol == role).first()
    if row is None:
        raise UserOrRoleNotFound()
    with transaction(db):
        db.delete(row)
    return get_roles(db, user_id)


def replace_roles(db: Session, user_id, roles: list[str]) -> dict:
    user = _get_user(db, user_id)
    wanted = list(dict.fromkeys(roles))
    with transaction(db):
        for row in list(user.role_rows):
            if row.rol not in wanted:
                user.role_rows.remove(row)
        held = {r.rol for r in user.role_rows}
        for role in wanted:
            if role not in held:
                grant_role(db, user, role)
    return get_roles(db, user_id)


# --- Stats ---

def _count_active_with_role(db: Session, role: str) -> int:
    return db.query(func.count(User.id)).filter(User.activo.is_(True), _with_role(role)).scalar() or 0


def dashboard_stats(db: Session) -> dict:
    week_ago = datetime.now(timezone.utc) - timedelta(days=7)
    return {
        "totalUsers": db.query(func.count(User.id)).filter(User.activo.is_(True)).scalar() or 0,
        "totalStudents": _count_active_with_role(db, ROLE_STUDENT),
        "totalTeachers": _count_active_with_role(db, ROLE_TEACHER),
        "totalCourses": db.query(func.count(Course.id)).scalar() or 0,
        "activeCourses": db.query(func.count(Course.id)).filter(Course.activo.is_(True)).scalar() or 0,
        "newRegistrations": db.query(func.count(User.id))
        .filter(User.activo.is_(True), User.fecha_creacion >= week_ago)
        .scalar()
        or 0,
    }


def user_stats(db: Session) -> dict:
    now = datetime.now(timezone.utc)
    total = db.query(func.count(User.id)).scalar() or 0
    active = db.query(func.count(User.id)).filter(User.activo.is_(True)).scalar() or 0
    by_role = dict(
        db.query(UserRole.rol, func.count(func.distinct(UserRole.usuario_id))).group_by(UserRole.rol).all()
    )
    return {
        "total_usuarios": total,
        "usuarios_activos": active,
        "usuarios_inactivos": total - active,
        "nuevos_ultimo_mes": db.query(func.count(User.id))
        .filter(User.fecha_creacion >= now - timedelta(days=30))
        .scalar()
        or 0,
        "nuevos_ultima_semana": db.query(func.count(User.id))
        .filter(User.fecha_creacion >= now - timedelta(days=7))
        .scalar()
        or 0,
        "por_rol": {role: int(by_role.get(role, 0)) for role in ROLES},
    }


# --- Student / teacher directories ---

def _person(user: User) -> dict:
    return {
        "id": user.id,
        "codigo_institucional": user.codigo_institucional,
        "email": user.email,
        "nombres": user.nombres,
        "apellidos": user.apellidos,
        "activo": user.activo,
    }


def list_students(
    db: Session, page=1, limit=None, search: str = "", course=None, include_enrollments: bool = False
) -> dict:
    page, limit, offset = page_window(page, limit)
    q = db.query(User).filter(_with_role(ROLE_STUDENT))
    if search and search.strip():
        q = q.filter(_search_filter(search))
    if course:
        q = q.filter(User.id.in_(select(CourseStudent.usuario_id).where(CourseStudent.curso_id == course)))
    total = q.count()
    users = q.order_by(User.apellidos, User.nombres).offset(offset).limit(limit).all()

    rows = []
    ids = [u.id for u in users]
    enrollments: dict = {}
    if ids:
        for cs, c in (
            db.query(CourseStudent, Course)
            .join(Course, Course.id == CourseStudent.curso_id)
            .filter(CourseStudent.usuario_id.in_(ids))
            .order_by(CourseStudent.fecha_inscripcion.desc())
            .all()
        ):
            enrollments.setdefault(cs.usuario_id, []).append(
                {
                    "inscripcion_id": cs.id,
                    "curso_id": c.id,
                    "codigo_curso": c.codigo_curso,
                    "nombre_curso": c.nombre,
                    "estado": cs.estado,
                    "nota_final": cs.nota_final,
                    "fecha_inscripcion": cs.fecha_inscripcion,
                }
            )
    for u in users:
        item = _person(u)
        mine = enrollments.get(u.id, [])
        item["cursos_inscritos"] = len(mine)
        if include_enrollments:
            item["inscripciones"] = mine
        rows.append(item)
    return envelope("estudiantes", rows, page, limit, total)


def list_teachers(db: Session, page=1, limit=None, search: str = "", include_assignments: bool = False) -> dict:
    page, limit, offset = page_window(page, limit)
    q = db.query(User).filter(_with_role(ROLE_TEACHER))
    if search and search.strip():
        q = q.filter(_search_filter(search))
    total = q.count()
    users = q.order_by(User.apellidos, User.nombres).offset(offset).limit(limit).all()

    assignments: dict = {}
    ids = [u.id for u in users]
    if ids:
        for ct, c in (
            db.query(CourseTeacher, Course)
            .join(Course, Course.id == CourseTeacher.curso_id)
            .filter(CourseTeacher.usuario_id.in_(ids))
            .order_by(CourseTeacher.fecha_asignacion.desc())
            .all()
        ):
            assignments.setdefault(ct.usuario_id, []).append(
                {
                    "asignacion_id": ct.id,
                    "curso_id": c.id,
                    "codigo_curso": c.codigo_curso,
                    "nombre_curso": c.nombre,
                    "tipo_asignacion": ct.tipo_asignacion,
                    "activo": ct.activo,
                    "fecha_asignacion": ct.fecha_asignacion,
                }
            )
    rows = []
    for u in users:
        item = _person(u)
        mine = assignments.get(u.id, [])
        item["cursos_asignados"] = len(mine)
        if include_assignments:
            item["asignaciones"] = mine
        rows.append(item)
    return envelope("docentes", rows, page, limit, total)
