"""
Identity gate and authorization policy.

authenticate() turns a bearer token into an AuthContext (active users only);
check_roles() and course_access() decide allow/deny for role-gated and course-scoped routes.
The FastAPI dependencies in api/deps.py wrap these in declared order: API key -> JWT -> roles.
"""
import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from suficiencia.errors import (
    CourseAccessDenied,
    InsufficientRole,
    InvalidToken,
    InvalidTokenPayload,
    StudentRequired,
    UserInactive,
)
from suficiencia.models.enrollment import CourseStudent, CourseTeacher, WITHDRAWN
from suficiencia.models.student import Estudiante
from suficiencia.models.user import ROLE_ADMIN, User, UserRole, normalize_roles
from suficiencia.services.tokens import TokenService

logger = logging.getLogger(__name__)

ACCESS_TEACHER = "docente"
ACCESS_STUDENT = "estudiante"
ACCESS_ADMIN = "administrador"


@dataclass
class AuthContext:
    usuario_id: uuid.UUID
    email: str | None
    roles: list[str] = field(default_factory=list)
    estudiante_id: uuid.UUID | None = None
    course_access: str | None = None

    def has_any_role(self, allowed) -> bool:
        return bool(set(self.roles) & set(allowed))


def _parse_uuid(value) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def authenticate(db: Session, tokens: TokenService, token: str | None) -> AuthContext:
    """
    Verify the access token and require an active user row. The context carries the roles
    stored now, not the ones in the claims. Raises InvalidToken/TokenExpired/UserInactive.
    """
    if not token or not token.strip():
        raise InvalidToken("No autenticado. Envíe el header: Authorization: Bearer <token>")
    claims = tokens.verify_access_token(token.strip())
    raw_id = claims.get("usuario_id")
    if not raw_id:
        logger.warning("Token without usuario_id")
        raise InvalidTokenPayload()
    usuario_id = _parse_uuid(raw_id)
    if usuario_id is None:
        raise InvalidTokenPayload()
    activo = db.query(User.activo).filter(User.id == usuario_id).scalar()
    if not activo:
        logger.warning("Rejected token for inactive or missing user %s", usuario_id)
        raise UserInactive()
    # Stored roles, not token claims
    stored = db.query(UserRole.rol).filter(UserRole.usuario_id == usuario_id).all()
    return AuthContext(
        usuario_id=usuario_id,
        email=claims.get("email"),
        roles=normalize_roles(r.rol for r in stored),
    )


def require_student(db: Session, ctx: AuthContext) -> uuid.UUID:
    """Resolve the caller's estudiante record; attaches it to ctx. Raises StudentRequired."""
    estudiante_id = db.query(Estudiante.id).filter(Estudiante.usuario_id == ctx.usuario_id).scalar()
    if estudiante_id is None:
        raise StudentRequired()
    ctx.estudiante_id = estudiante_id
    return estudiante_id


def check_roles(ctx: AuthContext, allowed) -> None:
    """Pass when the caller holds at least one allowed role. Empty role sets never pass."""
    allowed = list(allowed)
    if not ctx.has_any_role(allowed):
        raise InsufficientRole(details={"required_roles": allowed})


def course_access(db: Session, ctx: AuthContext, course_id) -> str:
    """
    Which relationship grants ctx access to the course: active teacher, enrolled student
    (estado != retirado) or administrator. Records it on ctx. Raises CourseAccessDenied.
    """
    cid = _parse_uuid(course_id)
    if cid is None:
        raise CourseAccessDenied()
    teaches = (
        db.query(CourseTeacher.id)
        .filter(
            CourseTeacher.curso_id == cid,
            CourseTeacher.usuario_id == ctx.usuario_id,
            CourseTeacher.activo.is_(True),
        )
        .first()
    )
    if teaches:
        ctx.course_access = ACCESS_TEACHER
        return ACCESS_TEACHER
    enrolled = (
        db.query(CourseStudent.id)
        .filter(
            CourseStudent.curso_id == cid,
            CourseStudent.usuario_id == ctx.usuario_id,
            CourseStudent.estado != WITHDRAWN,
        )
        .first()
    )
    if enrolled:
        ctx.course_access = ACCESS_STUDENT
        return ACCESS_STUDENT
    if ROLE_ADMIN in ctx.roles:
        ctx.course_access = ACCESS_ADMIN
        return ACCESS_ADMIN
    raise CourseAccessDenied()
