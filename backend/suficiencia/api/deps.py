"""
Shared dependencies: token service, directory, and the identity/authorization gate.

The API key is checked by middleware (main.py) before any of these run; then the Bearer token
(get_current_user), then roles (authorize) and course membership (require_course_access).
"""
import logging
from functools import lru_cache
from uuid import UUID

from fastapi import Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from suficiencia.config import settings
from suficiencia.database import get_db
from suficiencia.services import access
from suficiencia.services.access import AuthContext
from suficiencia.services.directory import Directory, build_directory
from suficiencia.services.tokens import TokenService, build_token_service

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


@lru_cache
def get_token_service() -> TokenService:
    return build_token_service(settings)


@lru_cache
def get_directory() -> Directory:
    return build_directory(settings)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthContext:
    """Require a valid Bearer access token for an active user."""
    token = getattr(credentials, "credentials", None)
    return access.authenticate(db, tokens, token)


def authorize(*roles: str):
    """Dependency factory: caller must hold at least one of roles."""

    def _check(ctx: AuthContext = Depends(get_current_user)) -> AuthContext:
        access.check_roles(ctx, roles)
        return ctx

    return _check


def require_course_access(param_name: str = "id"):
    """
    Dependency factory for routes whose course id sits in the {param_name} path parameter.
    Caller must teach the course, be enrolled in it, or be an administrator.
    """

    def _check(
        request: Request,
        ctx: AuthContext = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> AuthContext:
        raw = request.path_params.get(param_name)
        try:
            course_id = UUID(str(raw))
        except ValueError:
            raise RequestValidationError(
                [{"loc": ("path", param_name), "msg": "Input should be a valid UUID", "type": "uuid_parsing"}]
            )
        access.course_access(db, ctx, course_id)
        return ctx

    return _check


def get_student_context(
    ctx: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Caller must have an estudiante record; ctx.estudiante_id is set."""
    access.require_student(db, ctx)
    return ctx
