"""
Auth service: login with just-in-time provisioning, register, refresh, verify.
Local users are checked against their bcrypt hash; everyone else goes through the
institutional directory. New users get the estudiante role (and an estudiante record).
"""
import logging
import uuid

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from suficiencia.database import transaction
from suficiencia.errors import (
    EmailExists,
    InvalidCredentials,
    InvalidToken,
    MissingFields,
    RefreshTokenExpired,
    RefreshTokenInvalid,
    RefreshTokenMissing,
    TokenExpired,
    UserNotFound,
)
from suficiencia.models.user import ROLE_STUDENT, User
from suficiencia.services.directory import Directory
from suficiencia.services.passwords import hash_password, verify_password
from suficiencia.services.tokens import TokenService
from suficiencia.services.users import grant_role, user_to_dict

logger = logging.getLogger(__name__)


def _public_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "nombres": user.nombres,
        "apellidos": user.apellidos,
        "codigo_institucional": user.codigo_institucional,
        "roles": user.roles,
    }


def _claim_uuid(claims: dict) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(claims.get("usuario_id")))
    except ValueError:
        return None


def _provision(db: Session, profile) -> User:
    """Find the directory user by email or institutional code; create or reactivate it."""
    filters = [User.email == profile.email]
    if profile.codigo_institucional:
        filters.append(User.codigo_institucional == profile.codigo_institucional)
    user = db.query(User).filter(or_(*filters)).first()
    with transaction(db):
        if user is None:
            logger.info("Provisioning new user %s from directory", profile.email)
            user = User(
                codigo_institucional=profile.codigo_institucional,
                email=profile.email,
                nombres=profile.nombres,
                apellidos=profile.apellidos,
                activo=True,
            )
            db.add(user)
            db.flush()
            grant_role(db, user, ROLE_STUDENT)
        else:
            if not user.activo:
                logger.info("Reactivating user %s on login", user.id)
                user.activo = True
            if not user.roles:
                grant_role(db, user, ROLE_STUDENT)
    db.refresh(user)
    return user


def login(db: Session, tokens: TokenService, directory: Directory, email: str | None, password: str | None) -> dict:
    if not email or not password:
        raise MissingFields()
    email = email.strip().lower()
    local = db.query(User).filter(User.email == email).first()
    if local is not None and local.password_hash:
        if not verify_password(password, local.password_hash):
            raise InvalidCredentials()
        user = local
        with transaction(db):
            if not user.activo:
                user.activo = True
            if not user.roles:
                grant_role(db, user, ROLE_STUDENT)
        db.refresh(user)
    else:
        profile = directory.authenticate(email, password)
        user = _provision(db, profile)

    pair = tokens.issue_token_pair({"usuario_id": user.id, "email": user.email, "roles": user.roles})
    logger.info("Login ok for user %s", user.id)
    return {
        "token": pair.access_token,
        "refreshToken": pair.refresh_token,
        "tokenDurationMs": pair.access_ttl_ms,
        "refreshDurationMs": pair.refresh_ttl_ms,
        "usuario": _public_user(user),
    }


def register(db: Session, data) -> dict:
    """Create a user with role estudiante. Raises EmailExists on duplicate email or code."""
    email = data.email.strip().lower()
    if db.query(User.id).filter(User.email == email).first():
        raise EmailExists()
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
            db.flush()
            grant_role(db, user, ROLE_STUDENT)
    except IntegrityError as e:
        logger.warning("Register IntegrityError: %s", e)
        raise EmailExists() from e
    db.refresh(user)
    return user_to_dict(user)


def refresh(db: Session, tokens: TokenService, refresh_token: str | None) -> dict:
    """Reissue an access token carrying the user's current roles. The refresh token is returned unchanged."""
    if not refresh_token:
        raise RefreshTokenMissing()
    try:
        claims = tokens.verify_refresh_token(refresh_token)
    except TokenExpired as e:
        raise RefreshTokenExpired() from e
    except InvalidToken as e:
        raise RefreshTokenInvalid() from e
    user = db.query(User).filter(User.id == _claim_uuid(claims), User.activo.is_(True)).first()
    if user is None:
        logger.warning("Refresh for inactive or missing user %s", claims.get("usuario_id"))
        raise RefreshTokenInvalid()
    return {
        "token": tokens.reissue_access_token({**claims, "email": user.email, "roles": user.roles}),
        "refreshToken": refresh_token,
        "message": "Token renovado exitosamente",
    }


def verify(db: Session, usuario_id) -> dict:
    user = db.query(User).filter(User.id == usuario_id, User.activo.is_(True)).first()
    if user is None:
        raise UserNotFound()
    return {"valid": True, "usuario": _public_user(user)}
