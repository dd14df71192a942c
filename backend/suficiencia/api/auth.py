"""
Auth routes: login (directory or local password), register, refresh, verify, logout.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from suficiencia.api.deps import get_current_user, get_directory, get_token_service
from suficiencia.database import get_db
from suficiencia.schemas.auth import LoginRequest, RefreshRequest, RegisterRequest
from suficiencia.services import auth as auth_service
from suficiencia.services.access import AuthContext
from suficiencia.services.directory import Directory
from suficiencia.services.tokens import TokenService

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login")
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    directory: Directory = Depends(get_directory),
):
    """Returns {token, refreshToken, tokenDurationMs, refreshDurationMs, usuario}."""
    return auth_service.login(db, tokens, directory, data.email, data.password)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Register a new user; default role is estudiante."""
    usuario = auth_service.register(db, data)
    return {"message": "Usuario registrado exitosamente", "usuario": usuario}


@router.post("/refresh")
def refresh(
    data: RefreshRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    return auth_service.refresh(db, tokens, data.refreshToken)


@router.get("/verify")
def verify(ctx: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return auth_service.verify(db, ctx.usuario_id)


@router.post("/logout")
def logout(ctx: AuthContext = Depends(get_current_user)):
    # Tokens are stateless; the client discards them.
    logger.info("Logout for user %s", ctx.usuario_id)
    return {"message": "Sesión cerrada exitosamente"}
