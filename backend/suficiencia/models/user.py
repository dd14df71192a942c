"""
User model (usuarios) and role memberships (usuario_roles).
A user holds a set of roles: estudiante | docente | administrador. Roles are not exclusive.
"""
import uuid
from datetime import datetime
from sqlalchemy import Boolean, String, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from suficiencia.database import Base
from suficiencia.models.types import UuidType

ROLE_STUDENT = "estudiante"
ROLE_TEACHER = "docente"
ROLE_ADMIN = "administrador"
ROLES = (ROLE_STUDENT, ROLE_TEACHER, ROLE_ADMIN)


def normalize_roles(value) -> list[str]:
    """
    Canonical role list: sorted, de-duplicated, no empty entries.
    Accepts a list/tuple/set, None, or a Postgres array literal such as "{docente,estudiante}".
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.replace("{", "").replace("}", "").split(",")
    else:
        items = list(value)
    return sorted({str(r).strip() for r in items if r is not None and str(r).strip()})


class User(Base):
    __tablename__ = "usuarios"

    id: Mapped[uuid.UUID] = mapped_column(UuidType(), primary_key=True, default=uuid.uuid4)
    codigo_institucional: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    nombres: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    apellidos: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    # Null for users authenticated by the institutional directory
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_actualizacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    role_rows = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")
    estudiante = relationship("Estudiante", back_populates="user", uselist=False)

    @property
    def roles(self) -> list[str]:
        return normalize_roles(r.rol for r in self.role_rows)

    def has_role(self, role: str) -> bool:
        return role in self.roles


class UserRole(Base):
    __tablename__ = "usuario_roles"

    id: Mapped[uuid.UUID] = mapped_column(UuidType(), primary_key=True, default=uuid.uuid4)
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rol: Mapped[str] = mapped_column(String(30), nullable=False)
    fecha_asignacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("usuario_id", "rol", name="uq_usuario_roles_usuario_rol"),
        CheckConstraint("rol IN ('estudiante', 'docente', 'administrador')", name="usuario_roles_rol_check"),
    )

    user = relationship("User", back_populates="role_rows")
