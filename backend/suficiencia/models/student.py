"""
Estudiante: student linkage record. Exam bookings key off this id, not the user id.
Created whenever a user is granted the estudiante role.
"""
import uuid
from datetime import datetime
from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from suficiencia.database import Base
from suficiencia.models.types import UuidType


class Estudiante(Base):
    __tablename__ = "estudiantes"

    id: Mapped[uuid.UUID] = mapped_column(UuidType(), primary_key=True, default=uuid.uuid4)
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="estudiante")
