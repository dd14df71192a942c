"""
Exam schedules (horarios_examenes) and student bookings (agendamientos_examen).
cupos_ocupados is maintained incrementally by the scheduling service, never recomputed.
"""
import uuid
from datetime import date, datetime, time
from sqlalchemy import Boolean, Integer, String, Date, Time, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from suficiencia.database import Base
from suficiencia.models.types import UuidType

BOOKED = "agendado"
CONFIRMED = "confirmado"
CANCELLED = "cancelado"
COMPLETED = "completado"
BOOKING_STATES = (BOOKED, CONFIRMED, CANCELLED, COMPLETED)


class ExamSchedule(Base):
    __tablename__ = "horarios_examenes"

    id: Mapped[uuid.UUID] = mapped_column(UuidType(), primary_key=True, default=uuid.uuid4)
    fecha_examen: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    hora_inicio: Mapped[time] = mapped_column(Time, nullable=False)
    hora_fin: Mapped[time] = mapped_column(Time, nullable=False)
    cupos_disponibles: Mapped[int] = mapped_column(Integer, nullable=False)
    cupos_ocupados: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    creado_por: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True
    )
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_actualizacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("cupos_disponibles > 0", name="horarios_examenes_cupos_positive"),
        CheckConstraint(
            "cupos_ocupados >= 0 AND cupos_ocupados <= cupos_disponibles",
            name="horarios_examenes_cupos_range",
        ),
        CheckConstraint("hora_inicio < hora_fin", name="horarios_examenes_horas_check"),
    )

    bookings = relationship("ExamBooking", back_populates="schedule")
    creator = relationship("User")


class ExamBooking(Base):
    __tablename__ = "agendamientos_examen"

    id: Mapped[uuid.UUID] = mapped_column(UuidType(), primary_key=True, default=uuid.uuid4)
    horario_examen_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("horarios_examenes.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    estudiante_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("estudiantes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    estado: Mapped[str] = mapped_column(String(20), nullable=False, default=BOOKED)
    fecha_agendamiento: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("horario_examen_id", "estudiante_id", name="uq_agendamientos_horario_estudiante"),
        CheckConstraint(
            "estado IN ('agendado', 'confirmado', 'cancelado', 'completado')",
            name="agendamientos_examen_estado_check",
        ),
    )

    schedule = relationship("ExamSchedule", back_populates="bookings")
    estudiante = relationship("Estudiante")
