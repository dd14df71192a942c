"""
Exam schedule and booking schemas.
"""
from datetime import date, time
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

BookingState = Literal["agendado", "confirmado", "cancelado", "completado"]


class ScheduleCreate(BaseModel):
    fecha_examen: date
    hora_inicio: time
    hora_fin: time
    cupos_disponibles: int = Field(gt=0)


class ScheduleUpdate(BaseModel):
    fecha_examen: date | None = None
    hora_inicio: time | None = None
    hora_fin: time | None = None
    cupos_disponibles: int | None = Field(default=None, gt=0)
    activo: bool | None = None


class ScheduleStudentRequest(BaseModel):
    usuario_id: UUID


class BookingStatusUpdate(BaseModel):
    estado: BookingState
