"""
Course, enrollment and teacher-assignment schemas.
"""
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

EnrollmentState = Literal["inscrito", "aprobado", "reprobado", "retirado"]
AssignmentType = Literal["titular", "asistente", "colaborador"]


class CourseCreate(BaseModel):
    codigo_curso: str = Field(min_length=1, max_length=50)
    nombre: str = Field(min_length=1, max_length=255)
    descripcion: str | None = None
    porcentaje_minimo_examen: Decimal = Field(default=Decimal("70"), ge=0, le=100)
    activo: bool = True


class CourseUpdate(BaseModel):
    codigo_curso: str | None = Field(default=None, min_length=1, max_length=50)
    nombre: str | None = Field(default=None, min_length=1, max_length=255)
    descripcion: str | None = None
    porcentaje_minimo_examen: Decimal | None = Field(default=None, ge=0, le=100)
    activo: bool | None = None


class EnrollStudentRequest(BaseModel):
    usuario_id: UUID
    estado: EnrollmentState = "inscrito"


class AssignTeacherRequest(BaseModel):
    usuario_id: UUID
    tipo_asignacion: AssignmentType = "titular"


class EnrollmentStatusUpdate(BaseModel):
    estado: EnrollmentState | None = None
    nota_final: Decimal | None = Field(default=None, ge=0, le=100)


class AssignmentUpdate(BaseModel):
    tipo_asignacion: AssignmentType | None = None
    activo: bool | None = None
