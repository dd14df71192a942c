"""
Course (cursos). Owns its enrollments (curso_estudiantes) and teacher assignments (curso_docentes).
Deleting a course is refused while either exists.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Boolean, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from suficiencia.database import Base
from suficiencia.models.types import UuidType


class Course(Base):
    __tablename__ = "cursos"

    id: Mapped[uuid.UUID] = mapped_column(UuidType(), primary_key=True, default=uuid.uuid4)
    codigo_curso: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    nombre: Mapped[str] = mapped_column(String(255), nullable=False)
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    porcentaje_minimo_examen: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=70)
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    creado_por: Mapped[uuid.UUID | None] = mapped_column(
        UuidType(), ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True
    )
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_actualizacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    enrollments = relationship("CourseStudent", back_populates="course")
    teacher_assignments = relationship("CourseTeacher", back_populates="course")
