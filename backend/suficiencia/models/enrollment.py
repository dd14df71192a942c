"""
Enrollment (curso_estudiantes) and teacher assignment (curso_docentes).
At most one row per (curso_id, usuario_id) in each table, enforced by unique constraints.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Boolean, String, Numeric, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from suficiencia.database import Base
from suficiencia.models.types import UuidType

ENROLLED = "inscrito"
PASSED = "aprobado"
FAILED = "reprobado"
WITHDRAWN = "retirado"
ENROLLMENT_STATES = (ENROLLED, PASSED, FAILED, WITHDRAWN)

ASSIGNMENT_TYPES = ("titular", "asistente", "colaborador")


class CourseStudent(Base):
    __tablename__ = "curso_estudiantes"

    id: Mapped[uuid.UUID] = mapped_column(UuidType(), primary_key=True, default=uuid.uuid4)
    curso_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("cursos.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    estado: Mapped[str] = mapped_column(String(20), nullable=False, default=ENROLLED)
    nota_final: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    fecha_inscripcion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_estado: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("curso_id", "usuario_id", name="uq_curso_estudiantes_curso_usuario"),
        CheckConstraint(
            "estado IN ('inscrito', 'aprobado', 'reprobado', 'retirado')",
            name="curso_estudiantes_estado_check",
        ),
    )

    course = relationship("Course", back_populates="enrollments")
    user = relationship("User")


class CourseTeacher(Base):
    __tablename__ = "curso_docentes"

    id: Mapped[uuid.UUID] = mapped_column(UuidType(), primary_key=True, default=uuid.uuid4)
    curso_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("cursos.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    usuario_id: Mapped[uuid.UUID] = mapped_column(
        UuidType(), ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tipo_asignacion: Mapped[str] = mapped_column(String(20), nullable=False, default="titular")
    activo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    fecha_asignacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("curso_id", "usuario_id", name="uq_curso_docentes_curso_usuario"),
        CheckConstraint(
            "tipo_asignacion IN ('titular', 'asistente', 'colaborador')",
            name="curso_docentes_tipo_check",
        ),
    )

    course = relationship("Course", back_populates="teacher_assignments")
    user = relationship("User")
