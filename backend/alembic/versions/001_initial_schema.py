"""Initial schema: users and roles, students, courses, enrollment, exam scheduling.

Revision ID: 001
Revises:
Create Date: Initial

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "usuarios",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("codigo_institucional", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("nombres", sa.String(255), nullable=False, server_default=""),
        sa.Column("apellidos", sa.String(255), nullable=False, server_default=""),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("activo", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("fecha_creacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("fecha_actualizacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("codigo_institucional", name="usuarios_codigo_institucional_key"),
    )
    op.create_index("ix_usuarios_email", "usuarios", ["email"], unique=True)

    op.create_table(
        "usuario_roles",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("usuario_id", _uuid(), nullable=False),
        sa.Column("rol", sa.String(30), nullable=False),
        sa.Column("fecha_asignacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("rol IN ('estudiante', 'docente', 'administrador')", name="usuario_roles_rol_check"),
        sa.ForeignKeyConstraint(["usuario_id"], ["usuarios.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("usuario_id", "rol", name="uq_usuario_roles_usuario_rol"),
    )
    op.create_index("ix_usuario_roles_usuario_id", "usuario_roles", ["usuario_id"], unique=False)

    op.create_table(
        "estudiantes",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("usuario_id", _uuid(), nullable=False),
        sa.Column("fecha_creacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["usuario_id"], ["usuarios.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("usuario_id", name="estudiantes_usuario_id_key"),
    )

    op.create_table(
        "cursos",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("codigo_curso", sa.String(50), nullable=False),
        sa.Column("nombre", sa.String(255), nullable=False),
        sa.Column("descripcion", sa.Text(), nullable=True),
        sa.Column("porcentaje_minimo_examen", sa.Numeric(5, 2), nullable=False, server_default="70"),
        sa.Column("activo", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("creado_por", _uuid(), nullable=True),
        sa.Column("fecha_creacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("fecha_actualizacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["creado_por"], ["usuarios.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cursos_codigo_curso", "cursos", ["codigo_curso"], unique=True)

    op.create_table(
        "curso_estudiantes",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("curso_id", _uuid(), nullable=False),
        sa.Column("usuario_id", _uuid(), nullable=False),
        sa.Column("estado", sa.String(20), nullable=False, server_default="inscrito"),
        sa.Column("nota_final", sa.Numeric(5, 2), nullable=True),
        sa.Column("fecha_inscripcion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("fecha_estado", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "estado IN ('inscrito', 'aprobado', 'reprobado', 'retirado')", name="curso_estudiantes_estado_check"
        ),
        sa.ForeignKeyConstraint(["curso_id"], ["cursos.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["usuario_id"], ["usuarios.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("curso_id", "usuario_id", name="uq_curso_estudiantes_curso_usuario"),
    )
    op.create_index("ix_curso_estudiantes_curso_id", "curso_estudiantes", ["curso_id"], unique=False)
    op.create_index("ix_curso_estudiantes_usuario_id", "curso_estudiantes", ["usuario_id"], unique=False)

    op.create_table(
        "curso_docentes",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("curso_id", _uuid(), nullable=False),
        sa.Column("usuario_id", _uuid(), nullable=False),
        sa.Column("tipo_asignacion", sa.String(20), nullable=False, server_default="titular"),
        sa.Column("activo", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("fecha_asignacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "tipo_asignacion IN ('titular', 'asistente', 'colaborador')", name="curso_docentes_tipo_check"
        ),
        sa.ForeignKeyConstraint(["curso_id"], ["cursos.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["usuario_id"], ["usuarios.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("curso_id", "usuario_id", name="uq_curso_docentes_curso_usuario"),
    )
    op.create_index("ix_curso_docentes_curso_id", "curso_docentes", ["curso_id"], unique=False)
    op.create_index("ix_curso_docentes_usuario_id", "curso_docentes", ["usuario_id"], unique=False)

    op.create_table(
        "horarios_examenes",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("fecha_examen", sa.Date(), nullable=False),
        sa.Column("hora_inicio", sa.Time(), nullable=False),
        sa.Column("hora_fin", sa.Time(), nullable=False),
        sa.Column("cupos_disponibles", sa.Integer(), nullable=False),
        sa.Column("cupos_ocupados", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("activo", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("creado_por", _uuid(), nullable=True),
        sa.Column("fecha_creacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("fecha_actualizacion", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("cupos_disponibles > 0", name="horarios_examenes_cupos_positive"),
        sa.CheckConstraint(
            "cupos_ocupados >= 0 AND cupos_ocupados <= cupos_disponibles", name="horarios_examenes_cupos_range"
        ),
        sa.CheckConstraint("hora_inicio < hora_fin", name="horarios_examenes_horas_check"),
        sa.ForeignKeyConstraint(["creado_por"], ["usuarios.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_horarios_examenes_fecha_examen", "horarios_examenes", ["fecha_examen"], unique=False)

    op.create_table(
        "agendamientos_examen",
        sa.Column("id", _uuid(), nullable=False),
        sa.Column("horario_examen_id", _uuid(), nullable=False),
        sa.Column("estudiante_id", _uuid(), nullable=False),
        sa.Column("estado", sa.String(20), nullable=False, server_default="agendado"),
        sa.Column("fecha_agendamiento", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "estado IN ('agendado', 'confirmado', 'cancelado', 'completado')",
            name="agendamientos_examen_estado_check",
        ),
        sa.ForeignKeyConstraint(["horario_examen_id"], ["horarios_examenes.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["estudiante_id"], ["estudiantes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("horario_examen_id", "estudiante_id", name="uq_agendamientos_horario_estudiante"),
    )
    op.create_index(
        "ix_agendamientos_examen_horario_examen_id", "agendamientos_examen", ["horario_examen_id"], unique=False
    )
    op.create_index("ix_agendamientos_examen_estudiante_id", "agendamientos_examen", ["estudiante_id"], unique=False)


def downgrade() -> None:
    op.drop_table("agendamientos_examen")
    op.drop_table("horarios_examenes")
    op.drop_table("curso_docentes")
    op.drop_table("curso_estudiantes")
    op.drop_table("cursos")
    op.drop_table("estudiantes")
    op.drop_table("usuario_roles")
    op.drop_table("usuarios")
