"""
Domain failures. Services raise these; main.py renders them as {error, code, details?}
with the HTTP status looked up from STATUS_BY_CODE (unknown codes -> 500).
"""
from typing import Any

STATUS_BY_CODE: dict[str, int] = {
    # Authentication
    "INVALID_API_KEY": 401,
    "INVALID_CREDENTIALS": 401,
    "INVALID_TOKEN": 401,
    "INVALID_TOKEN_PAYLOAD": 401,
    "TOKEN_EXPIRED": 401,
    "USER_INACTIVE": 401,
    "REFRESH_TOKEN_EXPIRED": 401,
    "REFRESH_TOKEN_INVALID": 401,
    # Authorization
    "INSUFFICIENT_ROLE": 403,
    "STUDENT_REQUIRED": 403,
    "COURSE_ACCESS_DENIED": 403,
    # Not found
    "USER_NOT_FOUND": 404,
    "USER_OR_ROLE_NOT_FOUND": 404,
    "COURSE_NOT_FOUND": 404,
    "STUDENT_NOT_FOUND": 404,
    "ENROLLMENT_NOT_FOUND": 404,
    "ASSIGNMENT_NOT_FOUND": 404,
    "SCHEDULE_NOT_FOUND": 404,
    "APPOINTMENT_NOT_FOUND": 404,
    "ROUTE_NOT_FOUND": 404,
    # Conflicts
    "EMAIL_EXISTS": 409,
    "COURSE_CODE_EXISTS": 409,
    "ALREADY_ENROLLED": 409,
    "ALREADY_ASSIGNED": 409,
    "ROLE_ALREADY_EXISTS": 409,
    "DUPLICATE_RESOURCE": 409,
    "SCHEDULE_CONFLICT": 409,
    "STUDENT_ALREADY_SCHEDULED": 409,
    "INVALID_STATUS_TRANSITION": 409,
    "COURSE_HAS_DEPENDENTS": 409,
    # Validation and business rules framed as bad requests
    "VALIDATION_ERROR": 400,
    "MISSING_FIELDS": 400,
    "REFRESH_TOKEN_MISSING": 400,
    "NO_FIELDS_TO_UPDATE": 400,
    "USER_NOT_TEACHER": 400,
    "INVALID_EXAM_DATE": 400,
    "INVALID_TIME_RANGE": 400,
    "INVALID_CAPACITY": 400,
    "NO_SLOTS_AVAILABLE": 400,
    "SCHEDULE_HAS_STUDENTS": 400,
    "INVALID_REFERENCE": 400,
    "CONSTRAINT_VIOLATION": 400,
    "METHOD_NOT_ALLOWED": 405,
    # Server side
    "DATABASE_ERROR": 500,
    "DIRECTORY_UNAVAILABLE": 502,
}


def status_for_code(code: str) -> int:
    return STATUS_BY_CODE.get(code, 500)


class AppError(Exception):
    """Typed, code-bearing failure. Subclasses fix code and default message."""

    code = "INTERNAL_SERVER_ERROR"
    message = "Error interno del servidor"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return status_for_code(self.code)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


# --- Authentication ---

class InvalidApiKey(AppError):
    code = "INVALID_API_KEY"
    message = "Acceso restringido"


class InvalidCredentials(AppError):
    code = "INVALID_CREDENTIALS"
    message = "Credenciales inválidas"


class InvalidToken(AppError):
    code = "INVALID_TOKEN"
    message = "Token inválido o expirado"


class InvalidTokenPayload(AppError):
    code = "INVALID_TOKEN_PAYLOAD"
    message = "Token inválido (sin usuario_id)"


class TokenExpired(AppError):
    code = "TOKEN_EXPIRED"
    message = "Token expirado"


class UserInactive(AppError):
    code = "USER_INACTIVE"
    message = "Usuario inactivo o no encontrado"


class RefreshTokenMissing(AppError):
    code = "REFRESH_TOKEN_MISSING"
    message = "Refresh token requerido"


class RefreshTokenExpired(AppError):
    code = "REFRESH_TOKEN_EXPIRED"
    message = "Refresh token expirado"


class RefreshTokenInvalid(AppError):
    code = "REFRESH_TOKEN_INVALID"
    message = "Refresh token inválido"


class MissingFields(AppError):
    code = "MISSING_FIELDS"
    message = "Email y contraseña son requeridos"


class DirectoryUnavailable(AppError):
    code = "DIRECTORY_UNAVAILABLE"
    message = "Servicio de autenticación institucional no disponible"


# --- Authorization ---

class InsufficientRole(AppError):
    code = "INSUFFICIENT_ROLE"
    message = "Acceso denegado - Rol insuficiente"


class StudentRequired(AppError):
    code = "STUDENT_REQUIRED"
    message = "Acceso restringido a estudiantes"


class CourseAccessDenied(AppError):
    code = "COURSE_ACCESS_DENIED"
    message = "No tienes acceso a este curso"


# --- Users ---

class UserNotFound(AppError):
    code = "USER_NOT_FOUND"
    message = "Usuario no encontrado"


class EmailExists(AppError):
    code = "EMAIL_EXISTS"
    message = "El email ya está registrado"


class RoleAlreadyExists(AppError):
    code = "ROLE_ALREADY_EXISTS"
    message = "El usuario ya tiene este rol"


class UserOrRoleNotFound(AppError):
    code = "USER_OR_ROLE_NOT_FOUND"
    message = "Usuario o rol no encontrado"


class NoFieldsToUpdate(AppError):
    code = "NO_FIELDS_TO_UPDATE"
    message = "No hay campos para actualizar"


# --- Courses and enrollment ---

class CourseNotFound(AppError):
    code = "COURSE_NOT_FOUND"
    message = "Curso no encontrado"


class CourseCodeExists(AppError):
    code = "COURSE_CODE_EXISTS"
    message = "El código del curso ya existe"


class CourseHasDependents(AppError):
    code = "COURSE_HAS_DEPENDENTS"
    message = "No se puede eliminar un curso con estudiantes o docentes asignados"


class StudentNotFound(AppError):
    code = "STUDENT_NOT_FOUND"
    message = "Estudiante no encontrado o inactivo"


class AlreadyEnrolled(AppError):
    code = "ALREADY_ENROLLED"
    message = "El estudiante ya está inscrito en este curso"


class EnrollmentNotFound(AppError):
    code = "ENROLLMENT_NOT_FOUND"
    message = "Inscripción no encontrada"


class InvalidStatusTransition(AppError):
    code = "INVALID_STATUS_TRANSITION"
    message = "Transición de estado no permitida"


class UserNotTeacher(AppError):
    code = "USER_NOT_TEACHER"
    message = "El usuario no tiene rol de docente"


class AlreadyAssigned(AppError):
    code = "ALREADY_ASSIGNED"
    message = "El docente ya está asignado a este curso"


class AssignmentNotFound(AppError):
    code = "ASSIGNMENT_NOT_FOUND"
    message = "Asignación no encontrada"


# --- Exam scheduling ---

class InvalidExamDate(AppError):
    code = "INVALID_EXAM_DATE"
    message = "La fecha del examen debe ser futura"


class InvalidTimeRange(AppError):
    code = "INVALID_TIME_RANGE"
    message = "La hora de fin debe ser posterior a la hora de inicio"


class InvalidCapacity(AppError):
    code = "INVALID_CAPACITY"
    message = "Los cupos no pueden ser menores a los cupos ocupados"


class ScheduleConflict(AppError):
    code = "SCHEDULE_CONFLICT"
    message = "Ya existe un horario para esa fecha y hora"


class ScheduleNotFound(AppError):
    code = "SCHEDULE_NOT_FOUND"
    message = "Horario no encontrado o inactivo"


class NoSlotsAvailable(AppError):
    code = "NO_SLOTS_AVAILABLE"
    message = "No hay cupos disponibles en este horario"


class StudentAlreadyScheduled(AppError):
    code = "STUDENT_ALREADY_SCHEDULED"
    message = "El estudiante ya está agendado para este horario"


class AppointmentNotFound(AppError):
    code = "APPOINTMENT_NOT_FOUND"
    message = "Agendamiento no encontrado"


class ScheduleHasStudents(AppError):
    code = "SCHEDULE_HAS_STUDENTS"
    message = "No se puede eliminar un horario que tiene estudiantes agendados"
