"""Identity gate and authorization policy: authenticate, role checks, course access."""
import uuid

import pytest
from jose import jwt

from suficiencia.errors import (
    CourseAccessDenied,
    InsufficientRole,
    InvalidToken,
    InvalidTokenPayload,
    StudentRequired,
    UserInactive,
)
from suficiencia.models.enrollment import CourseStudent, CourseTeacher
from suficiencia.models.user import normalize_roles
from suficiencia.services import access
from suficiencia.services.access import AuthContext


def _ctx(user):
    return AuthContext(usuario_id=user.id, email=user.email, roles=user.roles)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, []),
        ([], []),
        (["docente", "estudiante", "docente"], ["docente", "estudiante"]),
        ("{docente,estudiante}", ["docente", "estudiante"]),
        ("{}", []),
        (["", None, "administrador"], ["administrador"]),
    ],
)
def test_normalize_roles(value, expected):
    assert normalize_roles(value) == expected


def test_authenticate_valid_token(db, tokens, make_user):
    user = make_user(roles=("docente",))
    pair = tokens.issue_token_pair({"usuario_id": user.id, "email": user.email, "roles": user.roles})
    ctx = access.authenticate(db, tokens, pair.access_token)
    assert ctx.usuario_id == user.id
    assert ctx.roles == ["docente"]


def test_authenticate_uses_stored_roles_not_claims(db, tokens, make_user):
    user = make_user(roles=("estudiante",))
    pair = tokens.issue_token_pair({"usuario_id": user.id, "email": user.email, "roles": ["administrador"]})
    ctx = access.authenticate(db, tokens, pair.access_token)
    assert ctx.roles == ["estudiante"]
    with pytest.raises(InsufficientRole):
        access.check_roles(ctx, ["administrador"])


@pytest.mark.parametrize("token", [None, "", "   "])
def test_authenticate_missing_token(db, tokens, token):
    with pytest.raises(InvalidToken):
        access.authenticate(db, tokens, token)


def test_authenticate_rejects_inactive_user(db, tokens, make_user):
    user = make_user(activo=False)
    pair = tokens.issue_token_pair({"usuario_id": user.id, "email": user.email, "roles": user.roles})
    with pytest.raises(UserInactive):
        access.authenticate(db, tokens, pair.access_token)


def test_authenticate_rejects_unknown_user(db, tokens):
    pair = tokens.issue_token_pair({"usuario_id": uuid.uuid4(), "email": "ghost@x.edu", "roles": []})
    with pytest.raises(UserInactive):
        access.authenticate(db, tokens, pair.access_token)


def test_authenticate_rejects_token_without_usuario_id(db, tokens):
    token = jwt.encode({"email": "a@b.edu", "exp": 4102444800}, "test-access-secret", algorithm="HS256")
    with pytest.raises(InvalidTokenPayload):
        access.authenticate(db, tokens, token)


def test_check_roles_requires_intersection():
    ctx = AuthContext(usuario_id=uuid.uuid4(), email=None, roles=["estudiante"])
    access.check_roles(ctx, ["estudiante", "docente"])
    with pytest.raises(InsufficientRole) as exc:
        access.check_roles(ctx, ["administrador"])
    assert exc.value.details == {"required_roles": ["administrador"]}


def test_check_roles_empty_role_set_never_passes():
    ctx = AuthContext(usuario_id=uuid.uuid4(), email=None, roles=[])
    with pytest.raises(InsufficientRole):
        access.check_roles(ctx, ["estudiante", "docente", "administrador"])


def test_require_student(db, make_user):
    student = make_user(roles=("estudiante",))
    ctx = _ctx(student)
    estudiante_id = access.require_student(db, ctx)
    assert estudiante_id == student.estudiante.id
    assert ctx.estudiante_id == estudiante_id

    teacher = make_user(roles=("docente",))
    with pytest.raises(StudentRequired):
        access.require_student(db, _ctx(teacher))


def test_course_access_teacher(db, make_user, make_course):
    teacher = make_user(roles=("docente",))
    course = make_course()
    db.add(CourseTeacher(curso_id=course.id, usuario_id=teacher.id))
    db.commit()
    ctx = _ctx(teacher)
    assert access.course_access(db, ctx, course.id) == "docente"
    assert ctx.course_access == "docente"


def test_course_access_inactive_assignment_denied(db, make_user, make_course):
    teacher = make_user(roles=("docente",))
    course = make_course()
    db.add(CourseTeacher(curso_id=course.id, usuario_id=teacher.id, activo=False))
    db.commit()
    with pytest.raises(CourseAccessDenied):
        access.course_access(db, _ctx(teacher), course.id)


@pytest.mark.parametrize("estado", ["inscrito", "aprobado", "reprobado"])
def test_course_access_enrolled_student(db, make_user, make_course, estado):
    student = make_user()
    course = make_course()
    db.add(CourseStudent(curso_id=course.id, usuario_id=student.id, estado=estado))
    db.commit()
    assert access.course_access(db, _ctx(student), course.id) == "estudiante"


def test_course_access_withdrawn_student_denied(db, make_user, make_course):
    student = make_user()
    course = make_course()
    db.add(CourseStudent(curso_id=course.id, usuario_id=student.id, estado="retirado"))
    db.commit()
    with pytest.raises(CourseAccessDenied):
        access.course_access(db, _ctx(student), course.id)


def test_course_access_administrator(db, make_user, make_course):
    admin = make_user(roles=("administrador",))
    course = make_course()
    ctx = _ctx(admin)
    assert access.course_access(db, ctx, course.id) == "administrador"
    assert ctx.course_access == "administrador"


def test_course_access_stranger_denied(db, make_user, make_course):
    other = make_user(roles=("estudiante", "docente"))
    course = make_course()
    with pytest.raises(CourseAccessDenied):
        access.course_access(db, _ctx(other), course.id)
