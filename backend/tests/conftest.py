"""
Shared fixtures: an in-memory SQLite database per test, a TestClient with get_db overridden
and the x-api-key header preset, and helpers to create users, courses and tokens.
Environment is fixed before suficiencia is imported so Settings() sees it.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["API_KEY"] = "test-api-key"
os.environ["DIRECTORY_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from suficiencia import models  # noqa: F401
from suficiencia.api.deps import get_directory, get_token_service
from suficiencia.database import Base, get_db
from suficiencia.main import app
from suficiencia.models.course import Course
from suficiencia.models.user import User
from suficiencia.services.directory import StubDirectory
from suficiencia.services.passwords import hash_password
from suficiencia.services.users import grant_role

API_KEY = "test-api-key"

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_directory] = StubDirectory
    try:
        with TestClient(app, headers={"x-api-key": API_KEY}) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_directory, None)


@pytest.fixture
def tokens():
    return get_token_service()


@pytest.fixture
def make_user(db):
    """make_user(email, roles=(...), password=None, activo=True) -> User (committed)."""
    counter = {"n": 0}

    def _make(email=None, roles=("estudiante",), password=None, activo=True):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@uni.example.edu",
            nombres="Nombre",
            apellidos=f"Apellido{counter['n']}",
            codigo_institucional=f"CI{counter['n']:05d}",
            password_hash=hash_password(password) if password else None,
            activo=activo,
        )
        db.add(user)
        for role in roles:
            grant_role(db, user, role)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_course(db):
    counter = {"n": 0}

    def _make(codigo=None, activo=True):
        counter["n"] += 1
        course = Course(codigo_curso=codigo or f"MAT-{counter['n']:03d}", nombre="Matemáticas", activo=activo)
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    return _make


@pytest.fixture
def auth_headers(tokens):
    """auth_headers(user) -> Authorization header carrying a fresh access token."""

    def _headers(user):
        pair = tokens.issue_token_pair({"usuario_id": user.id, "email": user.email, "roles": user.roles})
        return {"Authorization": f"Bearer {pair.access_token}"}

    return _headers
