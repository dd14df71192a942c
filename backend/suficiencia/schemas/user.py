"""
Admin user and role schemas.
"""
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

Role = Literal["estudiante", "docente", "administrador"]


class UserCreate(BaseModel):
    email: EmailStr
    nombres: str = Field(min_length=1, max_length=255)
    apellidos: str = Field(min_length=1, max_length=255)
    codigo_institucional: str | None = Field(default=None, max_length=50)
    password: str | None = Field(default=None, min_length=6)
    roles: list[Role] = Field(default_factory=lambda: ["estudiante"], min_length=1)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str | None) -> str | None:
        if v is not None and len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes (bcrypt limit)")
        return v


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    nombres: str | None = Field(default=None, min_length=1, max_length=255)
    apellidos: str | None = Field(default=None, min_length=1, max_length=255)
    codigo_institucional: str | None = Field(default=None, max_length=50)
    activo: bool | None = None
    password: str | None = Field(default=None, min_length=6)


class RoleRequest(BaseModel):
    rol: Role


class RolesReplace(BaseModel):
    roles: list[Role] = Field(min_length=1)


class StatusRequest(BaseModel):
    active: bool


class ProfileUpdate(BaseModel):
    nombres: str | None = Field(default=None, min_length=1, max_length=100)
    apellidos: str | None = Field(default=None, min_length=1, max_length=100)
