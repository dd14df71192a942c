"""
Auth request schemas. Login fields are optional so missing credentials surface as MISSING_FIELDS.
"""
from pydantic import BaseModel, EmailStr, Field, field_validator


def _bcrypt_limit(v: str | None) -> str | None:
    if v is not None and len(v.encode("utf-8")) > 72:
        raise ValueError("Password must be at most 72 bytes (bcrypt limit)")
    return v


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str | None) -> str | None:
        return _bcrypt_limit(v)


class RegisterRequest(BaseModel):
    email: EmailStr
    nombres: str = Field(min_length=1, max_length=255)
    apellidos: str = Field(min_length=1, max_length=255)
    codigo_institucional: str | None = Field(default=None, max_length=50)
    password: str | None = Field(default=None, min_length=6)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str | None) -> str | None:
        return _bcrypt_limit(v)


class RefreshRequest(BaseModel):
    refreshToken: str | None = None
