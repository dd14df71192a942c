"""
Application configuration from environment variables.
Loads .env from the backend directory so secrets are found regardless of cwd.
"""
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env next to backend/ (parent of suficiencia/)
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    from dotenv import load_dotenv
    load_dotenv(_ENV_FILE, override=False)

# Placeholder values accepted only outside production (checked at startup).
DEFAULT_JWT_SECRET = "change-me-in-production"
DEFAULT_JWT_REFRESH_SECRET = "change-me-refresh-in-production"
DEFAULT_API_KEY = "dev-api-key"


class Settings(BaseSettings):
    """Load and validate config from env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database: sqlite for local work and tests, postgresql in production
    database_url: str = "sqlite:///./suficiencia_dev.db"
    db_pool_size: int = 20
    db_pool_timeout: int = 60

    # Environment: development | test | production. Production enforces real secrets.
    env: str = ""
    log_level: str = "INFO"

    # JWT. Access and refresh tokens are signed with distinct secrets; there is no derived fallback.
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_refresh_secret: str = DEFAULT_JWT_REFRESH_SECRET
    jwt_algorithm: str = "HS256"
    # Durations: "15m", "7d", "3600" (seconds) ...
    jwt_expiry: str = "15m"
    jwt_refresh_expiry: str = "7d"

    # Perimeter key sent by trusted clients in the x-api-key header
    api_key: str = DEFAULT_API_KEY

    # Institutional directory used by /api/auth/login. Empty = development stub.
    directory_url: str = ""
    directory_timeout_seconds: float = 10.0

    # CORS: comma-separated origins
    cors_origins: str = "http://localhost:3000,http://localhost:3001"

    default_page_size: int = 20
    max_page_size: int = 100

    @model_validator(mode="after")
    def _distinct_jwt_secrets(self) -> "Settings":
        if not (self.jwt_secret or "").strip() or not (self.jwt_refresh_secret or "").strip():
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must both be set")
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_REFRESH_SECRET must differ from JWT_SECRET")
        return self

    @property
    def is_production(self) -> bool:
        return (self.env or "").strip().lower() == "production"

    def production_problems(self) -> list[str]:
        """Settings that are unsafe to run with in production. Empty list when fine."""
        if not self.is_production:
            return []
        problems = []
        if self.jwt_secret == DEFAULT_JWT_SECRET:
            problems.append("JWT_SECRET")
        if self.jwt_refresh_secret == DEFAULT_JWT_REFRESH_SECRET:
            problems.append("JWT_REFRESH_SECRET")
        if self.api_key == DEFAULT_API_KEY:
            problems.append("API_KEY")
        if not (self.directory_url or "").strip():
            problems.append("DIRECTORY_URL")
        return problems


settings = Settings()
