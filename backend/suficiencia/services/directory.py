"""
Institutional directory: verifies credentials of users without a local password.
DirectoryClient calls the directory over HTTP (httpx) and retries on 429/5xx and
transport errors (tenacity). StubDirectory is the development stand-in used when
DIRECTORY_URL is empty; production refuses to start without a real directory.
"""
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from suficiencia.errors import DirectoryUnavailable, InvalidCredentials

logger = logging.getLogger(__name__)


@dataclass
class DirectoryProfile:
    email: str
    nombres: str
    apellidos: str
    codigo_institucional: str | None = None


class Directory(Protocol):
    def authenticate(self, email: str, password: str) -> DirectoryProfile: ...


def _is_retryable(exc: BaseException) -> bool:
    """Retry on rate limit, server errors and connection problems."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code == 429 or code >= 500
    return False


class DirectoryClient:
    """POST {base_url}/auth with {email, password}; expects {success, user: {...}}."""

    def __init__(self, base_url: str, timeout: float = 10.0, attempts: int = 3, backoff: float = 0.5, transport=None):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._attempts = attempts
        self._backoff = backoff
        self._transport = transport

    def _post(self, email: str, password: str) -> httpx.Response:
        @retry(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self._attempts),
            wait=wait_exponential(multiplier=self._backoff, min=self._backoff, max=5),
            reraise=True,
        )
        def _call():
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(f"{self._base_url}/auth", json={"email": email, "password": password})
                if response.status_code == 429 or response.status_code >= 500:
                    response.raise_for_status()
                return response

        return _call()

    def authenticate(self, email: str, password: str) -> DirectoryProfile:
        try:
            response = self._post(email, password)
        except httpx.HTTPError as e:
            logger.warning("Directory request failed after retries: %s", e)
            raise DirectoryUnavailable() from e

        if response.status_code in (400, 401, 403):
            raise InvalidCredentials()
        try:
            data = response.json()
        except ValueError as e:
            logger.warning("Directory returned non-JSON body (status %s)", response.status_code)
            raise DirectoryUnavailable() from e
        if response.status_code != 200 or not data.get("success"):
            raise InvalidCredentials()

        user = data.get("user") or {}
        return DirectoryProfile(
            email=(user.get("email") or email).strip().lower(),
            nombres=user.get("nombres") or "",
            apellidos=user.get("apellidos") or "",
            codigo_institucional=user.get("codigo_institucional") or user.get("cedula"),
        )


class StubDirectory:
    """Accepts any non-empty credentials. Development only."""

    def authenticate(self, email: str, password: str) -> DirectoryProfile:
        if not email or not password:
            raise InvalidCredentials()
        local = email.split("@", 1)[0]
        parts = [p for p in local.replace("_", ".").split(".") if p]
        nombres = parts[0].capitalize() if parts else local
        apellidos = " ".join(p.capitalize() for p in parts[1:])
        return DirectoryProfile(email=email.strip().lower(), nombres=nombres, apellidos=apellidos)


def build_directory(settings) -> Directory:
    if (settings.directory_url or "").strip():
        return DirectoryClient(settings.directory_url, timeout=settings.directory_timeout_seconds)
    logger.info("DIRECTORY_URL not set; using development directory stub")
    return StubDirectory()
