"""
Token service: access/refresh JWT pairs (python-jose, HS256).
Access and refresh tokens carry the same claims {usuario_id, email, roles} and are signed
with distinct secrets. The refresh token is not rotated on reissue.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from jose import ExpiredSignatureError, JWTError, jwt

from suficiencia.errors import InvalidToken, TokenExpired

DEFAULT_DURATION_MS = 15_000

_UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}
_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d)?\s*$", re.IGNORECASE)

REFRESH_TYPE = "refresh"


def parse_duration_ms(value) -> int:
    """
    Duration to milliseconds. Numbers are already milliseconds; "15m", "7d", "30s", "500ms"
    use their suffix; a bare numeric string is seconds. Empty -> 15s.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if value is None or not str(value).strip():
        return DEFAULT_DURATION_MS
    m = _DURATION_RE.match(str(value))
    if not m:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = int(m.group(1)), (m.group(2) or "s").lower()
    return amount * _UNIT_MS[unit]


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    access_ttl_ms: int
    refresh_ttl_ms: int


class TokenService:
    def __init__(
        self,
        secret: str,
        refresh_secret: str,
        access_expiry="15m",
        refresh_expiry="7d",
        algorithm: str = "HS256",
        clock: Callable[[], datetime] | None = None,
    ):
        if not secret or not refresh_secret:
            raise ValueError("Both token secrets are required")
        if secret == refresh_secret:
            raise ValueError("Refresh secret must differ from the access secret")
        self._secret = secret
        self._refresh_secret = refresh_secret
        self._algorithm = algorithm
        self.access_ttl_ms = parse_duration_ms(access_expiry)
        self.refresh_ttl_ms = parse_duration_ms(refresh_expiry)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def _claims(payload: dict) -> dict:
        return {
            "usuario_id": str(payload["usuario_id"]),
            "email": payload.get("email"),
            "roles": list(payload.get("roles") or []),
        }

    def _sign(self, claims: dict, secret: str, ttl_ms: int, extra: dict | None = None) -> str:
        now = self._clock()
        body = dict(claims)
        body["iat"] = int(now.timestamp())
        # JWT exp must be numeric (Unix timestamp), not datetime
        body["exp"] = int((now + timedelta(milliseconds=ttl_ms)).timestamp())
        if extra:
            body.update(extra)
        return jwt.encode(body, secret, algorithm=self._algorithm)

    def issue_token_pair(self, payload: dict) -> TokenPair:
        claims = self._claims(payload)
        return TokenPair(
            access_token=self._sign(claims, self._secret, self.access_ttl_ms),
            refresh_token=self._sign(claims, self._refresh_secret, self.refresh_ttl_ms, {"typ": REFRESH_TYPE}),
            access_ttl_ms=self.access_ttl_ms,
            refresh_ttl_ms=self.refresh_ttl_ms,
        )

    def _decode(self, token: str, secret: str) -> dict:
        try:
            return jwt.decode(token, secret, algorithms=[self._algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpired() from e
        except JWTError as e:
            raise InvalidToken() from e

    def verify_access_token(self, token: str) -> dict:
        claims = self._decode(token, self._secret)
        if claims.get("typ") == REFRESH_TYPE:
            raise InvalidToken()
        return claims

    def verify_refresh_token(self, token: str) -> dict:
        claims = self._decode(token, self._refresh_secret)
        if claims.get("typ") != REFRESH_TYPE:
            raise InvalidToken()
        return claims

    def reissue_access_token(self, refresh_claims: dict) -> str:
        return self._sign(self._claims(refresh_claims), self._secret, self.access_ttl_ms)


def build_token_service(settings) -> TokenService:
    return TokenService(
        secret=settings.jwt_secret,
        refresh_secret=settings.jwt_refresh_secret,
        access_expiry=settings.jwt_expiry,
        refresh_expiry=settings.jwt_refresh_expiry,
        algorithm=settings.jwt_algorithm,
    )
