"""Access-token signing and opaque token helpers."""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt

from ..config import settings
from ..errors import AuthError
from .models import UserRole


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, threaded explicitly into handlers."""

    user_id: UUID
    role: UserRole

    @property
    def is_privileged(self) -> bool:
        return self.role == UserRole.PAID


def create_access_token(user_id: UUID, role: str) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "role": str(role),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=settings.access_token_ttl_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Principal:
    """Validate a bearer token and return the principal it names."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token expired") from exc
    except jwt.PyJWTError as exc:
        raise AuthError("Invalid token") from exc

    if payload.get("type") != "access":
        raise AuthError("Invalid token")
    try:
        return Principal(user_id=UUID(payload["sub"]), role=UserRole(payload.get("role", UserRole.FREE)))
    except (KeyError, ValueError) as exc:
        raise AuthError("Invalid token") from exc


def generate_raw_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def hash_token(raw: str) -> str:
    """SHA-256 hex digest; only this value is ever persisted."""
    return hashlib.sha256(raw.encode()).hexdigest()
