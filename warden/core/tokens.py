"""Signed session tokens (access/refresh JWTs) and opaque single-use tokens."""

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import jwt

from warden.core.errors import InternalError, TokenExpiredError, TokenInvalidError

if TYPE_CHECKING:
    from warden.core.config import Settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Raw single-use tokens carry 32 random bytes (64 hex chars).
OPAQUE_TOKEN_BYTES = 32


@dataclass(frozen=True)
class IssuedToken:
    """A signed token together with its expiry."""

    token: str
    expires_at: datetime


def _secret_for(token_type: str, settings: "Settings") -> str:
    if token_type == ACCESS_TOKEN_TYPE:
        return settings.JWT_ACCESS_SECRET.get_secret_value()
    return settings.JWT_REFRESH_SECRET.get_secret_value()


def _encode(
    sub: str | int,
    token_type: str,
    ttl: timedelta,
    settings: "Settings",
    now: datetime | None = None,
) -> IssuedToken:
    now = now or datetime.now(UTC)
    expire = now + ttl
    payload: dict[str, Any] = {
        "sub": str(sub),
        "type": token_type,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "exp": expire,
        "iat": now,
        # jti keeps two tokens issued in the same second distinct.
        "jti": uuid.uuid4().hex,
    }
    try:
        token = jwt.encode(
            payload,
            _secret_for(token_type, settings),
            algorithm=settings.JWT_ALGORITHM,
        )
    except (jwt.PyJWTError, TypeError, ValueError) as e:
        raise InternalError("Could not sign token") from e
    return IssuedToken(token=token, expires_at=expire)


def _decode(token: str | None, token_type: str, settings: "Settings") -> dict[str, Any]:
    if not token:
        raise TokenInvalidError("Token is required")
    try:
        payload = jwt.decode(
            token,
            _secret_for(token_type, settings),
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options={"require": ["exp", "iat", "sub", "iss", "aud"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError() from e
    except jwt.PyJWTError as e:
        raise TokenInvalidError() from e
    if payload.get("type") != token_type:
        raise TokenInvalidError()
    return payload


def create_access_token(
    sub: str | int, settings: "Settings", now: datetime | None = None
) -> IssuedToken:
    """Create a short-lived access token signed with the access secret."""
    ttl = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(sub, ACCESS_TOKEN_TYPE, ttl, settings, now)


def create_refresh_token(
    sub: str | int, settings: "Settings", now: datetime | None = None
) -> IssuedToken:
    """Create a long-lived refresh token signed with the refresh secret."""
    ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(sub, REFRESH_TOKEN_TYPE, ttl, settings, now)


def decode_access_token(token: str | None, settings: "Settings") -> dict[str, Any]:
    """
    Decode and validate an access token; return its payload.
    Raises TokenExpiredError or TokenInvalidError.
    """
    return _decode(token, ACCESS_TOKEN_TYPE, settings)


def decode_refresh_token(token: str | None, settings: "Settings") -> dict[str, Any]:
    """
    Decode and validate a refresh token; return its payload.
    Raises TokenExpiredError or TokenInvalidError.
    """
    return _decode(token, REFRESH_TOKEN_TYPE, settings)


def subject_as_id(payload: dict[str, Any]) -> int:
    """Extract the integer account id from a token payload."""
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise TokenInvalidError("Invalid token payload") from e


def generate_opaque_token(nbytes: int = OPAQUE_TOKEN_BYTES) -> str:
    """Return a random hex token. Hand it to the user once; persist only its hash."""
    return secrets.token_hex(nbytes)


def hash_opaque_token(token: str) -> str:
    """Deterministic one-way digest used to store and look up opaque tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
