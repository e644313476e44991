"""Password hashing and password/name policy checks."""

import logging
import re

import bcrypt

from warden.core.errors import InternalError, ValidationFailed

logger = logging.getLogger(__name__)

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
DEFAULT_BCRYPT_ROUNDS = 12

# Min/max lengths for name and password validation.
NAME_MIN_LEN = 2
NAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

_NAME_RE = re.compile(r"^[A-Za-z\s]+$")
_SPECIAL_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>_\-+=\[\];'/\\`~]")


def hash_password(plain_password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")
    except (ValueError, TypeError) as e:
        logger.error("Password hashing failed: %s", type(e).__name__)
        raise InternalError("Could not process password") from e


def verify_password(plain_password: str, hashed: str | None) -> bool:
    """Verify a plain password against a stored hash. Never raises on bad input."""
    if not plain_password or not hashed:
        return False
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def validate_password_strength(password: str | None) -> None:
    """Raise ValidationFailed unless the password meets the strength policy."""
    if not password:
        raise ValidationFailed("Password is required")
    if len(password) < PASSWORD_MIN_LEN:
        raise ValidationFailed(
            f"Password must be at least {PASSWORD_MIN_LEN} characters long"
        )
    if len(password) > PASSWORD_MAX_LEN:
        raise ValidationFailed(
            f"Password cannot exceed {PASSWORD_MAX_LEN} characters"
        )
    has_upper = any(c.isupper() for c in password)
    has_lower = any(c.islower() for c in password)
    has_digit = any(c.isdigit() for c in password)
    has_special = _SPECIAL_RE.search(password) is not None
    if not (has_upper and has_lower and has_digit and has_special):
        raise ValidationFailed(
            "Password must contain at least one uppercase letter, one lowercase "
            "letter, one number, and one special character"
        )


def normalize_name(name: str | None) -> str:
    """Trim and validate a display name; return the cleaned value."""
    cleaned = (name or "").strip()
    if not (NAME_MIN_LEN <= len(cleaned) <= NAME_MAX_LEN):
        raise ValidationFailed(
            f"Name must be between {NAME_MIN_LEN} and {NAME_MAX_LEN} characters"
        )
    if not _NAME_RE.match(cleaned):
        raise ValidationFailed("Name can only contain letters and spaces")
    return cleaned


def normalize_email(email: str | None) -> str:
    """Lower-case and trim an email address; emails compare case-insensitively."""
    cleaned = (email or "").strip().lower()
    if not cleaned or "@" not in cleaned:
        raise ValidationFailed("A valid email address is required")
    return cleaned


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"
