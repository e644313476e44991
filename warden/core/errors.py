"""Typed errors surfaced by credential operations, one class per HTTP outcome."""

from datetime import datetime


class CredentialError(Exception):
    """Base class for every error a credential operation may raise."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationFailed(CredentialError):
    """Malformed or missing input."""

    status_code = 400
    code = "validation_error"


class Unauthorized(CredentialError):
    """Bad credentials, or an expired/invalid token."""

    status_code = 401
    code = "unauthorized"


class TokenExpiredError(Unauthorized):
    code = "token_expired"

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message)


class TokenInvalidError(Unauthorized):
    code = "token_invalid"

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class Forbidden(CredentialError):
    """Deactivated account or insufficient role."""

    status_code = 403
    code = "forbidden"


class NotFound(CredentialError):
    status_code = 404
    code = "not_found"


class Conflict(CredentialError):
    status_code = 409
    code = "conflict"


class AccountLocked(CredentialError):
    """Account is temporarily locked after repeated failed logins."""

    status_code = 423
    code = "account_locked"

    def __init__(self, message: str, locked_until: datetime | None = None) -> None:
        self.locked_until = locked_until
        super().__init__(message)


class InternalError(CredentialError):
    """Hashing/signing failure or store unavailable."""

    status_code = 500
    code = "internal_error"


class TooManyRequests(CredentialError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)
