"""
Credential lifecycle: registration, login, refresh rotation, logout, password
change/reset and email verification.

Every operation raises one warden.core.errors.CredentialError subclass on
failure. Only best-effort email delivery failures are logged and swallowed.
Operations are synchronous; bcrypt work happens on the calling thread, which
under FastAPI is a worker thread for the sync route handlers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from warden.core.errors import (
    AccountLocked,
    Conflict,
    Forbidden,
    NotFound,
    TokenInvalidError,
    Unauthorized,
    ValidationFailed,
)
from warden.core.security import (
    hash_password,
    normalize_email,
    normalize_name,
    redact_email,
    validate_password_strength,
    verify_password,
)
from warden.core.tokens import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    generate_opaque_token,
    hash_opaque_token,
    subject_as_id,
)
from warden.models import Account, Role
from warden.schemas.auth import (
    AccountSummary,
    AuthResult,
    CurrentUser,
    SessionInfo,
    TokenPair,
)
from warden.services import lockout, sessions
from warden.services.email import EmailDeliveryError, EmailSender, TemplateKind
from warden.services.store import AccountStore, token_columns

if TYPE_CHECKING:
    from warden.core.config import Settings

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
LOCKED_MESSAGE = (
    "Account is temporarily locked due to too many failed login attempts. "
    "Please try again later."
)
DEACTIVATED_MESSAGE = "Account has been deactivated. Please contact support."
INVALID_RESET_TOKEN = "Password reset token is invalid or has expired"
INVALID_VERIFICATION_TOKEN = "Email verification token is invalid or has expired"


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    # Verified against when the email is unknown so both paths cost one bcrypt check.
    return hash_password("not-a-real-password", rounds=rounds)


def utcnow() -> datetime:
    return datetime.now(UTC)


class CredentialService:
    """Orchestrates the hasher, token codec, lockout and session registry over one store."""

    def __init__(
        self,
        store: AccountStore,
        settings: "Settings",
        email: EmailSender,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.settings = settings
        self.email = email
        self.clock = clock

    @property
    def refresh_ttl(self) -> timedelta:
        return timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)

    def _get_account(self, account_id: int) -> Account:
        account = self.store.find_by_id(account_id)
        if account is None:
            raise NotFound("User not found")
        return account

    def _issue_session(
        self, account: Account, user_agent: str | None, ip_address: str | None
    ) -> TokenPair:
        access = create_access_token(account.id, self.settings)
        refresh = create_refresh_token(account.id, self.settings)
        sessions.add(
            self.store,
            account,
            refresh.token,
            user_agent,
            ip_address,
            now=self.clock(),
            ttl=self.refresh_ttl,
            max_sessions=self.settings.MAX_SESSIONS_PER_ACCOUNT,
        )
        return TokenPair(
            access_token=access.token,
            refresh_token=refresh.token,
            access_token_expires_at=access.expires_at,
            refresh_token_expires_at=refresh.expires_at,
        )

    def _deliver(
        self, account: Account, template_kind: TemplateKind, data: dict[str, Any]
    ) -> str | None:
        """Best-effort email; returns the message id or None when delivery failed."""
        try:
            return self.email.deliver(account.email, template_kind, {"name": account.name, **data})
        except EmailDeliveryError as e:
            logger.warning(
                "Email delivery failed: account_id=%s template=%s error=%s",
                account.id,
                template_kind,
                e.message,
            )
            return None

    def _issue_single_use_token(
        self, account: Account, kind: str, ttl: timedelta
    ) -> tuple[str, str]:
        """Store a fresh token digest (overwriting any previous one); return (raw, digest)."""
        raw = generate_opaque_token()
        digest = hash_opaque_token(raw)
        hash_col, expires_col = token_columns(kind)
        self.store.update_one(
            account.id, {hash_col: digest, expires_col: self.clock() + ttl}
        )
        return raw, digest

    def _consume_single_use_token(
        self, kind: str, token: str | None, values: dict[Any, Any], error_message: str
    ) -> Account:
        """
        Redeem a single-use token: one conditional update that matches the digest
        and expiry, clears both token fields and applies values. Exactly one
        concurrent caller can win.
        """
        if not token:
            raise ValidationFailed("Token is required")
        digest = hash_opaque_token(token)
        now = self.clock()
        account = self.store.find_by_token_hash(kind, digest, now)
        if account is None:
            raise Unauthorized(error_message, code="token_invalid")
        hash_col, expires_col = token_columns(kind)
        consumed = self.store.update_one(
            account.id,
            {**values, hash_col: None, expires_col: None},
            where=[hash_col == digest, expires_col > now],
        )
        if not consumed:
            raise Unauthorized(error_message, code="token_invalid")
        self.store.refresh(account)
        return account

    # Registration and login

    def register(
        self,
        name: str,
        email: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        """Create a standard, unverified account, send verification, and sign it in."""
        if not (name or "").strip() or not (email or "").strip() or not password:
            raise ValidationFailed("Name, email, and password are required")
        clean_name = normalize_name(name)
        clean_email = normalize_email(email)
        validate_password_strength(password)
        if self.store.find_by_email(clean_email) is not None:
            raise Conflict("User with this email already exists")

        raw_verification = generate_opaque_token()
        ttl = timedelta(hours=self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS)
        account = self.store.create(
            name=clean_name,
            email=clean_email,
            password_hash=hash_password(password, rounds=self.settings.BCRYPT_ROUNDS),
            role=Role.STANDARD.value,
            is_active=True,
            is_email_verified=False,
            failed_login_attempts=0,
            email_verification_token_hash=hash_opaque_token(raw_verification),
            email_verification_expires=self.clock() + ttl,
        )
        logger.info(
            "Account registered: account_id=%s email=%s",
            account.id,
            redact_email(account.email),
        )
        self._deliver(
            account,
            "email_verification",
            {
                "verification_url": f"{self.settings.CLIENT_URL}/verify-email/{raw_verification}",
                "expires_hours": self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS,
            },
        )
        tokens = self._issue_session(account, user_agent, ip_address)
        return AuthResult(account=AccountSummary.model_validate(account), tokens=tokens)

    def login(
        self,
        email: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        """
        Authenticate with email and password.

        Unknown email and wrong password both raise the same Unauthorized. The
        lock is checked before the password, so a locked account is rejected
        with AccountLocked even when the password is correct.
        """
        if not (email or "").strip() or not password:
            raise ValidationFailed("Email and password are required")
        account = self.store.find_by_email(email)
        if account is None:
            verify_password(password, _dummy_hash(self.settings.BCRYPT_ROUNDS))
            raise Unauthorized(INVALID_CREDENTIALS, code="invalid_credentials")

        now = self.clock()
        if lockout.is_locked(account, now):
            raise AccountLocked(LOCKED_MESSAGE, locked_until=account.lock_until)
        if not account.is_active:
            raise Forbidden(DEACTIVATED_MESSAGE, code="account_deactivated")

        if not verify_password(password, account.password_hash):
            state = lockout.register_failure(
                self.store,
                account,
                now,
                max_attempts=self.settings.MAX_LOGIN_ATTEMPTS,
                lock_duration=timedelta(minutes=self.settings.LOCKOUT_MINUTES),
            )
            logger.warning(
                "Failed login: account_id=%s attempts=%s",
                account.id,
                state.failed_attempts,
            )
            raise Unauthorized(INVALID_CREDENTIALS, code="invalid_credentials")

        if not lockout.register_success(self.store, account, now):
            # Locked by a concurrent failed attempt after the check above.
            raise AccountLocked(LOCKED_MESSAGE, locked_until=account.lock_until)
        account.last_login = now
        self.store.save(account)
        tokens = self._issue_session(account, user_agent, ip_address)
        logger.info("Login succeeded: account_id=%s", account.id)
        return AuthResult(account=AccountSummary.model_validate(account), tokens=tokens)

    # Session tokens

    def refresh(
        self,
        refresh_token: str | None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        """Rotate a refresh token: the presented token is consumed and a new pair is issued."""
        if not refresh_token:
            raise Unauthorized("Refresh token is required", code="token_invalid")
        payload = decode_refresh_token(refresh_token, self.settings)
        account = self.store.find_by_id(subject_as_id(payload))
        if account is None:
            raise TokenInvalidError("Invalid refresh token")
        if sessions.find(account, refresh_token, self.clock()) is None:
            logger.warning(
                "Refresh token not in session registry (reused or revoked): account_id=%s",
                account.id,
            )
            raise TokenInvalidError("Invalid refresh token")
        if not account.is_active:
            raise Forbidden(DEACTIVATED_MESSAGE, code="account_deactivated")
        if not sessions.remove(self.store, account, refresh_token):
            # A concurrent refresh consumed the same token first.
            raise TokenInvalidError("Invalid refresh token")
        tokens = self._issue_session(account, user_agent, ip_address)
        return AuthResult(account=AccountSummary.model_validate(account), tokens=tokens)

    def authenticate(self, access_token: str | None) -> CurrentUser:
        """Resolve an access token to the current account."""
        if not access_token:
            raise Unauthorized("Access denied. No token provided.")
        payload = decode_access_token(access_token, self.settings)
        account = self.store.find_by_id(subject_as_id(payload))
        if account is None:
            raise Unauthorized("Token is valid but user not found")
        if not account.is_active:
            raise Forbidden("Account has been deactivated", code="account_deactivated")
        if lockout.is_locked(account, self.clock()):
            raise AccountLocked("Account is temporarily locked", locked_until=account.lock_until)
        return CurrentUser.model_validate(account)

    def logout(self, account_id: int, refresh_token: str | None) -> None:
        """Revoke one session. Idempotent: unknown or missing tokens are ignored."""
        if not refresh_token:
            return
        account = self.store.find_by_id(account_id)
        if account is None:
            return
        if sessions.remove(self.store, account, refresh_token):
            logger.info("Logged out one session: account_id=%s", account_id)

    def logout_all(self, account_id: int) -> int:
        """Revoke every session of the account; returns how many were removed."""
        account = self._get_account(account_id)
        removed = sessions.remove_all(self.store, account)
        logger.info("Logged out all sessions: account_id=%s removed=%s", account_id, removed)
        return removed

    def list_sessions(self, account_id: int) -> list[SessionInfo]:
        account = self._get_account(account_id)
        return [
            SessionInfo.model_validate(s)
            for s in sessions.active_sessions(account, self.clock())
        ]

    # Passwords

    def change_password(
        self, account_id: int, current_password: str, new_password: str
    ) -> None:
        """Replace the password after verifying the current one, then revoke all sessions."""
        if not current_password or not new_password:
            raise ValidationFailed("Current password and new password are required")
        account = self._get_account(account_id)
        if not verify_password(current_password, account.password_hash):
            raise Unauthorized("Current password is incorrect", code="invalid_credentials")
        validate_password_strength(new_password)
        if verify_password(new_password, account.password_hash):
            raise ValidationFailed("New password must be different from the current password")
        account.password_hash = hash_password(new_password, rounds=self.settings.BCRYPT_ROUNDS)
        self.store.save(account)
        removed = sessions.remove_all(self.store, account)
        logger.info("Password changed: account_id=%s sessions_revoked=%s", account.id, removed)
        self._deliver(account, "password_changed", {})

    def forgot_password(self, email: str) -> None:
        """
        Issue a reset token when the account exists. Returns the same way whether
        or not it does. If the email cannot be sent the stored token is rolled back.
        """
        clean_email = normalize_email(email)
        account = self.store.find_by_email(clean_email)
        if account is None or not account.is_active:
            logger.info("Password reset requested for unknown or inactive email")
            return
        ttl = timedelta(minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES)
        raw, digest = self._issue_single_use_token(account, "reset", ttl)
        message_id = self._deliver(
            account,
            "password_reset",
            {
                "reset_url": f"{self.settings.CLIENT_URL}/reset-password/{raw}",
                "expires_minutes": self.settings.PASSWORD_RESET_EXPIRE_MINUTES,
            },
        )
        if message_id is None:
            hash_col, expires_col = token_columns("reset")
            self.store.update_one(
                account.id,
                {hash_col: None, expires_col: None},
                where=[hash_col == digest],
            )
            logger.error("Password reset token rolled back: account_id=%s", account.id)
            return
        logger.info("Password reset token issued: account_id=%s", account.id)

    def reset_password(self, token: str | None, new_password: str) -> None:
        """Set a new password with a reset token, consume the token and revoke all sessions."""
        validate_password_strength(new_password)
        new_hash = hash_password(new_password, rounds=self.settings.BCRYPT_ROUNDS)
        account = self._consume_single_use_token(
            "reset",
            token,
            {Account.password_hash: new_hash},
            INVALID_RESET_TOKEN,
        )
        removed = sessions.remove_all(self.store, account)
        logger.info("Password reset: account_id=%s sessions_revoked=%s", account.id, removed)
        self._deliver(account, "password_changed", {})

    # Email verification

    def verify_email(self, token: str | None) -> AccountSummary:
        account = self._consume_single_use_token(
            "verification",
            token,
            {Account.is_email_verified: True},
            INVALID_VERIFICATION_TOKEN,
        )
        logger.info("Email verified: account_id=%s", account.id)
        self._deliver(account, "welcome", {"dashboard_url": f"{self.settings.CLIENT_URL}/dashboard"})
        return AccountSummary.model_validate(account)

    def resend_verification(self, email: str) -> None:
        """Reissue the verification token, replacing any outstanding one."""
        account = self.store.find_by_email(normalize_email(email))
        if account is None:
            logger.info("Verification resend requested for unknown email")
            return
        if account.is_email_verified:
            raise ValidationFailed("Email is already verified")
        ttl = timedelta(hours=self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS)
        raw, _ = self._issue_single_use_token(account, "verification", ttl)
        self._deliver(
            account,
            "email_verification",
            {
                "verification_url": f"{self.settings.CLIENT_URL}/verify-email/{raw}",
                "expires_hours": self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS,
            },
        )
