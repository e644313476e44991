"""Shared fixtures for tests: settings, in-memory SQLite store, fake email and clock."""

from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from warden.core.config import Settings
from warden.core.security import hash_password
from warden.models import Base
from warden.services.email import EmailDeliveryError

STRONG_PASSWORD = "Str0ng!Pw"
OTHER_PASSWORD = "N3w!Passw0rd"


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from env/.env, with cheap bcrypt for tests."""
    values: dict[str, Any] = {
        "DATABASE_URL": "sqlite://",
        "BCRYPT_ROUNDS": 4,
        "JWT_ACCESS_SECRET": "test-access-secret",
        "JWT_REFRESH_SECRET": "test-refresh-secret",
        "CLIENT_URL": "http://localhost:3000",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_session_factory() -> sessionmaker:
    """Fresh in-memory database with all tables; sessions share one connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeEmail:
    """Records deliveries; template kinds listed in fail_kinds raise EmailDeliveryError."""

    def __init__(self, fail_kinds: set[str] | None = None) -> None:
        self.deliveries: list[tuple[str, str, dict[str, Any]]] = []
        self.fail_kinds = fail_kinds or set()

    def deliver(self, address: str, template_kind: str, template_data: dict[str, Any]) -> str:
        if template_kind in self.fail_kinds:
            raise EmailDeliveryError("SMTP down")
        self.deliveries.append((address, template_kind, template_data))
        return f"<{len(self.deliveries)}@test>"

    def last(self, template_kind: str) -> dict[str, Any]:
        for _, kind, data in reversed(self.deliveries):
            if kind == template_kind:
                return data
        raise AssertionError(f"no {template_kind} email delivered")

    def kinds(self) -> list[str]:
        return [kind for _, kind, _ in self.deliveries]


def token_from_url(url: str) -> str:
    """Raw single-use token is the last path segment of an emailed link."""
    return url.rstrip("/").rsplit("/", 1)[1]


def make_account(store: Any, email: str = "ada@example.com", password: str = STRONG_PASSWORD, **fields: Any):
    """Insert an account directly through the store (bypasses registration)."""
    values: dict[str, Any] = {
        "name": "Ada Lovelace",
        "email": email,
        "password_hash": hash_password(password, rounds=4),
        "role": "user",
        "is_active": True,
        "is_email_verified": False,
        "failed_login_attempts": 0,
    }
    values.update(fields)
    return store.create(**values)
