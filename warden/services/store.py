"""SQLAlchemy-backed account store: lookups, document saves and atomic conditional updates."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Literal

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from warden.core.errors import Conflict, InternalError
from warden.models import Account, AccountSession

logger = logging.getLogger(__name__)

TokenKind = Literal["verification", "reset"]

_TOKEN_COLUMNS = {
    "verification": (
        Account.email_verification_token_hash,
        Account.email_verification_expires,
    ),
    "reset": (
        Account.password_reset_token_hash,
        Account.password_reset_expires,
    ),
}


def token_columns(kind: TokenKind) -> tuple[Any, Any]:
    """Return the (hash column, expiry column) pair for a single-use token kind."""
    return _TOKEN_COLUMNS[kind]


class AccountStore:
    """
    Account persistence over one SQLAlchemy session.

    Every write commits immediately. update_one() and delete_session() are
    single SQL statements; they are the primitives that keep lockout counters
    and token consumption correct under concurrent requests.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _fail(self, action: str, exc: SQLAlchemyError) -> InternalError:
        self.db.rollback()
        logger.error("Account store %s failed: %s", action, type(exc).__name__)
        return InternalError("Account store unavailable")

    def find_by_id(self, account_id: int) -> Account | None:
        try:
            return self.db.get(Account, account_id)
        except SQLAlchemyError as e:
            raise self._fail("find_by_id", e) from e

    def find_by_email(self, email: str) -> Account | None:
        """Case-insensitive lookup; emails are stored lower-cased."""
        normalized = (email or "").strip().lower()
        if not normalized:
            return None
        try:
            return self.db.scalars(
                select(Account).where(Account.email == normalized)
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("find_by_email", e) from e

    def find_by_token_hash(
        self, kind: TokenKind, digest: str, now: datetime
    ) -> Account | None:
        """Find the account holding a non-expired single-use token with this digest."""
        hash_col, expires_col = token_columns(kind)
        try:
            return self.db.scalars(
                select(Account).where(hash_col == digest, expires_col > now)
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("find_by_token_hash", e) from e

    def create(self, **fields: Any) -> Account:
        """Insert a new account. Raises Conflict when the email is taken."""
        account = Account(**fields)
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("User with this email already exists") from e
        except SQLAlchemyError as e:
            raise self._fail("create", e) from e
        self.db.refresh(account)
        return account

    def save(self, account: Account) -> Account:
        """Persist every pending change on the account (and its sessions)."""
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("Email already exists") from e
        except SQLAlchemyError as e:
            raise self._fail("save", e) from e
        return account

    def update_one(
        self,
        account_id: int,
        values: Mapping[Any, Any],
        where: Iterable[ColumnElement[bool]] = (),
    ) -> bool:
        """
        Apply one conditional UPDATE to a single account.

        values maps columns to new values: a literal sets, None unsets, and a SQL
        expression (e.g. Account.failed_login_attempts + 1) is evaluated in the
        database. Returns True only if exactly one row matched id and where.
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id, *where)
            .values(dict(values))
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("update_one", e) from e
        return result.rowcount == 1

    def refresh(self, account: Account) -> Account:
        """Reload the account's columns and sessions from the database."""
        try:
            self.db.refresh(account)
            self.db.expire(account, ["sessions"])
        except SQLAlchemyError as e:
            raise self._fail("refresh", e) from e
        return account

    def delete(self, account: Account) -> None:
        try:
            self.db.delete(account)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete", e) from e

    def list_accounts(
        self,
        *,
        offset: int = 0,
        limit: int = 20,
        role: str | None = None,
        is_active: bool | None = None,
        is_email_verified: bool | None = None,
        search: str | None = None,
    ) -> tuple[list[Account], int]:
        """Return one page of accounts (newest first) and the total matching count."""
        conditions: list[ColumnElement[bool]] = []
        if role:
            conditions.append(Account.role == role)
        if is_active is not None:
            conditions.append(Account.is_active == is_active)
        if is_email_verified is not None:
            conditions.append(Account.is_email_verified == is_email_verified)
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            conditions.append(
                or_(func.lower(Account.name).like(pattern), Account.email.like(pattern))
            )
        try:
            total = self.db.scalar(
                select(func.count()).select_from(Account).where(*conditions)
            )
            rows = self.db.scalars(
                select(Account)
                .where(*conditions)
                .order_by(Account.created_at.desc(), Account.id.desc())
                .offset(offset)
                .limit(limit)
            ).all()
        except SQLAlchemyError as e:
            raise self._fail("list_accounts", e) from e
        return list(rows), int(total or 0)

    def count_accounts(self, *conditions: ColumnElement[bool]) -> int:
        try:
            return int(
                self.db.scalar(select(func.count()).select_from(Account).where(*conditions))
                or 0
            )
        except SQLAlchemyError as e:
            raise self._fail("count_accounts", e) from e

    # Session records

    def delete_session(self, account: Account, token_hash: str) -> bool:
        """
        Delete one of the account's sessions by exact digest. True only for the
        caller that removed it. The account's sessions reload on next access.
        """
        stmt = delete(AccountSession).where(
            AccountSession.account_id == account.id,
            AccountSession.token_hash == token_hash,
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete_session", e) from e
        self.db.expire(account, ["sessions"])
        return result.rowcount == 1

    def delete_account_sessions(self, account: Account) -> int:
        """Delete every session of the account; returns the count removed."""
        removed = self.delete_sessions(AccountSession.account_id == account.id)
        self.db.expire(account, ["sessions"])
        return removed

    def delete_sessions(self, *conditions: ColumnElement[bool]) -> int:
        """Bulk-delete session records matching conditions; returns the count removed."""
        stmt = delete(AccountSession).where(*conditions)
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete_sessions", e) from e
        return result.rowcount or 0

    def clear_expired_tokens(self, now: datetime) -> int:
        """Unset verification/reset token fields whose expiry has passed."""
        cleared = 0
        try:
            for hash_col, expires_col in _TOKEN_COLUMNS.values():
                result = self.db.execute(
                    update(Account)
                    .where(expires_col.is_not(None), expires_col <= now)
                    .values({hash_col: None, expires_col: None})
                    .execution_options(synchronize_session=False)
                )
                cleared += result.rowcount or 0
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("clear_expired_tokens", e) from e
        return cleared
