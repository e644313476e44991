"""Failed-login counter and temporary account lock."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import case, literal, or_

from warden.models import Account
from warden.models.base import UTCDateTime
from warden.services.store import AccountStore

logger = logging.getLogger(__name__)

# Defaults; the controller passes configured values.
MAX_LOGIN_ATTEMPTS = 5
LOCK_DURATION = timedelta(hours=2)


@dataclass(frozen=True)
class LockoutState:
    failed_attempts: int
    lock_until: datetime | None


def is_locked(record: Account | LockoutState, now: datetime) -> bool:
    """True while lock_until is set and still in the future."""
    return record.lock_until is not None and record.lock_until > now


def register_failure(
    store: AccountStore,
    account: Account,
    now: datetime,
    max_attempts: int = MAX_LOGIN_ATTEMPTS,
    lock_duration: timedelta = LOCK_DURATION,
) -> LockoutState:
    """
    Record one failed password check and return the resulting state.

    Callers must have rejected a currently locked account already; a lock that
    is still active is left untouched. An elapsed lock restarts the count at 1.
    Both paths are single conditional updates so concurrent failures cannot
    under-count.
    """
    restarted = False
    if account.lock_until is not None and account.lock_until <= now:
        restarted = store.update_one(
            account.id,
            {Account.lock_until: None, Account.failed_login_attempts: 1},
            where=[Account.lock_until <= now],
        )
    if not restarted:
        attempts = Account.failed_login_attempts + 1
        store.update_one(
            account.id,
            {
                Account.failed_login_attempts: attempts,
                Account.lock_until: case(
                    (attempts >= max_attempts, literal(now + lock_duration, UTCDateTime())),
                    else_=Account.lock_until,
                ),
            },
            where=[or_(Account.lock_until.is_(None), Account.lock_until <= now)],
        )
    store.refresh(account)
    state = LockoutState(account.failed_login_attempts, account.lock_until)
    if is_locked(state, now):
        logger.info(
            "Account locked after failed logins: account_id=%s attempts=%s until=%s",
            account.id,
            state.failed_attempts,
            state.lock_until.isoformat(),
        )
    return state


def register_success(store: AccountStore, account: Account, now: datetime) -> bool:
    """
    Clear the counter and any elapsed lock after a successful password check.
    Returns False if a lock became active in the meantime.
    """
    cleared = store.update_one(
        account.id,
        {Account.failed_login_attempts: 0, Account.lock_until: None},
        where=[or_(Account.lock_until.is_(None), Account.lock_until <= now)],
    )
    store.refresh(account)
    return cleared
