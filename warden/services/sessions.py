"""Per-account registry of active refresh-token sessions."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from warden.core.tokens import hash_opaque_token
from warden.models import Account, AccountSession
from warden.services.store import AccountStore

logger = logging.getLogger(__name__)

MAX_SESSIONS = 5
USER_AGENT_MAX_LEN = 200
IP_ADDRESS_MAX_LEN = 45


def active_sessions(account: Account, now: datetime) -> list[AccountSession]:
    """Sessions that have not reached their expiry, oldest first."""
    return [s for s in account.sessions if s.expires_at > now]


def find(account: Account, raw_refresh_token: str, now: datetime) -> AccountSession | None:
    """Return the live session record for this exact refresh token, if any."""
    digest = hash_opaque_token(raw_refresh_token)
    for session in active_sessions(account, now):
        if session.token_hash == digest:
            return session
    return None


def add(
    store: AccountStore,
    account: Account,
    raw_refresh_token: str,
    user_agent: str | None,
    ip_address: str | None,
    now: datetime,
    ttl: timedelta,
    max_sessions: int = MAX_SESSIONS,
) -> AccountSession:
    """
    Record a newly issued refresh token, evicting expired records and then the
    oldest ones so the account keeps at most max_sessions.
    """
    expired = [s for s in account.sessions if s.expires_at <= now]
    for session in expired:
        account.sessions.remove(session)
    live = list(account.sessions)
    evicted = 0
    while len(live) >= max_sessions:
        account.sessions.remove(live.pop(0))
        evicted += 1
    record = AccountSession(
        token_hash=hash_opaque_token(raw_refresh_token),
        user_agent=(user_agent or "")[:USER_AGENT_MAX_LEN],
        ip_address=(ip_address or "")[:IP_ADDRESS_MAX_LEN],
        created_at=now,
        expires_at=now + ttl,
    )
    account.sessions.append(record)
    store.save(account)
    if evicted:
        logger.info(
            "Evicted oldest sessions: account_id=%s evicted=%s", account.id, evicted
        )
    return record


def remove(store: AccountStore, account: Account, raw_refresh_token: str) -> bool:
    """
    Delete the record matching this refresh token. Returns True only for the
    caller whose delete removed it, so a token can be redeemed at most once.
    """
    return store.delete_session(account, hash_opaque_token(raw_refresh_token))


def remove_all(store: AccountStore, account: Account) -> int:
    """Delete every session of the account, forcing re-authentication everywhere."""
    return store.delete_account_sessions(account)


def purge_expired(store: AccountStore, now: datetime) -> int:
    """Delete expired session records across all accounts."""
    return store.delete_sessions(AccountSession.expires_at <= now)
