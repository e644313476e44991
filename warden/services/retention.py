"""Purge of expired session records and single-use token fields."""

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from warden.services import sessions
from warden.services.store import AccountStore

if TYPE_CHECKING:
    from warden.core.config import Settings

logger = logging.getLogger(__name__)


def run_purge(
    db: Session,
    settings: "Settings",
    now: datetime | None = None,
    force: bool = False,
) -> tuple[int, int]:
    """
    Delete expired session records and clear expired verification/reset tokens.

    Returns (sessions_deleted, tokens_cleared). Idempotent: safe to run repeatedly.
    force runs the purge even when SESSION_PURGE_ENABLED is off.
    """
    if not (force or settings.SESSION_PURGE_ENABLED):
        logger.info("Session purge is disabled (SESSION_PURGE_ENABLED=false); skipping.")
        return (0, 0)

    now = now or datetime.now(timezone.utc)
    store = AccountStore(db)
    sessions_deleted = sessions.purge_expired(store, now)
    tokens_cleared = store.clear_expired_tokens(now)

    if sessions_deleted or tokens_cleared:
        logger.info(
            "Purge run: now=%s, sessions_deleted=%s, tokens_cleared=%s",
            now.isoformat(),
            sessions_deleted,
            tokens_cleared,
        )
    return (sessions_deleted, tokens_cleared)
