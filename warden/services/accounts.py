"""Profile self-service and account administration."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable
from datetime import datetime

from warden.core.errors import NotFound, ValidationFailed
from warden.core.security import normalize_name
from warden.models import Account, Role
from warden.schemas.auth import AccountPage, AccountStats, AccountSummary, ProfileUpdate
from warden.services import sessions
from warden.services.credentials import utcnow
from warden.services.store import AccountStore

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
BIO_MAX_LEN = 500

_PHONE_RE = re.compile(r"^\+?[0-9][0-9 ()\-]{5,30}$")


class AccountService:
    """Operations on account records other than the credential lifecycle."""

    def __init__(
        self, store: AccountStore, clock: Callable[[], datetime] = utcnow
    ) -> None:
        self.store = store
        self.clock = clock

    def _get(self, account_id: int) -> Account:
        account = self.store.find_by_id(account_id)
        if account is None:
            raise NotFound("User not found")
        return account

    def get_profile(self, account_id: int) -> AccountSummary:
        return AccountSummary.model_validate(self._get(account_id))

    def update_profile(self, account_id: int, update: ProfileUpdate) -> AccountSummary:
        """Apply only the fields present in the request."""
        account = self._get(account_id)
        changes = update.model_dump(exclude_unset=True)
        if "name" in changes:
            account.name = normalize_name(changes["name"])
        if "bio" in changes:
            bio = changes["bio"]
            if bio is not None and len(bio) > BIO_MAX_LEN:
                raise ValidationFailed(f"Bio cannot exceed {BIO_MAX_LEN} characters")
            account.bio = bio or None
        if "phone_number" in changes:
            phone = (changes["phone_number"] or "").strip()
            if phone and not _PHONE_RE.match(phone):
                raise ValidationFailed("Please provide a valid phone number")
            account.phone_number = phone or None
        self.store.save(account)
        logger.info(
            "Profile updated: account_id=%s fields=%s", account.id, sorted(changes)
        )
        return AccountSummary.model_validate(account)

    # Administration

    def list_accounts(
        self,
        page: int = 1,
        limit: int = 20,
        role: str | None = None,
        is_active: bool | None = None,
        is_email_verified: bool | None = None,
        search: str | None = None,
    ) -> AccountPage:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        if role == "all":
            role = None
        rows, total = self.store.list_accounts(
            offset=(page - 1) * limit,
            limit=limit,
            role=role,
            is_active=is_active,
            is_email_verified=is_email_verified,
            search=search,
        )
        return AccountPage(
            users=[AccountSummary.model_validate(a) for a in rows],
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if total else 0,
        )

    def get_account(self, account_id: int) -> AccountSummary:
        return AccountSummary.model_validate(self._get(account_id))

    def set_role(self, actor_id: int, account_id: int, role: Role) -> AccountSummary:
        if actor_id == account_id:
            raise ValidationFailed("You cannot change your own role")
        account = self._get(account_id)
        old_role = account.role
        account.role = Role(role).value
        self.store.save(account)
        logger.info(
            "Role updated: account_id=%s old=%s new=%s by=%s",
            account.id,
            old_role,
            account.role,
            actor_id,
        )
        return AccountSummary.model_validate(account)

    def deactivate(self, actor_id: int, account_id: int) -> AccountSummary:
        """Deactivate the account and revoke all of its sessions."""
        if actor_id == account_id:
            raise ValidationFailed("You cannot deactivate your own account")
        account = self._get(account_id)
        if not account.is_active:
            raise ValidationFailed("User is already deactivated")
        account.is_active = False
        self.store.save(account)
        removed = sessions.remove_all(self.store, account)
        logger.info(
            "Account deactivated: account_id=%s by=%s sessions_revoked=%s",
            account.id,
            actor_id,
            removed,
        )
        return AccountSummary.model_validate(account)

    def reactivate(self, actor_id: int, account_id: int) -> AccountSummary:
        account = self._get(account_id)
        if account.is_active:
            raise ValidationFailed("User is already active")
        account.is_active = True
        self.store.save(account)
        logger.info("Account reactivated: account_id=%s by=%s", account.id, actor_id)
        return AccountSummary.model_validate(account)

    def delete_account(self, actor_id: int, account_id: int) -> None:
        if actor_id == account_id:
            raise ValidationFailed("You cannot delete your own account")
        account = self._get(account_id)
        self.store.delete(account)
        logger.info("Account deleted: account_id=%s by=%s", account_id, actor_id)

    def stats(self) -> AccountStats:
        count = self.store.count_accounts
        total = count()
        active = count(Account.is_active.is_(True))
        verified = count(Account.is_email_verified.is_(True))
        locked = count(Account.lock_until.is_not(None), Account.lock_until > self.clock())
        return AccountStats(
            total_users=total,
            active_users=active,
            inactive_users=total - active,
            verified_users=verified,
            unverified_users=total - verified,
            locked_users=locked,
            users_by_role={r.value: count(Account.role == r.value) for r in Role},
        )
