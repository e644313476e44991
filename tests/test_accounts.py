"""Tests for profile self-service and account administration."""

import unittest
from datetime import timedelta

from warden.core.errors import NotFound, ValidationFailed
from warden.core.tokens import generate_opaque_token
from warden.models import AccountSession, Role
from warden.schemas.auth import ProfileUpdate
from warden.services import sessions
from warden.services.accounts import AccountService
from warden.services.store import AccountStore

from support import FakeClock, make_account, make_session_factory


class AccountServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.store = AccountStore(self.db)
        self.clock = FakeClock()
        self.service = AccountService(self.store, clock=self.clock)
        self.admin = make_account(
            self.store, email="admin@example.com", name="Site Admin", role="admin",
            is_email_verified=True,
        )
        self.user = make_account(self.store, email="ada@example.com")

    def tearDown(self) -> None:
        self.db.close()


class TestProfile(AccountServiceTestCase):
    def test_get_profile_has_no_secrets(self) -> None:
        profile = self.service.get_profile(self.user.id)
        dumped = profile.model_dump()
        self.assertEqual(dumped["email"], "ada@example.com")
        self.assertNotIn("password_hash", dumped)
        self.assertNotIn("failed_login_attempts", dumped)

    def test_unknown_account(self) -> None:
        with self.assertRaises(NotFound):
            self.service.get_profile(9999)

    def test_only_sent_fields_change(self) -> None:
        self.service.update_profile(self.user.id, ProfileUpdate(bio="Analyst", phone_number="+44 20 7946 0000"))
        profile = self.service.update_profile(self.user.id, ProfileUpdate(name="  Ada King "))
        self.assertEqual(profile.name, "Ada King")
        self.assertEqual(profile.bio, "Analyst")
        self.assertEqual(profile.phone_number, "+44 20 7946 0000")

    def test_explicit_null_clears_field(self) -> None:
        self.service.update_profile(self.user.id, ProfileUpdate(bio="Analyst"))
        profile = self.service.update_profile(self.user.id, ProfileUpdate(bio=None))
        self.assertIsNone(profile.bio)

    def test_invalid_values(self) -> None:
        with self.assertRaises(ValidationFailed):
            self.service.update_profile(self.user.id, ProfileUpdate(phone_number="call me"))
        with self.assertRaises(ValidationFailed):
            self.service.update_profile(self.user.id, ProfileUpdate(name="R2D2"))


class TestAdministration(AccountServiceTestCase):
    def _add_session(self, account) -> None:
        sessions.add(
            self.store, account, generate_opaque_token(), "pytest", "127.0.0.1",
            now=self.clock(), ttl=timedelta(days=7),
        )

    def test_list_filters_and_paginates(self) -> None:
        make_account(self.store, email="grace@example.com", name="Grace Hopper")
        page = self.service.list_accounts(page=1, limit=2)
        self.assertEqual(page.total, 3)
        self.assertEqual(page.pages, 2)
        self.assertEqual(len(page.users), 2)
        self.assertEqual(len(self.service.list_accounts(page=2, limit=2).users), 1)

        admins = self.service.list_accounts(role="admin")
        self.assertEqual([u.email for u in admins.users], ["admin@example.com"])
        self.assertEqual(self.service.list_accounts(role="all").total, 3)
        self.assertEqual(self.service.list_accounts(is_email_verified=True).total, 1)

        found = self.service.list_accounts(search="HOPPER")
        self.assertEqual([u.email for u in found.users], ["grace@example.com"])

    def test_list_clamps_page_size(self) -> None:
        self.assertEqual(self.service.list_accounts(limit=1000).limit, 100)

    def test_set_role(self) -> None:
        updated = self.service.set_role(self.admin.id, self.user.id, Role.MODERATOR)
        self.assertEqual(updated.role, "moderator")
        with self.assertRaises(ValidationFailed):
            self.service.set_role(self.admin.id, self.admin.id, Role.STANDARD)

    def test_deactivate_revokes_sessions(self) -> None:
        self._add_session(self.user)
        self._add_session(self.user)
        summary = self.service.deactivate(self.admin.id, self.user.id)
        self.assertFalse(summary.is_active)
        self.assertEqual(self.db.query(AccountSession).count(), 0)
        with self.assertRaises(ValidationFailed):
            self.service.deactivate(self.admin.id, self.user.id)

    def test_cannot_deactivate_or_delete_self(self) -> None:
        with self.assertRaises(ValidationFailed):
            self.service.deactivate(self.admin.id, self.admin.id)
        with self.assertRaises(ValidationFailed):
            self.service.delete_account(self.admin.id, self.admin.id)

    def test_reactivate(self) -> None:
        with self.assertRaises(ValidationFailed):
            self.service.reactivate(self.admin.id, self.user.id)
        self.service.deactivate(self.admin.id, self.user.id)
        self.assertTrue(self.service.reactivate(self.admin.id, self.user.id).is_active)

    def test_delete_removes_account_and_sessions(self) -> None:
        self._add_session(self.user)
        user_id = self.user.id
        self.service.delete_account(self.admin.id, user_id)
        with self.assertRaises(NotFound):
            self.service.get_account(user_id)
        self.assertEqual(self.db.query(AccountSession).count(), 0)

    def test_stats(self) -> None:
        self.service.deactivate(self.admin.id, self.user.id)
        locked = make_account(self.store, email="grace@example.com", name="Grace Hopper")
        locked.lock_until = self.clock() + timedelta(hours=1)
        self.store.save(locked)
        stats = self.service.stats()
        self.assertEqual(stats.total_users, 3)
        self.assertEqual(stats.active_users, 2)
        self.assertEqual(stats.inactive_users, 1)
        self.assertEqual(stats.verified_users, 1)
        self.assertEqual(stats.unverified_users, 2)
        self.assertEqual(stats.locked_users, 1)
        self.assertEqual(stats.users_by_role, {"user": 2, "moderator": 0, "admin": 1})


if __name__ == "__main__":
    unittest.main()
