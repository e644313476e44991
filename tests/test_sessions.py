"""Tests for the per-account refresh-token session registry."""

import unittest
from datetime import UTC, datetime, timedelta

from warden.core.tokens import generate_opaque_token, hash_opaque_token
from warden.models import AccountSession
from warden.services import sessions
from warden.services.store import AccountStore

from support import make_account, make_session_factory

TTL = timedelta(days=7)


class TestSessionRegistry(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.store = AccountStore(self.db)
        self.account = make_account(self.store)
        self.now = datetime.now(UTC)

    def tearDown(self) -> None:
        self.db.close()

    def _add(self, token: str | None = None, now: datetime | None = None, **kwargs) -> str:
        token = token or generate_opaque_token()
        sessions.add(
            self.store,
            self.account,
            token,
            kwargs.pop("user_agent", "pytest"),
            kwargs.pop("ip_address", "127.0.0.1"),
            now=now or self.now,
            ttl=TTL,
            **kwargs,
        )
        return token

    def test_add_stores_digest_not_token(self) -> None:
        token = self._add()
        stored = self.db.query(AccountSession).one()
        self.assertEqual(stored.token_hash, hash_opaque_token(token))
        self.assertNotEqual(stored.token_hash, token)
        self.assertEqual(stored.expires_at - stored.created_at, TTL)
        self.assertIsNotNone(sessions.find(self.account, token, self.now))

    def test_user_agent_and_ip_are_truncated(self) -> None:
        self._add(user_agent="x" * 500, ip_address="1" * 100)
        stored = self.db.query(AccountSession).one()
        self.assertEqual(len(stored.user_agent), 200)
        self.assertEqual(len(stored.ip_address), 45)

    def test_cap_evicts_oldest(self) -> None:
        tokens = [self._add(now=self.now + timedelta(seconds=i)) for i in range(6)]
        live = sessions.active_sessions(self.account, self.now)
        self.assertEqual(len(live), 5)
        self.assertIsNone(sessions.find(self.account, tokens[0], self.now))
        for token in tokens[1:]:
            self.assertIsNotNone(sessions.find(self.account, token, self.now))

    def test_configured_cap(self) -> None:
        first = self._add(max_sessions=2)
        self._add(max_sessions=2)
        self._add(max_sessions=2)
        self.assertEqual(len(sessions.active_sessions(self.account, self.now)), 2)
        self.assertIsNone(sessions.find(self.account, first, self.now))

    def test_expired_records_are_pruned_on_add(self) -> None:
        old = self._add(now=self.now - timedelta(days=8))
        self._add()
        digests = {s.token_hash for s in self.account.sessions}
        self.assertNotIn(hash_opaque_token(old), digests)
        self.assertEqual(len(digests), 1)

    def test_expired_session_is_not_found(self) -> None:
        token = self._add()
        self.assertIsNone(sessions.find(self.account, token, self.now + TTL))

    def test_remove_succeeds_once(self) -> None:
        token = self._add()
        self.assertTrue(sessions.remove(self.store, self.account, token))
        self.assertFalse(sessions.remove(self.store, self.account, token))
        self.assertIsNone(sessions.find(self.account, token, self.now))

    def test_remove_unknown_token(self) -> None:
        self._add()
        self.assertFalse(sessions.remove(self.store, self.account, "not-a-session"))
        self.assertEqual(len(self.account.sessions), 1)

    def test_remove_all(self) -> None:
        for _ in range(3):
            self._add()
        self.assertEqual(sessions.remove_all(self.store, self.account), 3)
        self.assertEqual(self.account.sessions, [])
        self.assertEqual(sessions.remove_all(self.store, self.account), 0)

    def test_store_has_no_direct_session_insert(self) -> None:
        self.assertFalse(hasattr(AccountStore, "add_session"))

    def test_store_delete_session_keeps_relationship_current(self) -> None:
        token = self._add()
        self.assertEqual(len(self.account.sessions), 1)
        self.assertTrue(self.store.delete_session(self.account, hash_opaque_token(token)))
        self.assertEqual(self.account.sessions, [])

    def test_store_delete_session_is_scoped_to_the_account(self) -> None:
        token = self._add()
        other = make_account(self.store, email="grace@example.com")
        self.assertFalse(self.store.delete_session(other, hash_opaque_token(token)))
        self.assertEqual(len(self.account.sessions), 1)

    def test_store_delete_account_sessions(self) -> None:
        for _ in range(2):
            self._add()
        other = make_account(self.store, email="grace@example.com")
        sessions.add(self.store, other, generate_opaque_token(), None, None, now=self.now, ttl=TTL)
        self.assertEqual(self.store.delete_account_sessions(self.account), 2)
        self.assertEqual(self.account.sessions, [])
        self.assertEqual(len(self.store.refresh(other).sessions), 1)

    def test_purge_expired_spans_accounts(self) -> None:
        other = make_account(self.store, email="grace@example.com")
        self._add(now=self.now - timedelta(days=8))
        sessions.add(
            self.store, other, generate_opaque_token(), "", "",
            now=self.now - timedelta(days=10), ttl=TTL,
        )
        live = self._add()
        self.assertEqual(sessions.purge_expired(self.store, self.now), 1)
        self.assertEqual(self.db.query(AccountSession).count(), 1)
        self.store.refresh(self.account)
        self.assertIsNotNone(sessions.find(self.account, live, self.now))


if __name__ == "__main__":
    unittest.main()
