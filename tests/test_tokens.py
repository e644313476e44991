"""Unit tests for warden.core.tokens: signed access/refresh tokens and opaque single-use tokens."""

import unittest
from datetime import UTC, datetime, timedelta

import jwt

from warden.core.errors import TokenExpiredError, TokenInvalidError, Unauthorized
from warden.core.tokens import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    generate_opaque_token,
    hash_opaque_token,
    subject_as_id,
)

from support import make_settings


class TestSignedTokens(unittest.TestCase):
    def setUp(self) -> None:
        self.settings = make_settings()

    def test_access_token_round_trip_claims(self) -> None:
        issued = create_access_token(42, self.settings)
        payload = decode_access_token(issued.token, self.settings)
        self.assertEqual(payload["sub"], "42")
        self.assertEqual(payload["type"], "access")
        self.assertEqual(payload["iss"], "warden")
        self.assertEqual(payload["aud"], "warden-users")
        self.assertEqual(subject_as_id(payload), 42)

    def test_default_lifetimes(self) -> None:
        before = datetime.now(UTC)
        access = create_access_token(1, self.settings)
        refresh = create_refresh_token(1, self.settings)
        self.assertAlmostEqual(
            (access.expires_at - before).total_seconds(), 15 * 60, delta=5
        )
        self.assertAlmostEqual(
            (refresh.expires_at - before).total_seconds(), 7 * 24 * 3600, delta=5
        )

    def test_tokens_issued_together_are_distinct(self) -> None:
        a = create_refresh_token(1, self.settings)
        b = create_refresh_token(1, self.settings)
        self.assertNotEqual(a.token, b.token)

    def test_access_token_is_not_a_refresh_token(self) -> None:
        access = create_access_token(1, self.settings)
        with self.assertRaises(TokenInvalidError):
            decode_refresh_token(access.token, self.settings)

    def test_refresh_token_is_not_an_access_token(self) -> None:
        refresh = create_refresh_token(1, self.settings)
        with self.assertRaises(TokenInvalidError):
            decode_access_token(refresh.token, self.settings)

    def test_expired_token_is_classified_as_expired(self) -> None:
        past = datetime.now(UTC) - timedelta(hours=1)
        issued = create_access_token(1, self.settings, now=past)
        with self.assertRaises(TokenExpiredError) as ctx:
            decode_access_token(issued.token, self.settings)
        self.assertEqual(ctx.exception.code, "token_expired")
        self.assertIsInstance(ctx.exception, Unauthorized)

    def test_wrong_audience_or_issuer_is_invalid(self) -> None:
        issued = create_access_token(1, self.settings)
        for override in ({"JWT_AUDIENCE": "someone-else"}, {"JWT_ISSUER": "other-issuer"}):
            with self.subTest(override=override):
                with self.assertRaises(TokenInvalidError):
                    decode_access_token(issued.token, make_settings(**override))

    def test_token_signed_with_other_secret_is_invalid(self) -> None:
        forged = jwt.encode(
            {
                "sub": "1",
                "type": "refresh",
                "iss": "warden",
                "aud": "warden-users",
                "iat": datetime.now(UTC),
                "exp": datetime.now(UTC) + timedelta(days=1),
            },
            "test-access-secret",
            algorithm="HS256",
        )
        with self.assertRaises(TokenInvalidError):
            decode_refresh_token(forged, self.settings)

    def test_garbage_and_missing_tokens_are_invalid(self) -> None:
        for bad in ("not.a.jwt", "", None):
            with self.subTest(token=bad):
                with self.assertRaises(TokenInvalidError):
                    decode_access_token(bad, self.settings)

    def test_non_integer_subject_is_invalid(self) -> None:
        with self.assertRaises(TokenInvalidError):
            subject_as_id({"sub": "abc"})


class TestOpaqueTokens(unittest.TestCase):
    def test_generated_tokens_are_random_hex_of_32_bytes(self) -> None:
        a, b = generate_opaque_token(), generate_opaque_token()
        self.assertEqual(len(a), 64)
        int(a, 16)
        self.assertNotEqual(a, b)

    def test_hash_is_deterministic_and_not_the_token(self) -> None:
        raw = generate_opaque_token()
        self.assertEqual(hash_opaque_token(raw), hash_opaque_token(raw))
        self.assertNotEqual(hash_opaque_token(raw), raw)
        self.assertEqual(len(hash_opaque_token(raw)), 64)


if __name__ == "__main__":
    unittest.main()
