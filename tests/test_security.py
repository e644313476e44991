"""Unit tests for password hashing and the password/name/email policy helpers."""

import unittest
from unittest.mock import patch

from warden.core.errors import InternalError, ValidationFailed
from warden.core.security import (
    hash_password,
    normalize_email,
    normalize_name,
    redact_email,
    validate_password_strength,
    verify_password,
)


class TestHashPassword(unittest.TestCase):
    """hash_password produces a salted bcrypt digest that verify_password accepts."""

    def test_hash_differs_from_plaintext_and_verifies(self) -> None:
        digest = hash_password("Str0ng!Pw", rounds=4)
        self.assertNotEqual(digest, "Str0ng!Pw")
        self.assertTrue(digest.startswith("$2"))
        self.assertTrue(verify_password("Str0ng!Pw", digest))

    def test_same_password_hashes_differently(self) -> None:
        self.assertNotEqual(hash_password("Str0ng!Pw", rounds=4), hash_password("Str0ng!Pw", rounds=4))

    def test_rounds_are_encoded_in_digest(self) -> None:
        self.assertIn("$05$", hash_password("Str0ng!Pw", rounds=5))

    def test_hashing_failure_is_internal_error(self) -> None:
        with patch("warden.core.security.bcrypt.hashpw", side_effect=ValueError("boom")):
            with self.assertRaises(InternalError):
                hash_password("Str0ng!Pw", rounds=4)


class TestVerifyPassword(unittest.TestCase):
    """verify_password returns False on mismatch or malformed input; never raises."""

    def setUp(self) -> None:
        self.digest = hash_password("Str0ng!Pw", rounds=4)

    def test_wrong_password(self) -> None:
        self.assertFalse(verify_password("wrong", self.digest))

    def test_malformed_hash(self) -> None:
        self.assertFalse(verify_password("Str0ng!Pw", "not-a-bcrypt-hash"))

    def test_empty_inputs(self) -> None:
        self.assertFalse(verify_password("", self.digest))
        self.assertFalse(verify_password("Str0ng!Pw", None))


class TestPasswordStrength(unittest.TestCase):
    def test_accepts_strong_password(self) -> None:
        validate_password_strength("Str0ng!Pw")

    def test_rejects_short_password(self) -> None:
        with self.assertRaises(ValidationFailed) as ctx:
            validate_password_strength("S0!a")
        self.assertIn("at least 8", ctx.exception.message)

    def test_rejects_missing_character_classes(self) -> None:
        for weak in ("alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"):
            with self.subTest(password=weak):
                with self.assertRaises(ValidationFailed):
                    validate_password_strength(weak)

    def test_rejects_overlong_password(self) -> None:
        with self.assertRaises(ValidationFailed):
            validate_password_strength("Aa1!" * 40)

    def test_rejects_missing_password(self) -> None:
        with self.assertRaises(ValidationFailed):
            validate_password_strength(None)


class TestNormalizers(unittest.TestCase):
    def test_email_is_lowercased_and_trimmed(self) -> None:
        self.assertEqual(normalize_email("  Alice@Example.COM "), "alice@example.com")

    def test_email_requires_at_sign(self) -> None:
        with self.assertRaises(ValidationFailed):
            normalize_email("not-an-email")

    def test_name_is_trimmed(self) -> None:
        self.assertEqual(normalize_name("  Ada Lovelace "), "Ada Lovelace")

    def test_name_rejects_digits_and_bad_length(self) -> None:
        for bad in ("A", "R2D2", "x" * 51, ""):
            with self.subTest(name=bad):
                with self.assertRaises(ValidationFailed):
                    normalize_name(bad)

    def test_redact_email(self) -> None:
        self.assertEqual(redact_email("alice@example.com"), "al***@example.com")
        self.assertEqual(redact_email("nope"), "redacted")


if __name__ == "__main__":
    unittest.main()
