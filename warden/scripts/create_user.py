"""
Create an account (e.g. first admin) with its email already verified. Run from project root:
  python -m warden.scripts.create_user EMAIL PASSWORD NAME [role]
Example:
  python -m warden.scripts.create_user admin@example.com 'S3cure!pass' 'Site Admin' admin
"""
import argparse
import sys

from warden.core.config import get_settings
from warden.core.database import SessionLocal
from warden.core.errors import CredentialError
from warden.core.security import (
    hash_password,
    normalize_email,
    normalize_name,
    validate_password_strength,
)
from warden.models import Role
from warden.services.store import AccountStore


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a Warden account (bypasses registration).")
    parser.add_argument("email", help="Email address")
    parser.add_argument("password", help="Password (8-128 chars, mixed case, digit, special)")
    parser.add_argument("name", help="Display name (2-50 letters and spaces)")
    parser.add_argument(
        "role",
        nargs="?",
        default=Role.STANDARD.value,
        choices=[r.value for r in Role],
    )
    args = parser.parse_args()

    try:
        email = normalize_email(args.email)
        name = normalize_name(args.name)
        validate_password_strength(args.password)
    except CredentialError as e:
        print(e.message, file=sys.stderr)
        return 1

    settings = get_settings()
    db = SessionLocal()
    try:
        store = AccountStore(db)
        if store.find_by_email(email) is not None:
            print(f"Account '{email}' already exists.", file=sys.stderr)
            return 1
        store.create(
            email=email,
            name=name,
            password_hash=hash_password(args.password, rounds=settings.BCRYPT_ROUNDS),
            role=args.role,
            is_active=True,
            is_email_verified=True,
            failed_login_attempts=0,
        )
        print(f"Created account '{email}' with role '{args.role}'.")
        return 0
    except CredentialError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
