"""SQLAlchemy ORM models."""

from warden.models.account import Account, AccountSession, Role
from warden.models.base import Base

__all__ = ["Account", "AccountSession", "Base", "Role"]
