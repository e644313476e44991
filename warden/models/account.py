"""ORM models for accounts and their refresh-token session records."""

import enum

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from warden.models.base import Base, UTCDateTime


class Role(str, enum.Enum):
    STANDARD = "user"
    MODERATOR = "moderator"
    ADMINISTRATOR = "admin"


class Account(Base):
    """
    Identity record with its credential and lockout state.

    This is the credentials view: it carries the password hash and the hashed
    single-use tokens, and is only handled inside the service layer. Anything
    leaving the service is converted to schemas.auth.AccountSummary.
    """

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(50), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=Role.STANDARD.value)
    is_active = Column(Boolean, nullable=False, default=True)
    is_email_verified = Column(Boolean, nullable=False, default=False)

    failed_login_attempts = Column(Integer, nullable=False, default=0)
    lock_until = Column(UTCDateTime, nullable=True)
    last_login = Column(UTCDateTime, nullable=True)

    email_verification_token_hash = Column(String(64), nullable=True, index=True)
    email_verification_expires = Column(UTCDateTime, nullable=True)
    password_reset_token_hash = Column(String(64), nullable=True, index=True)
    password_reset_expires = Column(UTCDateTime, nullable=True)

    bio = Column(Text, nullable=True)
    phone_number = Column(String(32), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    sessions = relationship(
        "AccountSession",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="AccountSession.id",
    )


class AccountSession(Base):
    """One issued refresh-token lineage. Stores the token digest, never the token."""

    __tablename__ = "account_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash = Column(String(64), nullable=False, unique=True)
    user_agent = Column(String(200), nullable=False, default="")
    ip_address = Column(String(45), nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False, index=True)

    account = relationship("Account", back_populates="sessions")
