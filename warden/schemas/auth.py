"""Request/response schemas for auth and account endpoints."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, EmailStr, Field

from warden.models.account import Role

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope shared by every endpoint."""

    success: bool = True
    message: str
    data: DataT | None = None


class RegisterRequest(BaseModel):
    """New account details. Role is never accepted here; admins assign roles."""

    name: str = Field(..., min_length=1, max_length=50, description="Display name")
    email: EmailStr = Field(..., description="Email address (case-insensitive)")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class RefreshRequest(BaseModel):
    """Refresh token in the body; the refresh_token cookie is used when absent."""

    refresh_token: str | None = Field(default=None, description="Refresh token")


class LogoutRequest(BaseModel):
    refresh_token: str | None = Field(default=None, description="Refresh token to revoke")


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=128, description="New password")


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class TokenPair(BaseModel):
    """Access and refresh tokens returned after login, registration or refresh."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token (single use)")
    token_type: str = Field(default="bearer", description="Token type")
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime


class AccountSummary(BaseModel):
    """Public view of an account. Carries no hash, token or lockout fields."""

    id: int
    name: str
    email: str
    role: str
    is_active: bool
    is_email_verified: bool
    last_login: datetime | None = None
    created_at: datetime | None = None
    bio: str | None = None
    phone_number: str | None = None

    class Config:
        from_attributes = True


class AuthResult(BaseModel):
    account: AccountSummary
    tokens: TokenPair


class CurrentUser(BaseModel):
    """Authenticated account (id, email, role) for dependency injection."""

    id: int
    email: str
    name: str
    role: str
    is_email_verified: bool

    class Config:
        from_attributes = True


class SessionInfo(BaseModel):
    """One active session as shown to its owner (no token digest)."""

    id: int
    user_agent: str
    ip_address: str
    created_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    """Optional-field profile update; only fields explicitly sent are applied."""

    name: str | None = Field(default=None, max_length=50)
    bio: str | None = Field(default=None, max_length=500)
    phone_number: str | None = Field(default=None, max_length=32)


class RoleUpdateRequest(BaseModel):
    role: Role


class AccountPage(BaseModel):
    """Paginated account listing (admin only)."""

    users: list[AccountSummary]
    total: int
    page: int
    limit: int
    pages: int


class AccountStats(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    verified_users: int
    unverified_users: int
    locked_users: int
    users_by_role: dict[str, int]
