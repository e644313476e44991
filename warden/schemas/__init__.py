"""Pydantic request/response schemas."""

from warden.schemas.auth import (
    AccountPage,
    AccountStats,
    AccountSummary,
    ApiResponse,
    AuthResult,
    ChangePasswordRequest,
    CurrentUser,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    RoleUpdateRequest,
    SessionInfo,
    TokenPair,
)
from warden.schemas.health import HealthResponse

__all__ = [
    "AccountPage",
    "AccountStats",
    "AccountSummary",
    "ApiResponse",
    "AuthResult",
    "ChangePasswordRequest",
    "CurrentUser",
    "ForgotPasswordRequest",
    "HealthResponse",
    "LoginRequest",
    "LogoutRequest",
    "ProfileUpdate",
    "RefreshRequest",
    "RegisterRequest",
    "ResendVerificationRequest",
    "ResetPasswordRequest",
    "RoleUpdateRequest",
    "SessionInfo",
    "TokenPair",
]
