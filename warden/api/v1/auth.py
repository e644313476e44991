"""Credential endpoints and auth dependencies (get_current_user, require_roles)."""

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, Header, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from warden.core.config import Settings
from warden.core.database import get_db
from warden.core.errors import Forbidden, TooManyRequests
from warden.models import Role
from warden.schemas.auth import (
    AccountSummary,
    ApiResponse,
    AuthResult,
    ChangePasswordRequest,
    CurrentUser,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    SessionInfo,
    TokenPair,
)
from warden.services.credentials import CredentialService
from warden.services.email import EmailSender
from warden.services.store import AccountStore
from warden.services.throttle import RateLimiter

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"

FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)
RESEND_VERIFICATION_MESSAGE = (
    "If an account with that email exists, a verification link has been sent."
)

security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email


def get_store(db: Annotated[Session, Depends(get_db)]) -> AccountStore:
    return AccountStore(db)


def get_credential_service(
    store: Annotated[AccountStore, Depends(get_store)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    email: Annotated[EmailSender, Depends(get_email_sender)],
) -> CredentialService:
    return CredentialService(store, settings, email)


def client_ip(request: Request) -> str:
    """
    Address of the client as seen by the outermost trusted proxy.

    With TRUSTED_PROXY_HOPS=0 X-Forwarded-For is ignored. With N hops the Nth
    entry from the right is used; entries further left are written by the
    client and cannot be trusted.
    """
    peer = request.client.host if request.client else ""
    hops = request.app.state.settings.TRUSTED_PROXY_HOPS
    forwarded = request.headers.get("x-forwarded-for")
    if hops < 1 or not forwarded:
        return peer
    chain = [a.strip() for a in forwarded.split(",") if a.strip()]
    if not chain:
        return peer
    return chain[-min(hops, len(chain))]


def rate_limit(name: str) -> Callable[[Request], None]:
    """Dependency factory: count the request against app.state.rate_limiters[name]."""

    def dependency(request: Request) -> None:
        limiters: dict[str, RateLimiter] = getattr(request.app.state, "rate_limiters", {})
        limiter = limiters.get(name)
        if limiter is None:
            return
        allowed, retry_after = limiter.hit(client_ip(request) or "unknown")
        if not allowed:
            raise TooManyRequests(
                "Too many requests, please try again later",
                retry_after=int(retry_after) + 1,
            )

    return dependency


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    service: Annotated[CredentialService, Depends(get_credential_service)],
    access_cookie: Annotated[str | None, Cookie(alias=ACCESS_COOKIE)] = None,
    x_auth_token: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """Dependency: require a valid access token (cookie, Bearer header or X-Auth-Token)."""
    token = access_cookie
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        token = x_auth_token
    return service.authenticate(token)


def require_roles(*roles: Role) -> Callable[..., CurrentUser]:
    """Dependency factory: require an authenticated user holding one of roles."""
    allowed = {r.value for r in roles}

    def dependency(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
    ) -> CurrentUser:
        if current_user.role not in allowed:
            raise Forbidden(
                f"Access denied. Required role: {' or '.join(sorted(allowed))}"
            )
        return current_user

    return dependency


require_admin = require_roles(Role.ADMINISTRATOR)


def set_token_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    """Hand tokens to the browser as HttpOnly cookies; refresh is scoped to the auth path."""
    secure = settings.cookie_secure
    samesite = "strict" if settings.APP_ENV == "prod" else "lax"
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
        httponly=True,
        secure=secure,
        samesite=samesite,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path=settings.REFRESH_COOKIE_PATH,
        httponly=True,
        secure=secure,
        samesite=samesite,
    )


def clear_token_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path=settings.REFRESH_COOKIE_PATH)


router = APIRouter(dependencies=[Depends(rate_limit("auth"))])

ServiceDep = Annotated[CredentialService, Depends(get_credential_service)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
UserDep = Annotated[CurrentUser, Depends(get_current_user)]


@router.post(
    "/register",
    response_model=ApiResponse[AuthResult],
    status_code=status.HTTP_201_CREATED,
)
def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    service: ServiceDep,
    settings: SettingsDep,
) -> ApiResponse[AuthResult]:
    """
    Create an account (role: user, email unverified) and sign it in.
    A verification link is emailed; failure to send does not fail registration.
    """
    result = service.register(
        body.name,
        body.email,
        body.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    set_token_cookies(response, result.tokens, settings)
    return ApiResponse(
        message="User registered successfully. Please check your email to verify your account.",
        data=result,
    )


@router.post(
    "/login",
    response_model=ApiResponse[AuthResult],
    dependencies=[Depends(rate_limit("login"))],
)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    service: ServiceDep,
    settings: SettingsDep,
) -> ApiResponse[AuthResult]:
    """
    Authenticate with email and password; returns access and refresh tokens.
    Returns 401 for bad credentials, 423 while locked, 403 when deactivated.
    """
    result = service.login(
        body.email,
        body.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    set_token_cookies(response, result.tokens, settings)
    return ApiResponse(message="Login successful", data=result)


@router.post("/refresh-token", response_model=ApiResponse[AuthResult])
def refresh_token(
    request: Request,
    response: Response,
    service: ServiceDep,
    settings: SettingsDep,
    body: RefreshRequest | None = None,
    refresh_cookie: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
) -> ApiResponse[AuthResult]:
    """Exchange a refresh token for a new pair. The presented token cannot be used again."""
    token = (body.refresh_token if body else None) or refresh_cookie
    result = service.refresh(
        token,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    set_token_cookies(response, result.tokens, settings)
    return ApiResponse(message="Tokens refreshed successfully", data=result)


@router.post(
    "/forgot-password",
    response_model=ApiResponse[None],
    dependencies=[Depends(rate_limit("login"))],
)
def forgot_password(body: ForgotPasswordRequest, service: ServiceDep) -> ApiResponse[None]:
    """Same response whether or not the email belongs to an account."""
    service.forgot_password(body.email)
    return ApiResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password/{token}", response_model=ApiResponse[None])
def reset_password(
    token: str,
    body: ResetPasswordRequest,
    response: Response,
    service: ServiceDep,
    settings: SettingsDep,
) -> ApiResponse[None]:
    service.reset_password(token, body.password)
    clear_token_cookies(response, settings)
    return ApiResponse(message="Password has been reset. Please log in with your new password.")


@router.get("/verify-email/{token}", response_model=ApiResponse[AccountSummary])
def verify_email(token: str, service: ServiceDep) -> ApiResponse[AccountSummary]:
    account = service.verify_email(token)
    return ApiResponse(message="Email verified successfully", data=account)


@router.post("/resend-verification", response_model=ApiResponse[None])
def resend_verification(
    body: ResendVerificationRequest, service: ServiceDep
) -> ApiResponse[None]:
    service.resend_verification(body.email)
    return ApiResponse(message=RESEND_VERIFICATION_MESSAGE)


@router.post("/logout", response_model=ApiResponse[None])
def logout(
    current_user: UserDep,
    response: Response,
    service: ServiceDep,
    settings: SettingsDep,
    body: LogoutRequest | None = None,
    refresh_cookie: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
) -> ApiResponse[None]:
    """Revoke the presented session. Logging out twice is not an error."""
    token = (body.refresh_token if body else None) or refresh_cookie
    service.logout(current_user.id, token)
    clear_token_cookies(response, settings)
    return ApiResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=ApiResponse[dict])
def logout_all(
    current_user: UserDep,
    response: Response,
    service: ServiceDep,
    settings: SettingsDep,
) -> ApiResponse[dict]:
    removed = service.logout_all(current_user.id)
    clear_token_cookies(response, settings)
    return ApiResponse(
        message="Logged out from all devices successfully",
        data={"sessions_revoked": removed},
    )


@router.put("/change-password", response_model=ApiResponse[None])
def change_password(
    body: ChangePasswordRequest,
    current_user: UserDep,
    response: Response,
    service: ServiceDep,
    settings: SettingsDep,
) -> ApiResponse[None]:
    """Change password; every session is revoked, so the caller must log in again."""
    service.change_password(current_user.id, body.current_password, body.new_password)
    clear_token_cookies(response, settings)
    return ApiResponse(message="Password changed successfully. Please log in again.")


@router.get("/sessions", response_model=ApiResponse[list[SessionInfo]])
def list_sessions(current_user: UserDep, service: ServiceDep) -> ApiResponse[list[SessionInfo]]:
    return ApiResponse(
        message="Active sessions retrieved successfully",
        data=service.list_sessions(current_user.id),
    )
