"""FastAPI application entrypoint. No business logic; only wiring, error rendering and middleware."""

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from warden.api.v1 import router as v1_router
from warden.core.config import Settings, get_settings
from warden.core.errors import AccountLocked, CredentialError, TooManyRequests, Unauthorized
from warden.services.email import EmailService
from warden.services.throttle import RateLimiter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def _error_body(code: str, message: str) -> dict:
    return {"success": False, "error": {"code": code, "message": message}}


async def credential_error_handler(request: Request, exc: CredentialError) -> JSONResponse:
    """Render every CredentialError as the error envelope with its mapped status."""
    headers: dict[str, str] = {}
    body = _error_body(exc.code, exc.message)
    if isinstance(exc, Unauthorized):
        headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, AccountLocked) and exc.locked_until is not None:
        body["error"]["locked_until"] = exc.locked_until.isoformat()
    if isinstance(exc, TooManyRequests) and exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies use the same envelope and status as ValidationFailed."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", message)
    return JSONResponse(status_code=400, content=_error_body("validation_error", message))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=_error_body("internal_error", "Internal server error"),
    )


def build_rate_limiters(settings: Settings) -> dict[str, RateLimiter]:
    window = settings.RATE_LIMIT_WINDOW_SECONDS
    max_keys = settings.RATE_LIMIT_MAX_KEYS
    return {
        "auth": RateLimiter(settings.AUTH_RATE_LIMIT, window, max_keys=max_keys),
        "login": RateLimiter(settings.LOGIN_RATE_LIMIT, window, max_keys=max_keys),
    }


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app; each instance owns its settings, email sender and rate limiters."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Warden API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.email = EmailService.from_settings(settings)
    app.state.rate_limiters = build_rate_limiters(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.APP_ENV == "dev" else [settings.CLIENT_URL],
        allow_credentials=settings.APP_ENV != "dev",
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CredentialError, credential_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Warden API"}

    return app


app = create_app()
