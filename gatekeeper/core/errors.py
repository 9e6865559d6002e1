"""
Typed errors raised by the authentication core and their HTTP mapping.

Services raise these; register_exception_handlers() turns them into JSON
responses shaped like FastAPI's own HTTPException responses ({"detail": ...}).
All unauthenticated outcomes share one status and carry no hint about which
check failed.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gatekeeper.core.logging import get_logger

logger = get_logger(__name__)


class AuthError(Exception):
    """Base class for errors the core surfaces to its callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Bad request"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ConflictError(AuthError):
    """Registration collides with an existing account."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "User with this email already exists"


class InvalidCredentialsError(AuthError):
    """Unknown email, wrong password, or inactive account."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid credentials"


class InvalidRefreshTokenError(AuthError):
    """Refresh token is invalid, expired, already rotated, or revoked."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid refresh token"


class ForbiddenError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFoundError(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class OAuthError(AuthError):
    """The provider exchange failed or returned an unusable profile."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "OAuth login failed"


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an AuthError as {"detail": ...} with its status code."""
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    logger.info(
        "auth_error",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the AuthError handler on the application."""
    app.add_exception_handler(AuthError, auth_error_handler)  # type: ignore[arg-type]
