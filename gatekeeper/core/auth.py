"""
Authentication dependencies for FastAPI route protection.

This module provides dependency functions for:
- Extracting and verifying bearer access tokens from requests
- Loading current user from database
- Restricting routes to roles
- Capturing the client details recorded on new sessions
"""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.config import TokenType
from gatekeeper.core.database import get_db
from gatekeeper.core.logging import set_user_context
from gatekeeper.core.security import TokenError, TokenIssuer
from gatekeeper.models.user import Users
from gatekeeper.repositories.users import UserRepository
from gatekeeper.services.auth import AuthService
from gatekeeper.services.session_tracker import RequestContext

# Define the security scheme for OpenAPI documentation
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer()


def get_auth_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> AuthService:
    return AuthService(db, issuer)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Checks X-Forwarded-For header first (for proxies/load balancers),
    falls back to direct client IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (client)
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_request_context(request: Request) -> RequestContext:
    """Client details stored on the session a login creates."""
    return RequestContext(
        ip=get_client_ip(request),
        user_agent=request.headers.get("User-Agent", "unknown"),
        device_id=request.headers.get("X-Device-Id"),
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> Users:
    """
    Load current user from the bearer access token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired, or the
            user no longer exists or is inactive
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        claims = issuer.verify(credentials.credentials, TokenType.ACCESS)
    except TokenError:
        raise _unauthorized() from None

    user = await UserRepository(db).get_by_id(claims.sub)
    if user is None or not user.is_active:
        raise _unauthorized()

    set_user_context(user.id)
    return user


def require_roles(*roles: str) -> Callable[[Users], Awaitable[Users]]:
    """
    Build a dependency that admits only users holding one of `roles`.

    Usage:
        @router.get("/admin-only")
        async def handler(user: Annotated[Users, Depends(require_roles(UserRole.ADMIN))]): ...
    """

    async def check_role(current_user: Annotated[Users, Depends(get_current_user)]) -> Users:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return current_user

    return check_role


# Type aliases for dependency injection
CurrentUser = Annotated[Users, Depends(get_current_user)]
ClientContext = Annotated[RequestContext, Depends(get_request_context)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
