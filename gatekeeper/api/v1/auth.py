"""
Authentication API endpoints.

This module provides endpoints for:
- Registration and login (JWT access token + refresh token)
- Token refresh (with rotation)
- Logout (revoke refresh tokens)
- Session listing and termination
- OAuth login through Google, GitHub and LinkedIn
"""

from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse

from gatekeeper.config import settings
from gatekeeper.core.auth import AuthServiceDep, ClientContext, CurrentUser
from gatekeeper.core.errors import OAuthError
from gatekeeper.core.logging import get_logger
from gatekeeper.core.security import create_oauth_state, verify_oauth_state
from gatekeeper.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    SessionResponse,
    UserResponse,
)
from gatekeeper.services.auth import AuthResult
from gatekeeper.services.oauth import OAuthProvider, get_provider

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def get_oauth_provider(provider: str) -> OAuthProvider:
    """Resolve the `{provider}` path segment; 404 when unknown or unconfigured."""
    return get_provider(provider)


OAuthProviderDep = Annotated[OAuthProvider, Depends(get_oauth_provider)]


def _auth_response(result: AuthResult, expires_in: int) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(result.user),
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        token_type="bearer",
        expires_in=expires_in,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, service: AuthServiceDep) -> AuthResponse:
    """
    Create a local account and return its first token pair.

    Registration does not open a session; log in to get a session-bound pair.
    """
    result = await service.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        username=body.username,
    )
    return _auth_response(result, service.issuer.access_expires_in)


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    context: ClientContext,
    service: AuthServiceDep,
) -> AuthResponse:
    """
    Authenticate with email and password.

    Every failure (unknown email, OAuth-only account, wrong password,
    deactivated account) returns the same 401.
    """
    result = await service.login(credentials.email, credentials.password, context)
    return _auth_response(result, service.issuer.access_expires_in)


@router.post("/refresh", response_model=AuthResponse)
async def refresh(body: RefreshRequest, service: AuthServiceDep) -> AuthResponse:
    """
    Exchange a refresh token for a new pair.

    The presented token is spent; presenting it again returns 401.
    """
    result = await service.refresh(body.refresh_token)
    return _auth_response(result, service.issuer.access_expires_in)


@router.post("/logout", response_model=MessageResponse)
async def logout(body: RefreshRequest, service: AuthServiceDep) -> MessageResponse:
    """Revoke the caller's refresh tokens. Always succeeds."""
    await service.logout(body.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=UserResponse)
async def profile(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.get("/sessions", response_model=list[SessionResponse])
async def list_sessions(current_user: CurrentUser, service: AuthServiceDep) -> list[SessionResponse]:
    """Active sessions of the current user, most recently used first."""
    sessions = await service.list_sessions(current_user.id)
    return [SessionResponse.model_validate(s) for s in sessions]


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
async def terminate_session(
    session_id: str,
    current_user: CurrentUser,
    service: AuthServiceDep,
) -> MessageResponse:
    """Log out one device. Its refresh tokens stop working immediately."""
    await service.terminate_session(session_id, current_user.id)
    return MessageResponse(message="Session terminated successfully")


@router.delete("/sessions", response_model=MessageResponse)
async def terminate_all_sessions(current_user: CurrentUser, service: AuthServiceDep) -> MessageResponse:
    """Log out every device of the current user."""
    await service.terminate_all_sessions(current_user.id)
    return MessageResponse(message="All sessions terminated successfully")


@router.get("/oauth/{provider}", response_class=RedirectResponse)
async def oauth_redirect(oauth: OAuthProviderDep) -> RedirectResponse:
    """Send the browser to the provider's consent page."""
    state = create_oauth_state(oauth.name)
    return RedirectResponse(oauth.authorization_url(state))


@router.get("/oauth/{provider}/callback", response_class=RedirectResponse)
async def oauth_callback(
    oauth: OAuthProviderDep,
    context: ClientContext,
    service: AuthServiceDep,
    code: Annotated[str | None, Query()] = None,
    state: Annotated[str | None, Query()] = None,
    error: Annotated[str | None, Query()] = None,
) -> RedirectResponse:
    """
    Complete the provider login and hand the token pair to the frontend.

    Redirects to FRONTEND_URL/auth/callback?token=...&refresh=...
    """
    if error or not code:
        logger.info("oauth_callback_denied", provider=oauth.name, error=error)
        raise OAuthError(f"{oauth.name} login was cancelled or denied")
    if not state or not verify_oauth_state(state, oauth.name):
        logger.warning("oauth_state_invalid", provider=oauth.name)
        raise OAuthError("Invalid OAuth state")

    profile = await oauth.fetch_profile(code)
    user = await service.validate_oauth_user(profile)
    result = await service.login_oauth_user(user, context)

    query = urlencode(
        {"token": result.tokens.access_token, "refresh": result.tokens.refresh_token}
    )
    return RedirectResponse(f"{settings.FRONTEND_URL.rstrip('/')}/auth/callback?{query}")
