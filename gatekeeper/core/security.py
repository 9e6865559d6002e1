"""
Security primitives.

This module provides:
- Password hashing and verification using bcrypt (also used to digest
  refresh tokens before they are stored)
- Access/refresh JWT issuance and verification using PyJWT
- Signed OAuth `state` values for the provider redirect flow

It is the only place where signing secrets are used.
"""

import base64
import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import bcrypt
import jwt

from gatekeeper.config import Settings, TokenType, settings


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    """The token signature is valid but its `exp` has passed."""


class InvalidSignatureError(TokenError):
    """The token is malformed, tampered with, or of the wrong type."""


def _prepare_password_for_bcrypt(password: str) -> str:
    """
    Fit a secret into bcrypt's 72 byte input limit.

    Longer inputs (refresh JWTs are several hundred bytes) are SHA256 hashed
    and base64 encoded first, so every byte of the secret affects the digest
    instead of being silently truncated.
    """
    password_bytes = password.encode("utf-8")

    if len(password_bytes) <= 72:
        return password

    # SHA256 produces 32 bytes, base64 encoding produces 44 chars (well under 72)
    hashed = hashlib.sha256(password_bytes).digest()
    return base64.b64encode(hashed).decode("ascii")


def get_password_hash(password: str, rounds: int | None = None) -> str:
    """
    Hash a secret using bcrypt with a fresh salt.

    Args:
        password: The plain text secret
        rounds: bcrypt work factor (defaults to settings.BCRYPT_ROUNDS)

    Returns:
        The bcrypt digest as a string
    """
    prepared_password = _prepare_password_for_bcrypt(password)
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(prepared_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plain secret against a bcrypt digest.

    Returns False for a mismatch, a missing digest (OAuth-only accounts) or a
    digest that is not valid bcrypt; never raises.
    """
    if not hashed_password:
        return False
    prepared_password = _prepare_password_for_bcrypt(plain_password)
    try:
        return bcrypt.checkpw(prepared_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


class TokenSubject(Protocol):
    """Anything a token pair can be issued for (Users satisfies this)."""

    id: str
    email: str
    role: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of an access or refresh token."""

    sub: str
    email: str
    role: str
    type: str
    jti: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class TokenIssuer:
    """
    Mints and verifies signed access/refresh token pairs.

    Both tokens carry the same identity claims {sub, email, role}; they differ
    in secret, lifetime and `type`. Every token gets its own `jti`, which the
    refresh token ledger uses as the id of the row recording it.
    """

    def __init__(self, config: Settings | None = None) -> None:
        config = config or settings
        self._algorithm = config.JWT_ALGORITHM
        self._secrets = {
            TokenType.ACCESS: config.JWT_SECRET,
            TokenType.REFRESH: config.JWT_REFRESH_SECRET,
        }
        self._lifetimes = {
            TokenType.ACCESS: timedelta(seconds=config.ACCESS_TOKEN_EXPIRE_SECONDS),
            TokenType.REFRESH: timedelta(seconds=config.REFRESH_TOKEN_EXPIRE_SECONDS),
        }

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self._lifetimes[TokenType.ACCESS].total_seconds())

    def _sign(self, subject: TokenSubject, token_type: str) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": str(subject.id),
            "email": subject.email,
            "role": subject.role,
            "type": token_type,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + self._lifetimes[token_type],
        }
        return jwt.encode(payload, self._secrets[token_type], algorithm=self._algorithm)

    def issue(self, subject: TokenSubject) -> TokenPair:
        """Sign a fresh access/refresh pair for the subject."""
        return TokenPair(
            access_token=self._sign(subject, TokenType.ACCESS),
            refresh_token=self._sign(subject, TokenType.REFRESH),
        )

    def verify(self, token: str, token_type: str) -> TokenClaims:
        """
        Verify a token with the secret of its type and return its claims.

        Raises:
            TokenExpiredError: signature valid, token expired
            InvalidSignatureError: anything else (bad signature, malformed,
                missing claims, wrong `type`)
        """
        if token_type not in self._secrets:
            raise ValueError(f"Unknown token type: {token_type}")
        try:
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp", "iat", "jti"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidSignatureError(f"Invalid token: {e}") from e

        if payload.get("type") != token_type:
            raise InvalidSignatureError("Wrong token type")

        try:
            return TokenClaims(
                sub=str(payload["sub"]),
                email=str(payload.get("email", "")),
                role=str(payload.get("role", "")),
                type=payload["type"],
                jti=str(payload["jti"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC).replace(tzinfo=None),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC).replace(tzinfo=None),
            )
        except (TypeError, ValueError) as e:
            raise InvalidSignatureError(f"Invalid token claims: {e}") from e


def create_oauth_state(provider: str, config: Settings | None = None) -> str:
    """
    Create a signed, short-lived OAuth `state` value bound to a provider.

    The state is verified on the callback, which makes the redirect flow
    stateless on the server side.
    """
    config = config or settings
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "type": TokenType.OAUTH_STATE,
        "provider": provider,
        "nonce": secrets.token_urlsafe(16),
        "iat": now,
        "exp": now + timedelta(seconds=config.OAUTH_STATE_EXPIRE_SECONDS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_oauth_state(state: str, provider: str, config: Settings | None = None) -> bool:
    """Check that `state` was issued by create_oauth_state() for this provider."""
    config = config or settings
    try:
        payload = jwt.decode(state, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return False
    return payload.get("type") == TokenType.OAUTH_STATE and payload.get("provider") == provider
