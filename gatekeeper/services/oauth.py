"""
OAuth providers.

Each provider turns an authorization code into a canonical OAuthProfile. The
authentication service only ever sees OAuthProfile, so adding a provider
means adding a class here and registering it in get_provider().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from gatekeeper.config import AuthProvider, Settings, settings
from gatekeeper.core.errors import NotFoundError, OAuthError
from gatekeeper.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OAuthProfile:
    """Provider-independent identity returned by every provider."""

    email: str
    provider: str
    provider_id: str
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None


class OAuthProvider(ABC):
    """Authorization-code flow for one provider."""

    name: str
    provider: str
    authorize_url: str
    token_url: str
    scope: str

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        callback_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self._http_client = http_client
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def authorization_url(self, state: str) -> str:
        """URL of the provider's consent page."""
        params = {
            "client_id": self.client_id or "",
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> OAuthProfile:
        """
        Exchange the code for an access token and load the user's profile.

        Raises:
            OAuthError: the provider rejected the code, is unreachable, or
                returned a profile without an email address
        """
        if self._http_client is not None:
            return await self._fetch_profile(self._http_client, code)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._fetch_profile(client, code)

    async def _fetch_profile(self, client: httpx.AsyncClient, code: str) -> OAuthProfile:
        try:
            access_token = await self._exchange_code(client, code)
            profile = await self.load_profile(client, access_token)
        except httpx.HTTPError as e:
            logger.warning("oauth_exchange_failed", provider=self.name, error=str(e))
            raise OAuthError(f"{self.name} login failed") from e

        if not profile.email:
            raise OAuthError(f"{self.name} account has no email address")
        return profile

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        response = await client.post(
            self.token_url,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": self.callback_url,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        token = response.json().get("access_token")
        if not token:
            raise OAuthError(f"{self.name} did not return an access token")
        return str(token)

    @staticmethod
    async def _get_json(client: httpx.AsyncClient, url: str, access_token: str) -> Any:
        response = await client.get(
            url,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )
        response.raise_for_status()
        return response.json()

    @abstractmethod
    async def load_profile(self, client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
        """Load and normalize the provider's user profile."""

    @abstractmethod
    def normalize(self, data: dict[str, Any]) -> OAuthProfile:
        """Map the provider's profile JSON onto OAuthProfile."""


class GoogleProvider(OAuthProvider):
    name = "google"
    provider = AuthProvider.GOOGLE
    authorize_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    userinfo_url = "https://www.googleapis.com/oauth2/v2/userinfo"
    scope = "openid email profile"

    async def load_profile(self, client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
        return self.normalize(await self._get_json(client, self.userinfo_url, access_token))

    def normalize(self, data: dict[str, Any]) -> OAuthProfile:
        return OAuthProfile(
            email=data.get("email") or "",
            provider=self.provider,
            provider_id=str(data.get("id", "")),
            first_name=data.get("given_name") or data.get("name"),
            last_name=data.get("family_name") or "",
            avatar=data.get("picture"),
        )


class GitHubProvider(OAuthProvider):
    name = "github"
    provider = AuthProvider.GITHUB
    authorize_url = "https://github.com/login/oauth/authorize"
    token_url = "https://github.com/login/oauth/access_token"
    user_url = "https://api.github.com/user"
    emails_url = "https://api.github.com/user/emails"
    scope = "user:email"

    async def load_profile(self, client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
        data = await self._get_json(client, self.user_url, access_token)
        if not data.get("email"):
            # Private emails are only listed by the emails endpoint
            emails = await self._get_json(client, self.emails_url, access_token)
            primary = next(
                (e for e in emails if e.get("primary") and e.get("verified")),
                None,
            )
            if primary:
                data = {**data, "email": primary["email"]}
        return self.normalize(data)

    def normalize(self, data: dict[str, Any]) -> OAuthProfile:
        return OAuthProfile(
            email=data.get("email") or "",
            provider=self.provider,
            provider_id=str(data.get("id", "")),
            first_name=data.get("name") or data.get("login"),
            last_name="",
            avatar=data.get("avatar_url"),
        )


class LinkedInProvider(OAuthProvider):
    name = "linkedin"
    provider = AuthProvider.LINKEDIN
    authorize_url = "https://www.linkedin.com/oauth/v2/authorization"
    token_url = "https://www.linkedin.com/oauth/v2/accessToken"
    userinfo_url = "https://api.linkedin.com/v2/userinfo"
    scope = "openid profile email"

    async def load_profile(self, client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
        return self.normalize(await self._get_json(client, self.userinfo_url, access_token))

    def normalize(self, data: dict[str, Any]) -> OAuthProfile:
        return OAuthProfile(
            email=data.get("email") or "",
            provider=self.provider,
            provider_id=str(data.get("sub", "")),
            first_name=data.get("given_name") or data.get("name"),
            last_name=data.get("family_name") or "",
            avatar=data.get("picture"),
        )


def get_provider(
    name: str,
    config: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> OAuthProvider:
    """
    Build the provider registered under `name`.

    Raises:
        NotFoundError: unknown or unconfigured provider
    """
    config = config or settings
    providers: dict[str, OAuthProvider] = {
        "google": GoogleProvider(
            config.GOOGLE_CLIENT_ID,
            config.GOOGLE_CLIENT_SECRET,
            config.GOOGLE_CALLBACK_URL,
            http_client,
            config.OAUTH_HTTP_TIMEOUT,
        ),
        "github": GitHubProvider(
            config.GITHUB_CLIENT_ID,
            config.GITHUB_CLIENT_SECRET,
            config.GITHUB_CALLBACK_URL,
            http_client,
            config.OAUTH_HTTP_TIMEOUT,
        ),
        "linkedin": LinkedInProvider(
            config.LINKEDIN_CLIENT_ID,
            config.LINKEDIN_CLIENT_SECRET,
            config.LINKEDIN_CALLBACK_URL,
            http_client,
            config.OAUTH_HTTP_TIMEOUT,
        ),
    }
    provider = providers.get(name.lower())
    if provider is None or not provider.configured:
        raise NotFoundError("Unknown OAuth provider")
    return provider
