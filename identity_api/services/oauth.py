"""OAuth identity providers producing a provider-agnostic profile."""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Protocol

from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from structlog import get_logger

from identity_api.core.exceptions import UnauthorizedException

logger = get_logger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

OAUTH_ERROR_MESSAGES = {
    "invalid_grant": "OAuth authorization code expired or already used. Please try logging in again.",
    "invalid_client": "OAuth client configuration error. Please contact support.",
    "invalid_request": "Invalid OAuth request. Please try logging in again.",
    "access_denied": "Access was denied. Please grant the required permissions.",
    "redirect_uri_mismatch": "OAuth redirect URI mismatch. Please contact support.",
}
DEFAULT_OAUTH_ERROR = "Google authentication failed. Please try again."


@dataclass(frozen=True)
class OAuthProfile:
    """Identity returned by any OAuth provider after the code exchange."""

    provider_id: str
    external_id: str
    email: str
    name: str | None = None
    picture: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None


class OAuthProvider(Protocol):
    """Authorization-code flow adapter for one identity provider."""

    provider_id: str

    def authorization_url(self, state: str | None = None) -> str:
        """URL of the provider consent screen."""
        ...

    async def fetch_profile(self, code: str) -> OAuthProfile:
        """Exchange an authorization code for the user's profile."""
        ...


def oauth_error_message(error_code: str | None, fallback: str | None = None) -> str:
    """User-facing message for an OAuth error code."""
    return OAUTH_ERROR_MESSAGES.get(error_code or "", fallback or DEFAULT_OAUTH_ERROR)


def encode_state(redirect: str) -> str:
    """Carry a post-login redirect through the provider as base64 JSON."""
    return base64.b64encode(json.dumps({"redirect": redirect}).encode()).decode()


def decode_state(state: str | None) -> str | None:
    """Read the redirect back from ``state``; anything malformed yields None."""
    if not state:
        return None
    try:
        decoded = json.loads(base64.b64decode(state))
    except (binascii.Error, ValueError):
        return None
    if not isinstance(decoded, dict):
        return None
    redirect = decoded.get("redirect")
    return redirect if isinstance(redirect, str) else None


class GoogleOAuthProvider:
    """Google sign-in through authlib's async httpx client."""

    provider_id = "google"
    scope = "openid email profile"

    def __init__(self, client_id: str, client_secret: str, redirect_uri: str):
        """Initialize provider with client credentials and the callback URL."""
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    def _client(self) -> AsyncOAuth2Client:
        return AsyncOAuth2Client(
            client_id=self.client_id,
            client_secret=self.client_secret,
            scope=self.scope,
            redirect_uri=self.redirect_uri,
        )

    def authorization_url(self, state: str | None = None) -> str:
        """Build the consent URL, always showing the account chooser."""
        client = self._client()
        url, _ = client.create_authorization_url(
            GOOGLE_AUTHORIZE_URL, state=state, prompt="select_account"
        )
        return url

    async def fetch_profile(self, code: str) -> OAuthProfile:
        """
        Exchange the code and read the OpenID userinfo.

        Raises:
            UnauthorizedException: On any provider error, with a descriptive message
        """
        async with self._client() as client:
            try:
                token = await client.fetch_token(GOOGLE_TOKEN_URL, code=code)
                response = await client.get(GOOGLE_USERINFO_URL)
                response.raise_for_status()
                userinfo = response.json()
            except OAuthError as e:
                logger.warning("oauth_exchange_failed", provider=self.provider_id, error=e.error)
                raise UnauthorizedException(oauth_error_message(e.error, e.description)) from e
            except Exception as e:
                logger.warning("oauth_exchange_failed", provider=self.provider_id, error=str(e))
                raise UnauthorizedException(DEFAULT_OAUTH_ERROR) from e

        if not userinfo.get("sub") or not userinfo.get("email"):
            raise UnauthorizedException("Google profile missing email or subject.")

        return OAuthProfile(
            provider_id=self.provider_id,
            external_id=str(userinfo["sub"]),
            email=str(userinfo["email"]).lower().strip(),
            name=userinfo.get("name"),
            picture=userinfo.get("picture"),
            access_token=token.get("access_token"),
            refresh_token=token.get("refresh_token"),
        )
