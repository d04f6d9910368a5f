"""Discord OAuth2 login connector.

Uses authlib's httpx integration for the authorization-code exchange, then
reads the user from ``/users/@me`` with the resulting access token. Guild
roles are not taken from the user token; the caller resolves them with the
bot through the roster source.
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from rosterdesk.config import DiscordConfig
from rosterdesk.logging_config import get_logger
from rosterdesk.roster.discord_rest import avatar_url

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscordIdentity:
    """The Discord user who completed the OAuth flow."""

    id: str
    username: str
    avatar_url: str


class DiscordOAuthConnector:
    def __init__(
        self,
        config: DiscordConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    def _client(self) -> AsyncOAuth2Client:
        return AsyncOAuth2Client(
            client_id=self._config.client_id,
            client_secret=self._config.client_secret,
            scope=" ".join(self._config.scopes),
            redirect_uri=self._config.redirect_uri,
            token_endpoint_auth_method="client_secret_post",
            timeout=self._config.request_timeout_seconds,
            transport=self._transport,
        )

    def build_authorization_url(self, state: str) -> str:
        """Build the Discord consent screen URL."""
        params = {
            "response_type": "code",
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "scope": " ".join(self._config.scopes),
            "state": state,
        }
        return f"{self._config.authorize_url}?{urlencode(params)}"

    async def handle_callback(self, code: str) -> DiscordIdentity:
        """Exchange the authorization code and fetch the user.

        Raises:
            ValueError: the exchange or the user lookup failed.
        """
        user_url = f"{self._config.api_base_url.rstrip('/')}/users/@me"
        try:
            async with self._client() as client:
                await client.fetch_token(self._config.token_url, code=code)
                resp = await client.get(user_url)
                resp.raise_for_status()
                user: dict[str, Any] = resp.json()
        except (AuthlibBaseError, httpx.HTTPError) as e:
            logger.warning("Discord OAuth exchange failed", error=str(e))
            raise ValueError(f"Discord OAuth exchange failed: {e}") from e

        if "id" not in user:
            raise ValueError("Discord user response has no id")

        return DiscordIdentity(
            id=str(user["id"]),
            username=user.get("global_name") or user.get("username", ""),
            avatar_url=avatar_url(user),
        )
