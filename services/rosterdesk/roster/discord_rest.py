"""Minimal async client for the Discord HTTP API.

Authenticates with the bot token. Only the handful of endpoints the dashboard
needs are wrapped: guild members, guild roles, member role edits and channel
messages. Every failure surfaces as ``UpstreamError``; there is no retry.
"""

from typing import Any
from urllib.parse import quote

import httpx

from rosterdesk.errors import MemberNotFound, UpstreamError
from rosterdesk.logging_config import get_logger

logger = get_logger(__name__)

MEMBER_PAGE_SIZE = 1000
CDN_BASE_URL = "https://cdn.discordapp.com"


class DiscordRESTClient:
    """Thin wrapper over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        bot_token: str,
        base_url: str = "https://discord.com/api/v10",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bot {bot_token}",
                "User-Agent": "DiscordBot (rosterdesk, 0.1.0)",
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        reason: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if reason:
            # Shown in the guild audit log; header values must be URL-encoded
            headers["X-Audit-Log-Reason"] = quote(reason[:512], safe=" ")

        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Discord request failed", method=method, path=path, error=str(e))
            raise UpstreamError(f"Discord request failed: {e}") from e

        if resp.status_code >= 400:
            logger.warning(
                "Discord returned an error",
                method=method,
                path=path,
                status=resp.status_code,
            )
            raise UpstreamError(
                f"Discord {method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp

    async def list_guild_members(self, guild_id: str) -> list[dict[str, Any]]:
        """Fetch every member of a guild, following ``after`` pagination."""
        members: list[dict[str, Any]] = []
        after = "0"
        while True:
            resp = await self._request(
                "GET",
                f"/guilds/{guild_id}/members",
                params={"limit": MEMBER_PAGE_SIZE, "after": after},
            )
            page = resp.json()
            members.extend(page)
            if len(page) < MEMBER_PAGE_SIZE:
                break
            after = max((m["user"]["id"] for m in page), key=int)

        logger.debug("Fetched guild members", guild_id=guild_id, count=len(members))
        return members

    async def get_guild_member(self, guild_id: str, user_id: str) -> dict[str, Any]:
        """Fetch one guild member. Raises ``MemberNotFound`` on 404."""
        try:
            resp = await self._request("GET", f"/guilds/{guild_id}/members/{user_id}")
        except UpstreamError as e:
            if e.status_code == 404:
                raise MemberNotFound(user_id) from e
            raise
        return resp.json()

    async def list_guild_roles(self, guild_id: str) -> list[dict[str, Any]]:
        resp = await self._request("GET", f"/guilds/{guild_id}/roles")
        return resp.json()

    async def add_member_role(
        self, guild_id: str, user_id: str, role_id: str, reason: str | None = None
    ) -> None:
        await self._request(
            "PUT", f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}", reason=reason
        )

    async def remove_member_role(
        self, guild_id: str, user_id: str, role_id: str, reason: str | None = None
    ) -> None:
        await self._request(
            "DELETE", f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}", reason=reason
        )

    async def create_message(self, channel_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        resp = await self._request("POST", f"/channels/{channel_id}/messages", json=payload)
        return resp.json()


def avatar_url(
    user: dict[str, Any],
    guild_id: str | None = None,
    member_avatar: str | None = None,
    size: int = 256,
) -> str:
    """Build the CDN URL Discord clients would display for a member.

    Guild-specific avatar first, then the user avatar, then the default
    avatar derived from the user id.
    """
    user_id = user["id"]
    if member_avatar and guild_id:
        ext = "gif" if member_avatar.startswith("a_") else "png"
        return (
            f"{CDN_BASE_URL}/guilds/{guild_id}/users/{user_id}/avatars/"
            f"{member_avatar}.{ext}?size={size}"
        )

    avatar = user.get("avatar")
    if avatar:
        ext = "gif" if avatar.startswith("a_") else "png"
        return f"{CDN_BASE_URL}/avatars/{user_id}/{avatar}.{ext}?size={size}"

    index = (int(user_id) >> 22) % 6
    return f"{CDN_BASE_URL}/embed/avatars/{index}.png"
