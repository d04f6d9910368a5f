"""Roster source: the remote service that owns members and their roles.

``RosterSource`` is what the cache and the batch processor depend on; the
Discord implementation translates REST payloads into roster models.
"""

from __future__ import annotations

from typing import Any, Protocol

from rosterdesk.logging_config import get_logger

from .discord_rest import DiscordRESTClient, avatar_url
from .models import GuildRole, Member

logger = get_logger(__name__)


class RosterSource(Protocol):
    """Fetch and mutate members of one group.

    Any method may raise ``UpstreamError``; ``fetch_member`` raises
    ``MemberNotFound`` for unknown ids.
    """

    async def fetch_group_members(self) -> list[Member]: ...

    async def fetch_group_roles(self) -> list[GuildRole]: ...

    async def fetch_member(self, member_id: str) -> Member: ...

    async def add_role(self, member_id: str, role_id: str, reason: str | None = None) -> None: ...

    async def remove_role(
        self, member_id: str, role_id: str, reason: str | None = None
    ) -> None: ...


class DiscordRosterSource:
    """``RosterSource`` backed by a Discord guild."""

    def __init__(self, client: DiscordRESTClient, guild_id: str) -> None:
        self._client = client
        self.guild_id = guild_id

    async def fetch_group_members(self) -> list[Member]:
        raw = await self._client.list_guild_members(self.guild_id)
        return [self._to_member(m) for m in raw]

    async def fetch_group_roles(self) -> list[GuildRole]:
        raw = await self._client.list_guild_roles(self.guild_id)
        return [
            GuildRole(id=str(r["id"]), name=r.get("name", ""), position=int(r.get("position", 0)))
            for r in raw
        ]

    async def fetch_member(self, member_id: str) -> Member:
        raw = await self._client.get_guild_member(self.guild_id, member_id)
        return self._to_member(raw)

    async def add_role(self, member_id: str, role_id: str, reason: str | None = None) -> None:
        await self._client.add_member_role(self.guild_id, member_id, role_id, reason=reason)
        logger.info("Role added", member_id=member_id, role_id=role_id)

    async def remove_role(self, member_id: str, role_id: str, reason: str | None = None) -> None:
        await self._client.remove_member_role(self.guild_id, member_id, role_id, reason=reason)
        logger.info("Role removed", member_id=member_id, role_id=role_id)

    def _to_member(self, raw: dict[str, Any]) -> Member:
        user = raw["user"]
        display_name = raw.get("nick") or user.get("global_name") or user.get("username", "")
        return Member(
            id=str(user["id"]),
            display_name=display_name,
            avatar_url=avatar_url(user, self.guild_id, raw.get("avatar")),
            role_ids=frozenset(str(r) for r in raw.get("roles", [])),
        )
