"""Roster domain objects.

Members are read-only copies of what Discord reported at fetch time. A
snapshot is replaced wholesale by the next successful refresh.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class GuildRole:
    """A guild role as needed for rank display."""

    id: str
    name: str
    position: int = 0


def roles_by_position(
    roles: Mapping[str, GuildRole], role_ids: Iterable[str]
) -> list[GuildRole]:
    """Known roles among ``role_ids``, highest position first."""
    held = (roles[rid] for rid in role_ids if rid in roles)
    return sorted(held, key=lambda r: r.position, reverse=True)


@dataclass(frozen=True)
class Member:
    """A guild member with the roles held at fetch time."""

    id: str
    display_name: str
    avatar_url: str
    role_ids: frozenset[str] = field(default_factory=frozenset)
    # Presence is not requested from Discord; everyone reads as offline.
    status: str = "offline"

    def has_role(self, role_id: str) -> bool:
        return role_id in self.role_ids

    def has_any_role(self, role_ids: frozenset[str] | set[str]) -> bool:
        return not self.role_ids.isdisjoint(role_ids)


@dataclass(frozen=True)
class Actor:
    """The logged-in dashboard user performing an action."""

    id: str
    username: str = ""

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


@dataclass(frozen=True)
class RosterSnapshot:
    """Filtered roster captured by one refresh.

    Every member held at least one eligible role at ``captured_at``.
    ``stale`` is only set on copies handed out after a failed refresh.
    """

    members: tuple[Member, ...]
    captured_at: datetime
    roles: dict[str, GuildRole] = field(default_factory=dict)
    stale: bool = False

    def __len__(self) -> int:
        return len(self.members)

    def get(self, member_id: str) -> Member | None:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def held_roles(self, member: Member) -> list[GuildRole]:
        return roles_by_position(self.roles, member.role_ids)

    def rank_of(self, member: Member, marker: str) -> str | None:
        """Name of the member's rank role.

        The highest role whose name contains ``marker`` wins; without one,
        the member's highest role is used.
        """
        held = self.held_roles(member)
        if not held:
            return None
        for role in held:
            if marker and marker in role.name:
                return role.name
        return held[0].name
