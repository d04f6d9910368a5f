"""Roster listing models."""

from pydantic import Field

from .common import RosterDeskBaseModel


class RoleRef(RosterDeskBaseModel):
    id: str
    name: str


class MemberView(RosterDeskBaseModel):
    """One roster row (GET /api/roster-members)."""

    id: str
    username: str
    avatar: str
    status: str = "offline"
    rank: str | None = None
    all_roles: list[RoleRef] = Field(default_factory=list, alias="allRoles")
