"""Authentication-related Pydantic models."""

from pydantic import Field

from .common import RosterDeskBaseModel
from .roster import RoleRef


class UserView(RosterDeskBaseModel):
    """The logged-in user as returned by GET /api/user."""

    id: str
    username: str
    avatar: str | None = None
    all_roles: list[RoleRef] = Field(default_factory=list, alias="allRoles")
    is_zarzad: bool = Field(default=False, alias="isZarzad")
    is_mia: bool = Field(default=False, alias="isMIA")
