"""Roster router.

Consumers:
    Dashboard (public/index.html):
        GET /api/roster-members   roster table and target picker
"""

from fastapi import APIRouter, Depends, Response

from rosterdesk.config import settings
from rosterdesk.roster.models import Member, RosterSnapshot
from rosterdesk.services.roster_cache import RosterCache

from ..dependencies import get_roster_cache
from ..models.roster import MemberView, RoleRef

router = APIRouter(prefix="/api", tags=["roster"])

STALE_HEADER = "X-Roster-Stale"


def _member_view(snapshot: RosterSnapshot, member: Member, rank_marker: str) -> MemberView:
    return MemberView(
        id=member.id,
        username=member.display_name,
        avatar=member.avatar_url,
        status=member.status,
        rank=snapshot.rank_of(member, rank_marker),
        all_roles=[RoleRef(id=r.id, name=r.name) for r in snapshot.held_roles(member)],
    )


@router.get("/roster-members", response_model=list[MemberView])
@router.get("/ems-members", response_model=list[MemberView], include_in_schema=False)
async def list_roster_members(
    response: Response,
    cache: RosterCache = Depends(get_roster_cache),
) -> list[MemberView]:
    """List eligible members from the roster cache.

    A snapshot kept from before a failed refresh is still returned, marked
    with the ``X-Roster-Stale`` header.
    """
    snapshot = await cache.get()
    if snapshot.stale:
        response.headers[STALE_HEADER] = "true"

    marker = settings.roster.rank_marker
    return [_member_view(snapshot, m, marker) for m in snapshot.members]
