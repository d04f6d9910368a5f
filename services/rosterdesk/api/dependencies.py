"""FastAPI dependencies for services and authentication.

Services (roster cache, batch processor, notifier, OAuth connector) are
built once in the app lifespan and stored on ``app.state``; tests replace
them through ``dependency_overrides``.

Authentication is session-based: the browser sends an opaque session token
in an HttpOnly cookie, and the server looks the session up in Redis.
"""

from fastapi import Depends, HTTPException, Request, status

from rosterdesk.auth.discord_oauth import DiscordOAuthConnector
from rosterdesk.auth.sessions import (
    Session,
    _should_refresh_session,
    get_session,
    refresh_session,
)
from rosterdesk.config import settings
from rosterdesk.errors import Unauthenticated
from rosterdesk.logging_config import get_logger
from rosterdesk.roster.source import RosterSource
from rosterdesk.services.audit_service import AuditNotifier
from rosterdesk.services.batch_actions import BatchActionProcessor
from rosterdesk.services.roster_cache import RosterCache

logger = get_logger(__name__)


def get_roster_cache(request: Request) -> RosterCache:
    return request.app.state.roster_cache


def get_roster_source(request: Request) -> RosterSource:
    return request.app.state.roster_source


def get_processor(request: Request) -> BatchActionProcessor:
    return request.app.state.processor


def get_notifier(request: Request) -> AuditNotifier:
    return request.app.state.notifier


def get_oauth_connector(request: Request) -> DiscordOAuthConnector:
    return request.app.state.oauth_connector


async def get_optional_session(request: Request) -> Session | None:
    """The session referenced by the cookie, or None.

    Extends the session TTL on activity (sliding window), at most once
    per refresh interval.
    """
    token = request.cookies.get(settings.auth.session_cookie_name)
    if not token:
        return None

    session = await get_session(token)
    if session is None:
        return None

    if _should_refresh_session(session):
        await refresh_session(token, session)
    return session


async def get_current_session(
    session: Session | None = Depends(get_optional_session),
) -> Session:
    """Dependency requiring a logged-in user."""
    if session is None:
        raise Unauthenticated("Not logged in")
    return session


async def require_action_permission(
    session: Session = Depends(get_current_session),
) -> Session:
    """Gate for role-changing actions.

    Any logged-in user may act unless ``auth.require_staff_for_actions``
    is set, in which case high command or internal affairs is required.
    """
    if settings.auth.require_staff_for_actions and not session.is_staff:
        logger.warning("Action rejected for non-staff user", user_id=session.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return session
