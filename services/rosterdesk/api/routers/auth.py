"""Authentication router.

Login is Discord OAuth2 only: /login redirects to Discord's consent screen,
Discord redirects back to /auth/discord/callback, and the server exchanges
the code, resolves the user's guild roles with the bot, and creates a Redis
session referenced by an HttpOnly cookie.

Consumers:
    Dashboard (public/index.html):
        GET /api/user                 current user or null
        GET /login                    "Zaloguj" button
        GET /auth/discord/callback    Discord redirect target
        GET /logout                   "Wyloguj" link

Callback failures redirect to ``/?error=<reason>`` with reason one of
no_code, state, auth, session.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from redis.exceptions import RedisError

from rosterdesk.auth.auth_state import (
    AuthState,
    consume_auth_state,
    generate_state,
    store_auth_state,
)
from rosterdesk.auth.discord_oauth import DiscordOAuthConnector
from rosterdesk.auth.sessions import Session, create_session, revoke_session
from rosterdesk.config import settings
from rosterdesk.errors import UpstreamError
from rosterdesk.logging_config import get_logger
from rosterdesk.roster.models import roles_by_position
from rosterdesk.roster.source import RosterSource
from rosterdesk.services.audit_service import log_audit_event

from ..dependencies import get_oauth_connector, get_optional_session, get_roster_source
from ..models.auth import UserView
from ..models.roster import RoleRef

router = APIRouter(tags=["auth"])
logger = get_logger(__name__)


def _error_redirect(reason: str) -> RedirectResponse:
    return RedirectResponse(url=f"/?error={reason}", status_code=302)


async def _resolve_guild_roles(
    source: RosterSource, user_id: str
) -> tuple[list[dict[str, str]], bool, bool]:
    """Guild roles and staff flags for a user.

    A user who is not in the guild (or a failed lookup) logs in with no
    roles and no staff flags.
    """
    try:
        member = await source.fetch_member(user_id)
        guild_roles = {r.id: r for r in await source.fetch_group_roles()}
    except UpstreamError as e:
        logger.warning("Guild role lookup failed at login", user_id=user_id, error=str(e))
        return [], False, False

    held = roles_by_position(guild_roles, member.role_ids)
    roles = [{"id": r.id, "name": r.name} for r in held]
    high_command = settings.auth.high_command_role_id
    internal_affairs = settings.auth.internal_affairs_role_id
    return (
        roles,
        bool(high_command) and member.has_role(high_command),
        bool(internal_affairs) and member.has_role(internal_affairs),
    )


@router.get("/api/user", response_model=UserView | None)
async def current_user(
    session: Session | None = Depends(get_optional_session),
) -> UserView | None:
    """The logged-in user, or null."""
    if session is None:
        return None
    return UserView(
        id=session.user_id,
        username=session.username,
        avatar=session.avatar_url,
        all_roles=[RoleRef(**r) for r in session.roles],
        is_zarzad=session.is_high_command,
        is_mia=session.is_internal_affairs,
    )


@router.get("/login")
async def login(
    connector: DiscordOAuthConnector = Depends(get_oauth_connector),
) -> RedirectResponse:
    """Start the Discord OAuth2 flow."""
    state = generate_state()
    await store_auth_state(AuthState(state=state))
    return RedirectResponse(url=connector.build_authorization_url(state), status_code=302)


@router.get("/auth/discord/callback")
async def discord_callback(
    code: str | None = None,
    state: str | None = None,
    connector: DiscordOAuthConnector = Depends(get_oauth_connector),
    source: RosterSource = Depends(get_roster_source),
) -> RedirectResponse:
    """Handle Discord's redirect after the consent screen."""
    if not code:
        return _error_redirect("no_code")

    try:
        auth_state = await consume_auth_state(state or "")
    except RedisError as e:
        logger.error("Auth state lookup failed", error=str(e))
        return _error_redirect("session")
    if auth_state is None:
        logger.warning("Invalid or expired OAuth state")
        return _error_redirect("state")

    try:
        identity = await connector.handle_callback(code)
    except ValueError as e:
        log_audit_event(
            event_type="auth",
            action="login_failed",
            success=False,
            error_message=str(e),
        )
        return _error_redirect("auth")

    roles, is_high_command, is_internal_affairs = await _resolve_guild_roles(
        source, identity.id
    )

    try:
        session = await create_session(
            user_id=identity.id,
            username=identity.username,
            avatar_url=identity.avatar_url,
            roles=roles,
            is_high_command=is_high_command,
            is_internal_affairs=is_internal_affairs,
        )
    except RedisError as e:
        logger.error("Session creation failed", user_id=identity.id, error=str(e))
        return _error_redirect("session")

    log_audit_event(
        event_type="auth",
        action="login",
        actor_id=identity.id,
        details={"staff": session.is_staff, "roles": len(roles)},
    )

    response = RedirectResponse(url=auth_state.return_to, status_code=302)
    response.set_cookie(
        key=settings.auth.session_cookie_name,
        value=session.token,
        path="/",
        secure=settings.auth.session_cookie_secure,
        httponly=True,
        samesite="lax",
        max_age=settings.auth.session_ttl_hours * 3600,
    )
    return response


@router.get("/logout")
async def logout(request: Request) -> RedirectResponse:
    """Revoke the current session and clear the cookie."""
    cookie_name = settings.auth.session_cookie_name
    token = request.cookies.get(cookie_name)
    if token:
        await revoke_session(token)
        log_audit_event(event_type="auth", action="logout")

    response = RedirectResponse(url="/", status_code=302)
    response.delete_cookie(key=cookie_name, path="/")
    return response
