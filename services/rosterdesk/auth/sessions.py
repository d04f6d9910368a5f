"""Redis-backed session management.

A successful Discord login creates a session; the browser only holds an
opaque token in an HttpOnly cookie. The server validates by looking up the
session in Redis, so logging out revokes it immediately.
"""

import json
import secrets
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime, timedelta

from rosterdesk.config import settings
from rosterdesk.logging_config import get_logger
from rosterdesk.redis.client import get_redis_client
from rosterdesk.roster.models import Actor

logger = get_logger(__name__)

SESSION_PREFIX = "rosterdesk:session:"

# Sliding expiry is extended at most this often (seconds)
SESSION_REFRESH_INTERVAL = 300


def utc_now() -> datetime:
    return datetime.now(UTC)


def _session_ttl() -> int:
    """Session TTL in seconds from config."""
    return settings.auth.session_ttl_hours * 3600


@dataclass
class Session:
    """Server-side session state stored in Redis."""

    user_id: str
    username: str
    avatar_url: str | None
    created_at: str  # ISO 8601
    expires_at: str  # ISO 8601
    last_active_at: str  # ISO 8601

    # Guild roles at login time, [{"id": ..., "name": ...}]
    roles: list[dict[str, str]] = field(default_factory=list)
    is_high_command: bool = False
    is_internal_affairs: bool = False

    # The token is the Redis key, never part of the value
    token: str = field(default="", repr=False)

    @property
    def is_staff(self) -> bool:
        return self.is_high_command or self.is_internal_affairs

    @property
    def actor(self) -> Actor:
        return Actor(id=self.user_id, username=self.username)


def generate_session_token() -> str:
    """Generate a cryptographically random session token."""
    return secrets.token_urlsafe(32)


def _serialize(session: Session) -> str:
    data = asdict(session)
    data.pop("token")
    return json.dumps(data)


async def create_session(
    user_id: str,
    username: str,
    avatar_url: str | None,
    roles: list[dict[str, str]] | None = None,
    is_high_command: bool = False,
    is_internal_affairs: bool = False,
) -> Session:
    """Create a new session in Redis. Returns the Session with its token."""
    redis = get_redis_client()
    token = generate_session_token()
    ttl = _session_ttl()
    now = utc_now()

    session = Session(
        user_id=user_id,
        username=username,
        avatar_url=avatar_url,
        created_at=now.isoformat(),
        expires_at=(now + timedelta(seconds=ttl)).isoformat(),
        last_active_at=now.isoformat(),
        roles=roles or [],
        is_high_command=is_high_command,
        is_internal_affairs=is_internal_affairs,
        token=token,
    )

    await redis.set(SESSION_PREFIX + token, _serialize(session), ex=ttl)

    logger.info("Session created", user_id=user_id, staff=session.is_staff)
    return session


async def get_session(token: str) -> Session | None:
    """Look up a session by token. Returns None if not found or expired."""
    if not token:
        return None
    redis = get_redis_client()
    data = await redis.get(SESSION_PREFIX + token)
    if data is None:
        return None

    parsed = json.loads(data)
    return Session(token=token, **parsed)


def _should_refresh_session(session: Session) -> bool:
    """True when the last activity is older than the refresh interval."""
    try:
        last_active = datetime.fromisoformat(session.last_active_at)
    except ValueError:
        return True
    return (utc_now() - last_active).total_seconds() > SESSION_REFRESH_INTERVAL


async def refresh_session(token: str, session: Session) -> None:
    """Extend the session TTL and bump its activity timestamps.

    A session that vanished (expired or revoked) meanwhile is left alone.
    """
    redis = get_redis_client()
    session_key = SESSION_PREFIX + token
    if await redis.get(session_key) is None:
        return

    ttl = _session_ttl()
    now = utc_now()
    session.last_active_at = now.isoformat()
    session.expires_at = (now + timedelta(seconds=ttl)).isoformat()
    await redis.set(session_key, _serialize(session), ex=ttl)


async def revoke_session(token: str) -> bool:
    """Revoke a session by deleting it from Redis.

    Returns True if the session existed, False if it was already gone.
    """
    redis = get_redis_client()
    deleted = await redis.delete(SESSION_PREFIX + token) > 0
    if deleted:
        logger.info("Session revoked")
    return deleted
