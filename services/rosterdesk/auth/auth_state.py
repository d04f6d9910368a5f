"""One-time OAuth state stored in Redis.

``/login`` stores a random state before redirecting to Discord; the
callback consumes it (get + delete in one transaction) so a state can be
used exactly once.
"""

import json
import secrets
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

from rosterdesk.redis.client import get_redis_client

AUTH_STATE_PREFIX = "rosterdesk:auth_state:"

# Seconds a user has to finish the Discord consent screen
AUTH_STATE_TTL = 600


@dataclass
class AuthState:
    state: str
    # Where to send the browser after login
    return_to: str = "/"
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


def generate_state() -> str:
    return secrets.token_urlsafe(32)


async def store_auth_state(auth_state: AuthState) -> str:
    """Persist the state. Returns the state value."""
    redis = get_redis_client()
    await redis.set(
        AUTH_STATE_PREFIX + auth_state.state,
        json.dumps(asdict(auth_state)),
        ex=AUTH_STATE_TTL,
    )
    return auth_state.state


async def consume_auth_state(state: str) -> AuthState | None:
    """Fetch and delete the state. None if unknown, expired or already used."""
    if not state:
        return None
    redis = get_redis_client()
    key = AUTH_STATE_PREFIX + state
    async with redis.pipeline(transaction=True) as pipe:
        pipe.get(key)
        pipe.delete(key)
        data, _ = await pipe.execute()

    if data is None:
        return None
    return AuthState(**json.loads(data))
