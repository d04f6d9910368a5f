"""In-process cache of the filtered member roster.

Listing a whole guild is slow and rate-limited, so the dashboard serves a
snapshot that is refreshed at most once per freshness window.

Concurrency model (single asyncio event loop):
    - At most one refresh runs at a time. The refreshing caller publishes a
      pending future before its first await; callers arriving meanwhile await
      that future instead of fetching again.
    - Waiters give up after ``wait_timeout_seconds`` and fall back to the
      current snapshot.
    - A failed refresh keeps the previous snapshot and hands out a copy
      flagged ``stale``. Only when there is nothing to fall back to does the
      failure reach the caller, as ``UpstreamUnavailable``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from rosterdesk.errors import UpstreamUnavailable
from rosterdesk.logging_config import get_logger
from rosterdesk.roster.models import RosterSnapshot
from rosterdesk.roster.source import RosterSource

logger = get_logger(__name__)

DEFAULT_FRESHNESS_SECONDS = 600.0
DEFAULT_WAIT_TIMEOUT_SECONDS = 10.0


class RosterCache:
    """Single-flight, stale-serving cache around ``RosterSource.fetch_group_members``."""

    def __init__(
        self,
        source: RosterSource,
        eligible_role_ids: Iterable[str],
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        wait_timeout_seconds: float = DEFAULT_WAIT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._eligible = frozenset(eligible_role_ids)
        self._freshness = freshness_seconds
        self._wait_timeout = wait_timeout_seconds
        self._clock = clock

        self._snapshot: RosterSnapshot | None = None
        self._captured_at_monotonic = 0.0
        self._inflight: asyncio.Future[RosterSnapshot] | None = None
        self._last_error: str | None = None

        if not self._eligible:
            logger.warning("No eligible roles configured; the roster will be empty")

    @property
    def snapshot(self) -> RosterSnapshot | None:
        return self._snapshot

    @property
    def refreshing(self) -> bool:
        return self._inflight is not None

    def age(self) -> float | None:
        """Seconds since the current snapshot was captured."""
        if self._snapshot is None:
            return None
        return self._clock() - self._captured_at_monotonic

    def is_fresh(self) -> bool:
        age = self.age()
        return age is not None and age < self._freshness

    async def get(self, force_refresh: bool = False) -> RosterSnapshot:
        """Return the roster snapshot, refreshing it when expired or forced.

        Raises:
            UpstreamUnavailable: the refresh failed and no snapshot exists.
        """
        if not force_refresh and self.is_fresh():
            return self._snapshot  # type: ignore[return-value]

        if self._inflight is not None:
            return await self._wait_for(self._inflight)

        return await self._refresh()

    async def warm(self, delay: float = 0.0) -> None:
        """Force a refresh, logging rather than raising on failure."""
        if delay:
            await asyncio.sleep(delay)
        try:
            snapshot = await self.get(force_refresh=True)
        except UpstreamUnavailable as e:
            logger.error("Roster cache warm-up failed", error=str(e))
            return
        logger.info("Roster cache ready", members=len(snapshot), stale=snapshot.stale)

    def status(self) -> dict[str, Any]:
        age = self.age()
        return {
            "has_snapshot": self._snapshot is not None,
            "captured_at": self._snapshot.captured_at.isoformat() if self._snapshot else None,
            "age_seconds": round(age, 1) if age is not None else None,
            "members": len(self._snapshot) if self._snapshot else 0,
            "refreshing": self.refreshing,
            "last_error": self._last_error,
        }

    async def _wait_for(self, pending: asyncio.Future[RosterSnapshot]) -> RosterSnapshot:
        """Wait on another caller's refresh."""
        try:
            # shield: a timed-out waiter must not cancel the shared future
            return await asyncio.wait_for(asyncio.shield(pending), timeout=self._wait_timeout)
        except TimeoutError:
            logger.warning("Timed out waiting for roster refresh", timeout=self._wait_timeout)
            if self._snapshot is not None:
                return replace(self._snapshot, stale=True)
            raise UpstreamUnavailable("Roster refresh still in progress") from None

    async def _refresh(self) -> RosterSnapshot:
        pending: asyncio.Future[RosterSnapshot] = asyncio.get_running_loop().create_future()
        # Published before the first await
        self._inflight = pending

        try:
            snapshot = await self._fetch_snapshot()
        except asyncio.CancelledError:
            self._inflight = None
            self._settle_failure(pending, "refresh cancelled")
            raise
        except Exception as e:
            self._inflight = None
            logger.warning(
                "Roster refresh failed",
                error=str(e),
                has_fallback=self._snapshot is not None,
            )
            fallback = self._settle_failure(pending, str(e))
            if fallback is None:
                raise UpstreamUnavailable(f"Roster unavailable: {e}") from e
            return fallback

        self._snapshot = snapshot
        self._captured_at_monotonic = self._clock()
        self._last_error = None
        self._inflight = None
        pending.set_result(snapshot)

        logger.info("Roster refreshed", members=len(snapshot))
        return snapshot

    def _settle_failure(
        self, pending: asyncio.Future[RosterSnapshot], error: str
    ) -> RosterSnapshot | None:
        """Resolve waiters after a failed refresh; return the fallback, if any."""
        self._last_error = error
        if self._snapshot is not None:
            fallback = replace(self._snapshot, stale=True)
            pending.set_result(fallback)
            return fallback

        pending.set_exception(UpstreamUnavailable(f"Roster unavailable: {error}"))
        # Mark retrieved so an unawaited future does not log at GC time
        pending.exception()
        return None

    async def _fetch_snapshot(self) -> RosterSnapshot:
        members = await self._source.fetch_group_members()
        roles = await self._source.fetch_group_roles()

        eligible = tuple(m for m in members if m.has_any_role(self._eligible))
        logger.debug("Filtered roster", fetched=len(members), eligible=len(eligible))

        return RosterSnapshot(
            members=eligible,
            captured_at=datetime.now(UTC),
            roles={r.id: r for r in roles},
        )
