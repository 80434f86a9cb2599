"""
Per-user background sync bookkeeping.

At most one sync task runs per user. Unforced triggers inside the cooldown
after the previous trigger are ignored, and callers that arrive while a sync
is running get the same in-flight task instead of starting another one.
The registry is an explicit object handed to the sync service, one instance
per process.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from realite.config import settings
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True)
class SyncOutcome:
    """What one sync run produced; warnings are collaborator failures."""

    stats: dict[str, dict[str, int]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SyncSnapshot:
    revalidating: bool
    last_triggered_at: datetime | None
    last_completed_at: datetime | None
    warnings: list[str]
    stats: dict[str, dict[str, int]]


@dataclass(slots=True)
class _SyncState:
    last_triggered_at: datetime | None = None
    last_triggered_monotonic: float | None = None
    last_completed_at: datetime | None = None
    outcome: SyncOutcome = field(default_factory=SyncOutcome)
    in_flight: asyncio.Task | None = None


SyncRunner = Callable[[], Awaitable[SyncOutcome]]


class SyncRegistry:
    def __init__(
        self,
        cooldown_seconds: float | None = None,
        monotonic: Callable[[], float] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.cooldown_seconds = (
            cooldown_seconds if cooldown_seconds is not None else settings.SYNC_COOLDOWN_SECONDS
        )
        self._monotonic = monotonic or time.monotonic
        self._clock = clock or (lambda: datetime.now(UTC))
        self._states: dict[str, _SyncState] = {}

    def _state(self, user_id: str) -> _SyncState:
        state = self._states.get(user_id)
        if state is None:
            state = _SyncState()
            self._states[user_id] = state
        return state

    def is_running(self, user_id: str) -> bool:
        state = self._states.get(user_id)
        return bool(state and state.in_flight and not state.in_flight.done())

    def should_start(self, user_id: str, force: bool = False) -> bool:
        if self.is_running(user_id):
            return False
        if force:
            return True
        state = self._state(user_id)
        if state.last_triggered_monotonic is None:
            return True
        return self._monotonic() - state.last_triggered_monotonic >= self.cooldown_seconds

    def trigger(self, user_id: str, runner: SyncRunner, force: bool = False) -> asyncio.Task | None:
        """
        Start `runner` for the user unless a sync is running or the cooldown
        has not elapsed. Returns the in-flight task (new or existing), or None
        when nothing is running.
        """
        state = self._state(user_id)
        if not self.should_start(user_id, force):
            return state.in_flight if self.is_running(user_id) else None

        state.last_triggered_at = self._clock()
        state.last_triggered_monotonic = self._monotonic()
        state.in_flight = asyncio.create_task(self._run(user_id, state, runner))
        logger.info("Background sync started", user_id=user_id, forced=force)
        return state.in_flight

    async def _run(self, user_id: str, state: _SyncState, runner: SyncRunner) -> SyncOutcome:
        try:
            outcome = await runner()
        except Exception as e:
            logger.error("Background sync failed", user_id=user_id, error=str(e))
            outcome = SyncOutcome(warnings=[f"Sync failed: {e}"])

        state.outcome = outcome
        state.last_completed_at = self._clock()
        logger.info("Background sync completed", user_id=user_id, warning_count=len(outcome.warnings))
        return outcome

    async def wait(self, user_id: str) -> SyncOutcome | None:
        """Await the user's in-flight sync, if any."""
        state = self._states.get(user_id)
        if state is None or state.in_flight is None:
            return None
        return await asyncio.shield(state.in_flight)

    def snapshot(self, user_id: str) -> SyncSnapshot:
        state = self._state(user_id)
        return SyncSnapshot(
            revalidating=self.is_running(user_id),
            last_triggered_at=state.last_triggered_at,
            last_completed_at=state.last_completed_at,
            warnings=list(state.outcome.warnings),
            stats=dict(state.outcome.stats),
        )
