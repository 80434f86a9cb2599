"""
Smart-meeting tick job.

Periodically advances every plan that is still searching or whose response
deadline has passed. Advancing is idempotent and locked per plan, so running
several workers side by side is safe.
"""

import asyncio
import time
from datetime import UTC, datetime

from realite.config import settings
from realite.exceptions import NotFoundError
from realite.features.smart_meetings.repository.plan_repository import SmartMeetingRepository
from realite.features.smart_meetings.services.negotiation_service import (
    SmartMeetingService,
    smart_meeting_service,
)
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_CONCURRENT_ADVANCES = 10


class SmartMeetingTickJob:
    def __init__(self, service: SmartMeetingService | None = None, plans=None):
        self.service = service or smart_meeting_service
        self.plans = plans or SmartMeetingRepository
        self.last_run_at: datetime | None = None

    async def run_once(self, now: datetime | None = None) -> dict:
        """Advance all due plans once and return run metrics."""
        now = now or datetime.now(UTC)
        started = time.monotonic()
        metrics = {"due": 0, "changed": 0, "conflicts": 0, "failed": 0, "errors": []}

        plan_ids = await self.plans.list_due_plan_ids(now)
        metrics["due"] = len(plan_ids)
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_ADVANCES)

        async def advance_one(plan_id: str) -> None:
            async with semaphore:
                try:
                    result = await self.service.advance(plan_id, now)
                except NotFoundError:
                    return
                except Exception as e:
                    logger.error("Smart meeting advance failed", plan_id=plan_id, error=str(e))
                    metrics["failed"] += 1
                    metrics["errors"].append({"plan_id": plan_id, "error": str(e)})
                    return
                if result.conflict:
                    metrics["conflicts"] += 1
                elif result.changed:
                    metrics["changed"] += 1

        await asyncio.gather(*(advance_one(plan_id) for plan_id in plan_ids))

        self.last_run_at = now
        metrics["duration_seconds"] = round(time.monotonic() - started, 3)
        return metrics


# Singleton instance for application use
smart_meeting_tick_job = SmartMeetingTickJob()


async def run_smart_meeting_tick() -> dict:
    """Run a single tick."""
    return await smart_meeting_tick_job.run_once()


async def start_smart_meeting_tick_scheduler() -> None:
    """Advance due plans every SMART_MEETING_TICK_SECONDS until cancelled."""
    logger.info("Starting smart meeting tick scheduler", interval_seconds=settings.SMART_MEETING_TICK_SECONDS)

    while True:
        try:
            metrics = await run_smart_meeting_tick()
            logger.info(
                "Smart meeting tick completed",
                **{k: v for k, v in metrics.items() if k != "errors"},
            )
            await asyncio.sleep(settings.SMART_MEETING_TICK_SECONDS)

        except Exception as e:
            logger.error(
                "Error in smart meeting tick scheduler", error=str(e), error_type=type(e).__name__
            )
            # Back off before retrying to avoid tight error loops
            await asyncio.sleep(settings.SMART_MEETING_TICK_SECONDS * 2)
