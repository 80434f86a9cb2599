"""
Availability resolver.

Intersects a batch of intervals (candidate events or candidate meeting
slots) with the user's busy windows. The calendar is queried once for the
whole span of the batch. When the calendar cannot be read every interval is
reported as available and the failure travels back as a warning.
"""

from dataclasses import dataclass, field
from datetime import datetime

from realite.exceptions import CollaboratorError, ValidationError
from realite.infrastructure.observability.logging import get_logger
from realite.services.calendar.models import BusyWindow
from realite.services.calendar.provider import CalendarProvider

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class Interval:
    id: str
    start: datetime
    end: datetime


@dataclass(slots=True)
class AvailabilityResult:
    availability: dict[str, bool] = field(default_factory=dict)
    warning: str | None = None

    def is_available(self, interval_id: str) -> bool:
        return self.availability.get(interval_id, True)


def is_interval_free(interval: Interval, busy_windows: list[BusyWindow]) -> bool:
    return not any(window.overlaps(interval.start, interval.end) for window in busy_windows)


class AvailabilityResolver:
    def __init__(self, calendar: CalendarProvider):
        self.calendar = calendar

    async def compute_availability(self, user_id: str, intervals: list[Interval]) -> AvailabilityResult:
        """
        Map interval id -> available for one user.

        Raises:
            ValidationError: If an interval does not satisfy start < end
        """
        if not intervals:
            return AvailabilityResult()

        for interval in intervals:
            if interval.start >= interval.end:
                raise ValidationError(f"Interval {interval.id} must start before it ends", field="intervals")

        time_min = min(interval.start for interval in intervals)
        time_max = max(interval.end for interval in intervals)

        warning: str | None = None
        try:
            busy_windows = await self.calendar.get_busy_windows(user_id, time_min, time_max)
        except CollaboratorError as e:
            logger.warning("Busy windows unavailable, assuming free", user_id=user_id, error=e.message)
            busy_windows = None
            warning = f"Calendar unavailable: {e.message}"

        if busy_windows is None:
            return AvailabilityResult(
                availability={interval.id: True for interval in intervals},
                warning=warning,
            )

        availability = {interval.id: is_interval_free(interval, busy_windows) for interval in intervals}
        logger.debug(
            "Availability computed",
            user_id=user_id,
            interval_count=len(intervals),
            busy_count=len(busy_windows),
        )
        return AvailabilityResult(availability=availability)
