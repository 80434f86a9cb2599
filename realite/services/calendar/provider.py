"""
Calendar provider boundary used by the matching engine.

`CalendarProvider` is the collaborator contract the core depends on; the
Google implementation resolves the user's token, talks to the Calendar API
through GoogleCalendarService and translates API failures into
CalendarCollaboratorError so callers can fail open.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Protocol

from realite.exceptions import CalendarCollaboratorError
from realite.infrastructure.observability.logging import get_logger
from realite.services.calendar.google_client import (
    CALENDAR_PRIMARY,
    GoogleCalendarError,
    GoogleCalendarService,
    google_calendar_service,
)
from realite.services.calendar.models import BusyWindow, CalendarEvent
from realite.services.calendar.token_repository import OAuthTokenRepository

logger = get_logger(__name__)

# Google rejects free/busy ranges that are too long, so we query in chunks
FREE_BUSY_CHUNK = timedelta(days=60)
EVENT_REF_SEPARATOR = "::"
# Marks entries written by the engine so calendar imports can skip them
MANAGED_PROPERTY = "realiteManaged"

TokenLookup = Callable[[str], Awaitable[str | None]]


class CalendarProvider(Protocol):
    async def get_busy_windows(
        self, user_id: str, time_min: datetime, time_max: datetime
    ) -> list[BusyWindow] | None: ...

    async def insert_calendar_event(
        self,
        user_id: str,
        calendar_id: str,
        title: str,
        description: str | None,
        location: str | None,
        start: datetime,
        end: datetime,
        attendees: list[str] | None = None,
        transparent: bool = False,
    ) -> str | None: ...

    async def sync_decision_status(
        self, user_id: str, external_event_id: str, decision: str
    ) -> bool: ...

    async def list_events(
        self, user_id: str, time_min: datetime, time_max: datetime
    ) -> list[CalendarEvent] | None: ...


def merge_busy_windows(windows: list[BusyWindow]) -> list[BusyWindow]:
    """Union of overlapping or touching windows, sorted by start."""
    ordered = sorted((w for w in windows if w.start < w.end), key=lambda w: w.start)
    merged: list[BusyWindow] = []
    for window in ordered:
        if merged and window.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = BusyWindow(start=last.start, end=max(last.end, window.end))
        else:
            merged.append(window)
    return merged


def build_event_ref(calendar_id: str, event_id: str) -> str:
    return f"{calendar_id}{EVENT_REF_SEPARATOR}{event_id}"


def parse_event_ref(event_ref: str) -> tuple[str, str]:
    calendar_id, separator, event_id = event_ref.strip().rpartition(EVENT_REF_SEPARATOR)
    if not separator:
        return CALENDAR_PRIMARY, event_ref.strip()
    return calendar_id or CALENDAR_PRIMARY, event_id


class GoogleCalendarProvider:
    """CalendarProvider backed by the Google Calendar v3 API."""

    def __init__(
        self,
        service: GoogleCalendarService | None = None,
        token_lookup: TokenLookup | None = None,
    ):
        self.service = service or google_calendar_service
        self.token_lookup = token_lookup or OAuthTokenRepository.get_access_token

    async def get_busy_windows(
        self, user_id: str, time_min: datetime, time_max: datetime
    ) -> list[BusyWindow] | None:
        """
        Busy windows for the user in [time_min, time_max).

        Returns None when the user has no calendar access (no token or no
        free/busy permission). Raises CalendarCollaboratorError on API failures.
        """
        token = await self.token_lookup(user_id)
        if not token:
            return None

        if time_max <= time_min:
            return []

        windows: list[BusyWindow] = []
        cursor = time_min
        while cursor < time_max:
            chunk_end = min(cursor + FREE_BUSY_CHUNK, time_max)
            try:
                windows.extend(await self.service.query_free_busy(token, cursor, chunk_end))
            except GoogleCalendarError as e:
                if e.status_code in (401, 403):
                    logger.info("Free/busy not permitted", user_id=user_id, status=e.status_code)
                    return None
                raise CalendarCollaboratorError(str(e), user_id=user_id) from e
            cursor = chunk_end

        return merge_busy_windows(windows)

    async def insert_calendar_event(
        self,
        user_id: str,
        calendar_id: str,
        title: str,
        description: str | None,
        location: str | None,
        start: datetime,
        end: datetime,
        attendees: list[str] | None = None,
        transparent: bool = False,
    ) -> str | None:
        """Create the entry and return its external reference, None without a token."""
        token = await self.token_lookup(user_id)
        if not token:
            return None

        calendar_id = calendar_id or CALENDAR_PRIMARY
        try:
            event = await self.service.create_event(
                token,
                summary=title,
                start_time=start,
                end_time=end,
                calendar_id=calendar_id,
                description=description or "",
                location=location or "",
                attendees=attendees,
                transparent=transparent,
                private_properties={MANAGED_PROPERTY: "true"},
            )
        except GoogleCalendarError as e:
            raise CalendarCollaboratorError(str(e), user_id=user_id) from e

        if not event.id:
            return None
        return build_event_ref(calendar_id, event.id)

    async def sync_decision_status(self, user_id: str, external_event_id: str, decision: str) -> bool:
        """Accepted entries block time (opaque), declined ones stop blocking (transparent)."""
        token = await self.token_lookup(user_id)
        if not token or not external_event_id.strip():
            return False

        calendar_id, event_id = parse_event_ref(external_event_id)
        transparency = "opaque" if decision == "accepted" else "transparent"

        for candidate in dict.fromkeys([calendar_id, CALENDAR_PRIMARY]):
            try:
                await self.service.patch_event(
                    token, event_id, {"transparency": transparency}, calendar_id=candidate
                )
                return True
            except GoogleCalendarError as e:
                if e.status_code in (403, 404):
                    continue
                raise CalendarCollaboratorError(str(e), user_id=user_id) from e

        return False

    async def list_events(
        self, user_id: str, time_min: datetime, time_max: datetime
    ) -> list[CalendarEvent] | None:
        token = await self.token_lookup(user_id)
        if not token:
            return None
        try:
            return await self.service.list_events(token, time_min, time_max)
        except GoogleCalendarError as e:
            raise CalendarCollaboratorError(str(e), user_id=user_id) from e
