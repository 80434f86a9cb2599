"""
Google Calendar API client.

Thin httpx wrapper for the Calendar v3 endpoints the engine needs: freeBusy
for availability, events insert/patch for suggestion and meeting entries and
events list for the public event sync. Transient failures (429/5xx and
transport errors) are retried with exponential backoff.
"""

import asyncio
from datetime import datetime
from typing import Any

import httpx

from realite.config import settings
from realite.infrastructure.observability.logging import get_logger
from realite.services.calendar.models import BusyWindow, CalendarEvent, parse_google_datetime

logger = get_logger(__name__)

CALENDAR_PRIMARY = "primary"

MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

ERROR_MESSAGES = {
    400: "Invalid calendar request.",
    401: "Calendar authorization expired. Please reconnect.",
    403: "Calendar access denied.",
    404: "Calendar or event not found.",
    429: "Too many calendar requests. Please try again later.",
}


class GoogleCalendarError(Exception):
    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


def _error_from_response(response: httpx.Response, operation: str) -> GoogleCalendarError:
    try:
        payload = response.json() if response.text else {}
    except ValueError:
        payload = {}
    error = payload.get("error", {}) if isinstance(payload, dict) else {}
    if not isinstance(error, dict):
        error = {}

    status = response.status_code
    detail = error.get("message") or f"HTTP {status}"
    logger.error("Calendar API call failed", operation=operation, status_code=status, detail=detail)

    message = ERROR_MESSAGES.get(status)
    if message is None:
        message = (
            "Google Calendar service temporarily unavailable."
            if status >= 500
            else f"Calendar error: {detail}"
        )
    return GoogleCalendarError(
        message,
        error_code=str(error.get("code", status)),
        status_code=status,
        response_data=payload if isinstance(payload, dict) else {},
    )


class GoogleCalendarService:
    """
    Calendar v3 operations for one OAuth access token per call.

    Token storage and refresh are the caller's concern.
    """

    def __init__(self, base_url: str | None = None, client: httpx.AsyncClient | None = None):
        self.base_url = (base_url or settings.GOOGLE_CALENDAR_API_BASE_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.GOOGLE_CALENDAR_TIMEOUT_SECONDS),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        attempt = 1
        while True:
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                if attempt >= MAX_ATTEMPTS:
                    raise
                logger.debug("Calendar API transport error, retrying", attempt=attempt, error=str(e))
            else:
                if response.status_code not in RETRY_STATUS_CODES or attempt >= MAX_ATTEMPTS:
                    return response
                logger.debug("Calendar API retrying", attempt=attempt, status_code=response.status_code)

            await asyncio.sleep(BACKOFF_SECONDS * 2 ** (attempt - 1))
            attempt += 1

    async def _call(
        self, method: str, path: str, operation: str, access_token: str, **kwargs
    ) -> dict[str, Any]:
        """
        Send one request and return the decoded JSON body.

        Raises:
            GoogleCalendarError: On transport failure, an error status or an undecodable body
        """
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
        try:
            response = await self._send(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise GoogleCalendarError(f"Calendar API unreachable during {operation}: {e}") from e

        if not response.is_success:
            raise _error_from_response(response, operation)
        try:
            return response.json() if response.text else {}
        except ValueError as e:
            raise GoogleCalendarError(f"Invalid {operation} response: {e}") from e

    async def query_free_busy(
        self,
        access_token: str,
        time_min: datetime,
        time_max: datetime,
        calendar_ids: list[str] | None = None,
    ) -> list[BusyWindow]:
        """
        Busy periods of the given calendars (default: primary), sorted by start.

        Raises:
            GoogleCalendarError: If the query fails or a calendar reports errors
        """
        calendar_ids = calendar_ids or [CALENDAR_PRIMARY]
        data = await self._call(
            "POST",
            "/freeBusy",
            "free_busy",
            access_token,
            json={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "items": [{"id": calendar_id} for calendar_id in calendar_ids],
            },
        )

        windows: list[BusyWindow] = []
        for calendar_id in calendar_ids:
            calendar = data.get("calendars", {}).get(calendar_id, {})
            if calendar.get("errors"):
                raise GoogleCalendarError(
                    f"Free/busy not readable for calendar {calendar_id}",
                    error_code=str(calendar["errors"][0].get("reason", "unknown")),
                )
            for period in calendar.get("busy", []):
                start = parse_google_datetime(period.get("start"))
                end = parse_google_datetime(period.get("end"))
                if start and end and start < end:
                    windows.append(BusyWindow(start=start, end=end))

        windows.sort(key=lambda window: window.start)
        return windows

    async def list_events(
        self,
        access_token: str,
        time_min: datetime,
        time_max: datetime,
        calendar_id: str = CALENDAR_PRIMARY,
        max_results: int = 250,
    ) -> list[CalendarEvent]:
        """Single (recurrence-expanded) events of one calendar in a time range."""
        data = await self._call(
            "GET",
            f"/calendars/{calendar_id}/events",
            "list_events",
            access_token,
            params={
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return [CalendarEvent.from_api(item) for item in data.get("items", [])]

    async def create_event(
        self,
        access_token: str,
        summary: str,
        start_time: datetime,
        end_time: datetime,
        calendar_id: str = CALENDAR_PRIMARY,
        description: str = "",
        location: str = "",
        attendees: list[str] | None = None,
        transparent: bool = False,
        private_properties: dict[str, str] | None = None,
    ) -> CalendarEvent:
        """
        Insert an event; attendees get invitation emails.

        Raises:
            GoogleCalendarError: If the insert fails
        """
        body: dict[str, Any] = {
            "summary": summary,
            "description": description,
            "location": location,
            "start": {"dateTime": start_time.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": end_time.isoformat(), "timeZone": "UTC"},
            "transparency": "transparent" if transparent else "opaque",
        }
        if attendees:
            body["attendees"] = [{"email": email} for email in attendees]
        if private_properties:
            body["extendedProperties"] = {"private": private_properties}

        data = await self._call(
            "POST",
            f"/calendars/{calendar_id}/events",
            "create_event",
            access_token,
            json=body,
            params={"sendUpdates": "all"} if attendees else None,
        )
        event = CalendarEvent.from_api(data)
        logger.info("Calendar event created", calendar_id=calendar_id, event_id=event.id)
        return event

    async def patch_event(
        self,
        access_token: str,
        event_id: str,
        patch: dict[str, Any],
        calendar_id: str = CALENDAR_PRIMARY,
    ) -> CalendarEvent:
        data = await self._call(
            "PATCH", f"/calendars/{calendar_id}/events/{event_id}", "patch_event", access_token, json=patch
        )
        return CalendarEvent.from_api(data)


google_calendar_service = GoogleCalendarService()
