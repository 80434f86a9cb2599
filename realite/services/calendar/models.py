"""
Calendar values shared by the Google client, the provider and the sync import.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import Any


def parse_google_datetime(value: str | None) -> datetime | None:
    """RFC3339 timestamp from the Calendar API as an aware datetime; None if unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _parse_event_time(value: dict[str, Any] | None) -> datetime | None:
    # All-day entries carry `date` instead of `dateTime`
    if not value:
        return None
    if "date" in value:
        try:
            return datetime.combine(date.fromisoformat(value["date"]), time.min, tzinfo=UTC)
        except ValueError:
            return None
    return parse_google_datetime(value.get("dateTime"))


@dataclass(slots=True, frozen=True)
class BusyWindow:
    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and self.start < end


@dataclass(slots=True)
class CalendarEvent:
    """An entry of the user's Google calendar, as returned by events.list/insert."""

    id: str | None
    summary: str
    description: str
    location: str
    status: str
    start_time: datetime | None
    end_time: datetime | None
    raw_data: dict[str, Any] = field(repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "CalendarEvent":
        return cls(
            id=data.get("id"),
            summary=data.get("summary") or "",
            description=data.get("description") or "",
            location=data.get("location") or "",
            status=data.get("status") or "confirmed",
            start_time=_parse_event_time(data.get("start")),
            end_time=_parse_event_time(data.get("end")),
            raw_data=data,
        )

    @property
    def cancelled(self) -> bool:
        return self.status == "cancelled"

    @property
    def private_properties(self) -> dict[str, str]:
        return (self.raw_data.get("extendedProperties") or {}).get("private") or {}
