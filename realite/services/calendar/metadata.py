"""
Realite link block appended to calendar entry descriptions.

Entries written by the engine carry a trailing link back to the app. The
block is rebuilt on every write, so stripping must remove all earlier
formats (single line, three-line block, legacy suggestion footer).
"""

import re
from enum import StrEnum

METADATA_HEADER = "Realite-Link (automatisch ergänzt)"

_METADATA_LINE = re.compile(
    r"(?:\n{2,})?Realite-Link \(automatisch ergänzt\):\s*https?://\S+", re.IGNORECASE
)
_METADATA_BLOCK = re.compile(
    r"(?:\n{2,})?Realite-Link \(automatisch ergänzt\)\nTyp: (?:Event|Vorschlag)\nURL:\s*https?://\S+",
    re.IGNORECASE,
)
_LEGACY_SUGGESTION_BLOCK = re.compile(
    r"(?:\n{2,})?Vorschlag von Realite\.\nEventseite:\s*https?://\S+\nAntwortseite:\s*https?://\S+",
    re.IGNORECASE,
)
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


class CalendarLinkType(StrEnum):
    EVENT = "event"
    SUGGESTION = "suggestion"


def strip_calendar_metadata(description: str | None) -> str | None:
    """Remove every Realite link block; returns None when nothing else remains."""
    normalized = (description or "").replace("\r\n", "\n")
    for pattern in (_METADATA_LINE, _METADATA_BLOCK, _LEGACY_SUGGESTION_BLOCK):
        normalized = pattern.sub("", normalized)

    compact = _EXTRA_BLANK_LINES.sub("\n\n", normalized).strip()
    return compact or None


def build_calendar_metadata(description: str | None, url: str) -> str:
    """Description with exactly one trailing link block."""
    base = strip_calendar_metadata(description)
    block = f"{METADATA_HEADER}: {url}"
    return "\n\n".join(part for part in (base, block) if part)


def build_app_url(base_url: str, link_type: CalendarLinkType, resource_id: str) -> str:
    path = "e" if link_type is CalendarLinkType.EVENT else "s"
    return f"{base_url.rstrip('/')}/{path}/{resource_id}"
