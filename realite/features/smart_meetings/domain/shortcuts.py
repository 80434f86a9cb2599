"""
Title shortcuts for smart meetings.

Users can configure a plan inline in its title, for example
`Grillen !smart !min=4 !frist=12h !versuche3`. Recognised tokens are removed
from the title and their values clamped to the plan bounds; anything
unrecognised stays in the title.
"""

import re
from dataclasses import dataclass

_DIRECT = re.compile(r"^!([a-zäöüß]+)=(.+)$")
_COMPACT = re.compile(r"^!([a-zäöüß]+)(\d+[a-z]*)$")
_HOURS = re.compile(r"^(\d+)(?:h|std)?$")
_MINUTES = re.compile(r"^(\d+)(?:m|min)?$")

ENABLE_KEYS = {"smart", "auto"}
MIN_KEYS = {"min", "mind", "mindestens"}
DEADLINE_KEYS = {"frist", "deadline"}
WINDOW_KEYS = {"fenster", "window"}
ATTEMPT_KEYS = {"versuche", "attempts"}
INTERVAL_KEYS = {"interval", "slot"}


@dataclass(slots=True)
class ShortcutConfig:
    enabled: bool = False
    cleaned_title: str = ""
    min_accepted_participants: int | None = None
    response_window_hours: int | None = None
    search_window_hours: int | None = None
    max_attempts: int | None = None
    slot_interval_minutes: int | None = None


def _clamp(value: int, low: int, high: int) -> int:
    return min(high, max(low, value))


def _positive_int(raw: str) -> int | None:
    if not raw.isdigit():
        return None
    value = int(raw)
    return value if value > 0 else None


def _with_unit(raw: str, pattern: re.Pattern) -> int | None:
    matched = pattern.match(raw.strip())
    return _positive_int(matched.group(1)) if matched else None


def _split_token(token: str) -> tuple[str, str] | None:
    normalized = token.strip().lower()
    if not normalized.startswith("!"):
        return None
    for pattern in (_DIRECT, _COMPACT):
        matched = pattern.match(normalized)
        if matched:
            return matched.group(1), matched.group(2)
    return normalized[1:], ""


def _apply_setting(config: ShortcutConfig, key: str, value: str) -> bool:
    """Store a valued shortcut; False when key or value is not recognised."""
    if key in MIN_KEYS:
        number = _positive_int(value)
        if number:
            config.min_accepted_participants = _clamp(number, 1, 50)
            return True
    elif key in DEADLINE_KEYS:
        number = _with_unit(value, _HOURS)
        if number:
            config.response_window_hours = _clamp(number, 1, 336)
            return True
    elif key in WINDOW_KEYS:
        number = _with_unit(value, _HOURS)
        if number:
            config.search_window_hours = _clamp(number, 2, 336)
            return True
    elif key in ATTEMPT_KEYS:
        number = _positive_int(value)
        if number:
            config.max_attempts = _clamp(number, 1, 10)
            return True
    elif key in INTERVAL_KEYS:
        number = _with_unit(value, _MINUTES)
        if number:
            config.slot_interval_minutes = _clamp(number, 15, 180)
            return True
    return False


def parse_shortcuts(title: str) -> ShortcutConfig:
    config = ShortcutConfig()
    kept: list[str] = []

    for token in title.split():
        parsed = _split_token(token)
        if parsed is None:
            kept.append(token)
            continue

        key, value = parsed
        if key in ENABLE_KEYS:
            config.enabled = True
            continue

        if _apply_setting(config, key, value):
            config.enabled = True
            continue

        kept.append(token)

    config.cleaned_title = " ".join(kept).strip()
    return config
