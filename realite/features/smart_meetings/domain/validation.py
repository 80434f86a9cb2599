"""
Plan parameter validation.

Every bound is checked before anything is stored; defaults come from
settings and are applied only to omitted values.
"""

from datetime import timedelta

from realite.config import Settings, settings
from realite.exceptions import ValidationError
from realite.features.smart_meetings.domain.models import PlanDraft, SmartMeetingPlan

DURATION_MINUTES_RANGE = (15, 24 * 60)
MIN_ACCEPTED_RANGE = (1, 50)
RESPONSE_WINDOW_HOURS_RANGE = (1, 14 * 24)
SLOT_INTERVAL_MINUTES_RANGE = (15, 180)
MAX_ATTEMPTS_RANGE = (1, 10)

TITLE_MAX_LENGTH = 120


def _check_range(value: int, bounds: tuple[int, int], field_name: str) -> int:
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer", field=field_name)
    if not low <= value <= high:
        raise ValidationError(f"{field_name} must be between {low} and {high}", field=field_name)
    return value


def normalize_tags(tags: list[str]) -> list[str]:
    """Lowercase hashtags, `#` prefixed, de-duplicated."""
    cleaned = (tag.strip().lower() for tag in tags)
    prefixed = (tag if tag.startswith("#") else f"#{tag}" for tag in cleaned if tag)
    return list(dict.fromkeys(prefixed))


def build_plan(plan_id: str, draft: PlanDraft, config: Settings = settings) -> SmartMeetingPlan:
    """
    Validate a draft and return the plan in its initial state.

    Raises:
        ValidationError: On the first parameter outside its bounds
    """
    title = draft.title.strip()
    if not title:
        raise ValidationError("title must not be empty", field="title")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"title must be at most {TITLE_MAX_LENGTH} characters", field="title")

    duration = _check_range(draft.duration_minutes, DURATION_MINUTES_RANGE, "duration_minutes")
    min_accepted = _check_range(
        draft.min_accepted_participants, MIN_ACCEPTED_RANGE, "min_accepted_participants"
    )
    response_window = _check_range(
        draft.response_window_hours
        if draft.response_window_hours is not None
        else config.SMART_MEETING_DEFAULT_RESPONSE_WINDOW_HOURS,
        RESPONSE_WINDOW_HOURS_RANGE,
        "response_window_hours",
    )
    slot_interval = _check_range(
        draft.slot_interval_minutes
        if draft.slot_interval_minutes is not None
        else config.SMART_MEETING_DEFAULT_SLOT_INTERVAL_MINUTES,
        SLOT_INTERVAL_MINUTES_RANGE,
        "slot_interval_minutes",
    )
    max_attempts = _check_range(
        draft.max_attempts if draft.max_attempts is not None else config.SMART_MEETING_DEFAULT_MAX_ATTEMPTS,
        MAX_ATTEMPTS_RANGE,
        "max_attempts",
    )

    start, end = draft.search_window_start, draft.search_window_end
    if start.tzinfo is None or end.tzinfo is None:
        raise ValidationError("search window bounds must be timezone-aware", field="search_window_start")
    if start >= end:
        raise ValidationError("search_window_start must be before search_window_end", field="search_window_end")
    if end - start < timedelta(minutes=duration):
        raise ValidationError(
            "search window is shorter than the meeting duration", field="search_window_end"
        )

    return SmartMeetingPlan(
        id=plan_id,
        group_id=draft.group_id,
        created_by=draft.created_by,
        title=title,
        description=(draft.description or "").strip() or None,
        location=(draft.location or "").strip() or None,
        tags=normalize_tags(draft.tags),
        duration_minutes=duration,
        min_accepted_participants=min_accepted,
        response_window_hours=response_window,
        search_window_start=start,
        search_window_end=end,
        slot_interval_minutes=slot_interval,
        max_attempts=max_attempts,
    )
