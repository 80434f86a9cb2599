"""
Domain models for event suggestions and preference learning.

Suggestion status is an explicit state machine: `transition_status` is the
only place allowed to move a suggestion between states.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from realite.exceptions import StateConflictError
from realite.models.domain.effects import AttemptedEffect


class EventVisibility(StrEnum):
    PUBLIC = "public"
    GROUP = "group"
    SMART_DATE = "smart_date"


@dataclass(slots=True)
class Event:
    """An event visible to the user, a candidate for a suggestion."""

    id: str
    title: str
    starts_at: datetime
    ends_at: datetime
    created_by: str
    visibility: EventVisibility = EventVisibility.GROUP
    group_id: str | None = None
    description: str | None = None
    location: str | None = None
    tags: list[str] = field(default_factory=list)


class SuggestionStatus(StrEnum):
    PENDING = "pending"
    CALENDAR_INSERTED = "calendar_inserted"
    ACCEPTED = "accepted"
    DECLINED = "declined"


SUGGESTION_TRANSITIONS: dict[SuggestionStatus, frozenset[SuggestionStatus]] = {
    SuggestionStatus.PENDING: frozenset(
        {SuggestionStatus.CALENDAR_INSERTED, SuggestionStatus.ACCEPTED, SuggestionStatus.DECLINED}
    ),
    SuggestionStatus.CALENDAR_INSERTED: frozenset(
        {SuggestionStatus.ACCEPTED, SuggestionStatus.DECLINED}
    ),
    # users may change their mind, but never go back to undecided
    SuggestionStatus.ACCEPTED: frozenset({SuggestionStatus.DECLINED}),
    SuggestionStatus.DECLINED: frozenset({SuggestionStatus.ACCEPTED}),
}

DECIDED_STATUSES = frozenset({SuggestionStatus.ACCEPTED, SuggestionStatus.DECLINED})


def transition_status(current: SuggestionStatus, target: SuggestionStatus) -> SuggestionStatus:
    """
    Validate a status change.

    Raises:
        StateConflictError: If `target` is not reachable from `current`
    """
    if target not in SUGGESTION_TRANSITIONS[current]:
        raise StateConflictError(
            f"Suggestion cannot move from {current.value} to {target.value}",
            current_state=current.value,
        )
    return target


class Decision(StrEnum):
    ACCEPTED = "accepted"
    DECLINED = "declined"


class DeclineReason(StrEnum):
    NOT_WITH_THIS_PERSON = "not_with_this_person"
    NOT_THIS_ACTIVITY = "not_this_activity"
    NO_TIME = "no_time"
    TOO_FAR = "too_far"
    WOULD_IF_CHANGED = "would_if_changed"


@dataclass(slots=True)
class Suggestion:
    id: str
    user_id: str
    event_id: str
    score: float
    reason: str
    status: SuggestionStatus = SuggestionStatus.PENDING
    decision_reasons: list[DeclineReason] = field(default_factory=list)
    decision_note: str | None = None
    calendar_event_id: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class PreferenceWeight:
    user_id: str
    tag: str
    weight: float
    votes: int = 0


@dataclass(slots=True)
class SuggestionSettings:
    user_id: str
    auto_insert_suggestions: bool = True
    suggestion_calendar_id: str = "primary"
    blocked_creator_ids: list[str] = field(default_factory=list)
    blocked_activity_tags: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SuggestionRunResult:
    suggestions: list[Suggestion] = field(default_factory=list)
    effects: list[AttemptedEffect] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class DecisionResult:
    suggestion: Suggestion
    applied: bool
    effects: list[AttemptedEffect] = field(default_factory=list)


@dataclass(slots=True)
class LearningCriterion:
    key: str
    label: str
    weight: float
    votes: int


@dataclass(slots=True)
class BlockedPerson:
    id: str
    label: str


@dataclass(slots=True)
class LearningSummary:
    positive: list[LearningCriterion] = field(default_factory=list)
    negative: list[LearningCriterion] = field(default_factory=list)
    blocked_people: list[BlockedPerson] = field(default_factory=list)
    blocked_activity_tags: list[str] = field(default_factory=list)
