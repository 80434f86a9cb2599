"""
Domain models for smart meetings.

A plan negotiates one meeting for a group: it proposes candidate slots one
attempt at a time and finalizes as soon as enough members accept.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from realite.models.domain.effects import AttemptedEffect


class PlanState(StrEnum):
    SEARCHING = "searching"
    AWAITING_RESPONSES = "awaiting_responses"
    FINALIZED = "finalized"
    FAILED = "failed"


TERMINAL_STATES = frozenset({PlanState.FINALIZED, PlanState.FAILED})


class InvitationResponse(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class MemberOutcome(StrEnum):
    ACCEPTED = "accepted"
    DECLINED = "declined"
    NO_RESPONSE = "no_response"


@dataclass(slots=True, frozen=True)
class CandidateSlot:
    starts_at: datetime
    ends_at: datetime


@dataclass(slots=True)
class Invitation:
    plan_id: str
    attempt_index: int
    participant_id: str
    response: InvitationResponse = InvitationResponse.PENDING
    responded_at: datetime | None = None


@dataclass(slots=True)
class PlanDraft:
    """Plan parameters as requested; defaults are applied during validation."""

    group_id: str
    created_by: str
    title: str
    duration_minutes: int
    min_accepted_participants: int
    search_window_start: datetime
    search_window_end: datetime
    response_window_hours: int | None = None
    slot_interval_minutes: int | None = None
    max_attempts: int | None = None
    description: str | None = None
    location: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SmartMeetingPlan:
    id: str
    group_id: str
    created_by: str
    title: str
    duration_minutes: int
    min_accepted_participants: int
    response_window_hours: int
    search_window_start: datetime
    search_window_end: datetime
    slot_interval_minutes: int
    max_attempts: int
    description: str | None = None
    location: str | None = None
    tags: list[str] = field(default_factory=list)
    state: PlanState = PlanState.SEARCHING
    current_attempt: int = 0
    candidate_slot: CandidateSlot | None = None
    response_deadline_at: datetime | None = None
    tried_slot_starts: list[datetime] = field(default_factory=list)
    finalized_starts_at: datetime | None = None
    finalized_ends_at: datetime | None = None
    status_reason: str | None = None
    calendar_event_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(slots=True)
class AttemptTally:
    accepted: int = 0
    declined: int = 0
    pending: int = 0


@dataclass(slots=True)
class AdvanceResult:
    """Plan as committed plus what happened around the transition."""

    plan: SmartMeetingPlan
    changed: bool = False
    response_recorded: bool = False
    conflict: str | None = None
    effects: list[AttemptedEffect] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
