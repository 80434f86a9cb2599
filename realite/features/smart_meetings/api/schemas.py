"""
Smart-meeting API request/response models.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from realite.features.smart_meetings.domain import AdvanceResult, SmartMeetingPlan
from realite.features.suggestions.api.schemas import EffectResponse


class CreateSmartMeetingRequest(BaseModel):
    """
    Plan parameters. Omitted values are taken from title shortcuts such as
    `!min=3` or `!frist=12h` and otherwise from the configured defaults.
    """

    group_id: str = Field(..., description="Group whose members are invited")
    title: str = Field(..., min_length=1, max_length=200, description="Title, may contain shortcuts")
    duration_minutes: int = Field(60, description="Meeting length")
    min_accepted_participants: int | None = Field(None, description="Acceptances needed to finalize")
    search_window_start: datetime = Field(..., description="Earliest slot start (timezone-aware)")
    search_window_end: datetime | None = Field(None, description="Latest slot end (timezone-aware)")
    response_window_hours: int | None = Field(None, description="Hours participants have to respond")
    slot_interval_minutes: int | None = Field(None, description="Step between candidate slots")
    max_attempts: int | None = Field(None, description="Slots to try before giving up")
    description: str | None = Field(None, max_length=2000)
    location: str | None = Field(None, max_length=200)
    tags: list[str] = Field(default_factory=list, max_length=20)


class RespondRequest(BaseModel):
    attempt_index: int = Field(..., ge=1, description="Attempt the answer refers to")
    accepted: bool = Field(..., description="True to accept the proposed slot")


class CandidateSlotResponse(BaseModel):
    starts_at: datetime
    ends_at: datetime


class SmartMeetingResponse(BaseModel):
    id: str = Field(..., description="Plan ID")
    group_id: str
    created_by: str
    title: str
    description: str | None = None
    location: str | None = None
    tags: list[str] = Field(default_factory=list)
    state: str = Field(..., description="searching, awaiting_responses, finalized or failed")
    duration_minutes: int
    min_accepted_participants: int
    response_window_hours: int
    slot_interval_minutes: int
    max_attempts: int
    search_window_start: datetime
    search_window_end: datetime
    current_attempt: int = Field(..., description="Number of attempts opened so far")
    candidate_slot: CandidateSlotResponse | None = Field(None, description="Slot of the open attempt")
    response_deadline_at: datetime | None = None
    finalized_starts_at: datetime | None = None
    finalized_ends_at: datetime | None = None
    status_reason: str | None = Field(None, description="Why the plan is in its current state")
    calendar_event_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, plan: SmartMeetingPlan) -> "SmartMeetingResponse":
        slot = plan.candidate_slot
        return cls(
            id=plan.id,
            group_id=plan.group_id,
            created_by=plan.created_by,
            title=plan.title,
            description=plan.description,
            location=plan.location,
            tags=plan.tags,
            state=plan.state.value,
            duration_minutes=plan.duration_minutes,
            min_accepted_participants=plan.min_accepted_participants,
            response_window_hours=plan.response_window_hours,
            slot_interval_minutes=plan.slot_interval_minutes,
            max_attempts=plan.max_attempts,
            search_window_start=plan.search_window_start,
            search_window_end=plan.search_window_end,
            current_attempt=plan.current_attempt,
            candidate_slot=CandidateSlotResponse(starts_at=slot.starts_at, ends_at=slot.ends_at) if slot else None,
            response_deadline_at=plan.response_deadline_at,
            finalized_starts_at=plan.finalized_starts_at,
            finalized_ends_at=plan.finalized_ends_at,
            status_reason=plan.status_reason,
            calendar_event_id=plan.calendar_event_id,
            created_at=plan.created_at,
        )


class SmartMeetingResultResponse(BaseModel):
    plan: SmartMeetingResponse
    changed: bool = Field(..., description="Whether the call moved the plan")
    response_recorded: bool = Field(False, description="Whether a participant answer was stored")
    conflict: str | None = Field(None, description="Why the call was a no-op")
    effects: list[EffectResponse] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, result: AdvanceResult) -> "SmartMeetingResultResponse":
        return cls(
            plan=SmartMeetingResponse.from_domain(result.plan),
            changed=result.changed,
            response_recorded=result.response_recorded,
            conflict=result.conflict,
            effects=[EffectResponse.from_domain(e) for e in result.effects],
            warnings=result.warnings,
        )


class SmartMeetingListResponse(BaseModel):
    plans: list[SmartMeetingResponse] = Field(default_factory=list)
    total_count: int
