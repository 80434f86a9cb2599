"""
Suggestion API request/response models.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from realite.features.suggestions.domain import DeclineReason, LearningSummary, Suggestion
from realite.models.domain.effects import AttemptedEffect


class DecisionRequest(BaseModel):
    """Accept or decline a suggestion."""

    decision: Literal["accepted", "declined"] = Field(..., description="User decision")
    reasons: list[DeclineReason] | None = Field(
        None, max_length=5, description="Decline reasons (ignored when accepting)"
    )
    note: str | None = Field(None, max_length=300, description="Free-text note for a decline")


class SuggestionResponse(BaseModel):
    id: str = Field(..., description="Suggestion ID")
    event_id: str = Field(..., description="Suggested event")
    score: float = Field(..., description="Relevance score")
    reason: str = Field(..., description="Why this event was suggested")
    status: str = Field(..., description="pending, calendar_inserted, accepted or declined")
    decision_reasons: list[str] = Field(default_factory=list, description="Decline reasons")
    decision_note: str | None = Field(None, description="Decline note")
    calendar_event_id: str | None = Field(None, description="External calendar entry")
    created_at: datetime | None = Field(None, description="When the suggestion was created")

    @classmethod
    def from_domain(cls, suggestion: Suggestion) -> "SuggestionResponse":
        return cls(
            id=suggestion.id,
            event_id=suggestion.event_id,
            score=suggestion.score,
            reason=suggestion.reason,
            status=suggestion.status.value,
            decision_reasons=[reason.value for reason in suggestion.decision_reasons],
            decision_note=suggestion.decision_note,
            calendar_event_id=suggestion.calendar_event_id,
            created_at=suggestion.created_at,
        )


class EffectResponse(BaseModel):
    kind: str = Field(..., description="Side effect type")
    target_id: str = Field(..., description="Suggestion or plan the effect belongs to")
    succeeded: bool = Field(..., description="Whether the side effect went through")
    detail: str | None = Field(None, description="Failure detail")
    external_id: str | None = Field(None, description="External reference created by the effect")

    @classmethod
    def from_domain(cls, effect: AttemptedEffect) -> "EffectResponse":
        return cls(
            kind=effect.kind.value,
            target_id=effect.target_id,
            succeeded=effect.succeeded,
            detail=effect.detail,
            external_id=effect.external_id,
        )


class SuggestionListResponse(BaseModel):
    suggestions: list[SuggestionResponse] = Field(default_factory=list)
    total_count: int = Field(..., description="Number of suggestions")


class SuggestionRunResponse(BaseModel):
    suggestions: list[SuggestionResponse] = Field(default_factory=list)
    effects: list[EffectResponse] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list, description="Non-fatal collaborator problems")


class DecisionResponse(BaseModel):
    ok: bool = Field(default=True)
    applied: bool = Field(..., description="False when the decision did not change anything")
    suggestion: SuggestionResponse
    effects: list[EffectResponse] = Field(default_factory=list)


class LearningCriterionResponse(BaseModel):
    key: str = Field(..., description="Tag key")
    label: str = Field(..., description="Human readable label")
    weight: float = Field(..., description="Learned weight")
    votes: int = Field(..., description="Number of decisions that touched the tag")


class BlockedPersonResponse(BaseModel):
    id: str = Field(..., description="Blocked creator id")
    label: str = Field(..., description="Display name or short id")


class LearningSummaryResponse(BaseModel):
    positive_criteria: list[LearningCriterionResponse] = Field(default_factory=list)
    negative_criteria: list[LearningCriterionResponse] = Field(default_factory=list)
    blocked_people: list[BlockedPersonResponse] = Field(default_factory=list)
    blocked_activity_tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, summary: LearningSummary) -> "LearningSummaryResponse":
        def convert(criteria):
            return [
                LearningCriterionResponse(key=c.key, label=c.label, weight=c.weight, votes=c.votes)
                for c in criteria
            ]

        return cls(
            positive_criteria=convert(summary.positive),
            negative_criteria=convert(summary.negative),
            blocked_people=[
                BlockedPersonResponse(id=person.id, label=person.label) for person in summary.blocked_people
            ],
            blocked_activity_tags=summary.blocked_activity_tags,
        )
