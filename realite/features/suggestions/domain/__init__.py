"""
Domain subpackage for the suggestions feature.
"""

from .models import (
    DECIDED_STATUSES,
    SUGGESTION_TRANSITIONS,
    BlockedPerson,
    Decision,
    DecisionResult,
    DeclineReason,
    Event,
    EventVisibility,
    LearningCriterion,
    LearningSummary,
    PreferenceWeight,
    Suggestion,
    SuggestionRunResult,
    SuggestionSettings,
    SuggestionStatus,
    transition_status,
)

__all__ = [
    "DECIDED_STATUSES",
    "SUGGESTION_TRANSITIONS",
    "BlockedPerson",
    "Decision",
    "DecisionResult",
    "DeclineReason",
    "Event",
    "EventVisibility",
    "LearningCriterion",
    "LearningSummary",
    "PreferenceWeight",
    "Suggestion",
    "SuggestionRunResult",
    "SuggestionSettings",
    "SuggestionStatus",
    "transition_status",
]
