"""
Domain subpackage for the smart meetings feature.
"""

from .models import (
    TERMINAL_STATES,
    AdvanceResult,
    AttemptTally,
    CandidateSlot,
    Invitation,
    InvitationResponse,
    MemberOutcome,
    PlanDraft,
    PlanState,
    SmartMeetingPlan,
)

__all__ = [
    "TERMINAL_STATES",
    "AdvanceResult",
    "AttemptTally",
    "CandidateSlot",
    "Invitation",
    "InvitationResponse",
    "MemberOutcome",
    "PlanDraft",
    "PlanState",
    "SmartMeetingPlan",
]
