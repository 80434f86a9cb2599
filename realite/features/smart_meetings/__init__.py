"""
Smart meetings feature package.

Negotiates a meeting time for a group: one candidate slot per attempt,
finalized once enough members accept, retried on the next slot when an
attempt expires.
"""

from .api.router import router as smart_meetings_router  # noqa: F401
from .domain.models import PlanDraft, PlanState, SmartMeetingPlan  # noqa: F401
from .services.negotiation_service import SmartMeetingService, smart_meeting_service  # noqa: F401
