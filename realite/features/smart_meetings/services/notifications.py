"""
Invitation delivery for smart meetings.

Delivery channels (push, mail) live outside this service; the default
channel only records the invitation in the structured log so a downstream
consumer can pick it up. Responses come back through the responses endpoint.
"""

from typing import Protocol

from realite.features.smart_meetings.domain import CandidateSlot
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class NotificationChannel(Protocol):
    async def send_invitation(
        self, plan_id: str, attempt_index: int, participant_id: str, slot: CandidateSlot
    ) -> None: ...


class LogNotificationChannel:
    async def send_invitation(
        self, plan_id: str, attempt_index: int, participant_id: str, slot: CandidateSlot
    ) -> None:
        logger.info(
            "Smart meeting invitation",
            plan_id=plan_id,
            attempt=attempt_index,
            participant_id=participant_id,
            starts_at=slot.starts_at.isoformat(),
            ends_at=slot.ends_at.isoformat(),
        )
