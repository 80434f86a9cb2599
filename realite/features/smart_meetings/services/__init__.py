"""
Service layer for smart meetings.
"""

from .negotiation_service import SmartMeetingService, smart_meeting_service
from .notifications import LogNotificationChannel, NotificationChannel
from .plan_locks import PlanLockRegistry

__all__ = [
    "LogNotificationChannel",
    "NotificationChannel",
    "PlanLockRegistry",
    "SmartMeetingService",
    "smart_meeting_service",
]
