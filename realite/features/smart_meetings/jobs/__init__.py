"""
Job runners for the smart meetings feature.
"""

from .tick_job import (
    SmartMeetingTickJob,
    run_smart_meeting_tick,
    smart_meeting_tick_job,
    start_smart_meeting_tick_scheduler,
)

__all__ = [
    "SmartMeetingTickJob",
    "run_smart_meeting_tick",
    "smart_meeting_tick_job",
    "start_smart_meeting_tick_scheduler",
]
