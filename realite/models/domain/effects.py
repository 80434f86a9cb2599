"""
Attempted side effects.

Calendar writes and notifications run after the local state change has been
committed. Their outcome is reported next to that state instead of being
raised, so callers can inspect or retry them independently.
"""

from dataclasses import dataclass
from enum import StrEnum


class EffectKind(StrEnum):
    CALENDAR_INSERT = "calendar_insert"
    CALENDAR_DECISION_SYNC = "calendar_decision_sync"
    INVITATION = "invitation"


@dataclass(slots=True)
class AttemptedEffect:
    kind: EffectKind
    target_id: str
    succeeded: bool
    detail: str | None = None
    external_id: str | None = None

    def as_warning(self) -> str | None:
        if self.succeeded:
            return None
        return f"{self.kind.value} failed for {self.target_id}: {self.detail or 'unknown error'}"
