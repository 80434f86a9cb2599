"""
Background sync service.

A sync run imports the user's `#alle` calendar entries as public events and
runs the optional contacts collaborator. Each collaborator fails on its own:
a failing calendar does not stop the contacts sync and vice versa, failures
end up as warnings in the sync snapshot.
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

from realite.config import settings
from realite.exceptions import CollaboratorError
from realite.features.suggestions.services.suggestion_engine import is_engine_generated
from realite.features.sync.registry import SyncOutcome, SyncRegistry, SyncSnapshot
from realite.features.sync.repository.import_repository import ImportedEventRepository
from realite.infrastructure.observability.logging import get_logger
from realite.services.calendar.models import CalendarEvent
from realite.services.calendar.provider import (
    MANAGED_PROPERTY,
    CalendarProvider,
    GoogleCalendarProvider,
)

logger = get_logger(__name__)

IMPORT_HORIZON = timedelta(days=120)
DEFAULT_IMPORT_TITLE = "Public calendar event"
_EVERYONE_TAG = re.compile(r"(^|\s)#alle(\b|$)", re.IGNORECASE)
_HASHTAG = re.compile(r"#[\w-]+")


class ContactsSync(Protocol):
    async def sync_contacts(self, user_id: str) -> dict[str, int]: ...


def is_managed_entry(event: CalendarEvent) -> bool:
    """Entries the engine wrote itself are never imported back."""
    if is_engine_generated(event.summary or ""):
        return True
    private = event.private_properties
    return bool(private.get(MANAGED_PROPERTY) or private.get("realiteSuggestionId"))


def extract_tags(text: str) -> list[str]:
    return list(dict.fromkeys(tag.lower() for tag in _HASHTAG.findall(text)))


def is_public_entry(event: CalendarEvent) -> bool:
    return bool(_EVERYONE_TAG.search(event.summary or ""))


class CalendarImportSync:
    """Mirror calendar entries tagged `#alle` into public events."""

    def __init__(self, calendar: CalendarProvider | None = None, events=None, clock=None):
        self.calendar = calendar or GoogleCalendarProvider()
        self.events = events or ImportedEventRepository
        self._clock = clock or (lambda: datetime.now(UTC))

    async def sync_calendar(self, user_id: str) -> dict[str, int]:
        now = self._clock()
        entries = await self.calendar.list_events(user_id, now, now + IMPORT_HORIZON)
        if entries is None:
            return {"synced": 0, "scanned": 0}

        synced = 0
        for entry in entries:
            if not entry.id or entry.cancelled or is_managed_entry(entry) or not is_public_entry(entry):
                continue
            if not entry.start_time or not entry.end_time or entry.end_time <= entry.start_time:
                continue

            await self.events.upsert_imported_event(
                user_id,
                entry.id,
                (entry.summary or "").strip() or DEFAULT_IMPORT_TITLE,
                entry.description or None,
                entry.location or None,
                entry.start_time,
                entry.end_time,
                extract_tags(f"{entry.summary or ''}\n{entry.description or ''}"),
            )
            synced += 1

        logger.info("Calendar import finished", user_id=user_id, scanned=len(entries), synced=synced)
        return {"synced": synced, "scanned": len(entries)}


class SyncService:
    def __init__(
        self,
        registry: SyncRegistry,
        calendar_sync: CalendarImportSync | None = None,
        contacts_sync: ContactsSync | None = None,
    ):
        self.registry = registry
        self.calendar_sync = calendar_sync or CalendarImportSync()
        self.contacts_sync = contacts_sync

    async def run_sync(self, user_id: str) -> SyncOutcome:
        """One full sync run; collaborator failures become warnings."""
        outcome = SyncOutcome()

        try:
            outcome.stats["calendar"] = await self.calendar_sync.sync_calendar(user_id)
        except CollaboratorError as e:
            logger.warning("Calendar sync failed", user_id=user_id, error=e.message)
            outcome.warnings.append(f"Calendar sync failed: {e.message}")
        except Exception as e:
            logger.error("Unexpected calendar sync error", user_id=user_id, error=str(e))
            outcome.warnings.append(f"Calendar sync failed: {e}")

        if self.contacts_sync is not None:
            try:
                outcome.stats["contacts"] = await self.contacts_sync.sync_contacts(user_id)
            except CollaboratorError as e:
                logger.warning("Contacts sync failed", user_id=user_id, error=e.message)
                outcome.warnings.append(f"Contacts sync failed: {e.message}")
            except Exception as e:
                logger.error("Unexpected contacts sync error", user_id=user_id, error=str(e))
                outcome.warnings.append(f"Contacts sync failed: {e}")

        return outcome

    def trigger(self, user_id: str, force: bool = False) -> SyncSnapshot:
        """Start a sync in the background (subject to cooldown) and return the snapshot."""
        self.registry.trigger(user_id, lambda: self.run_sync(user_id), force=force)
        return self.registry.snapshot(user_id)

    async def sync_and_wait(self, user_id: str, force: bool = False) -> SyncSnapshot:
        """Trigger, then wait for the in-flight run (ours or one already running)."""
        self.registry.trigger(user_id, lambda: self.run_sync(user_id), force=force)
        await self.registry.wait(user_id)
        return self.registry.snapshot(user_id)

    def snapshot(self, user_id: str) -> SyncSnapshot:
        return self.registry.snapshot(user_id)


sync_registry = SyncRegistry(cooldown_seconds=settings.SYNC_COOLDOWN_SECONDS)

# Singleton instance for application use
sync_service = SyncService(sync_registry)
