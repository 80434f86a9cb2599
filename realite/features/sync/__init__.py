"""
Background sync feature package.

Deduplicated per-user calendar import (and optional contacts sync) with a
cooldown between unforced triggers.
"""

from .registry import SyncOutcome, SyncRegistry, SyncSnapshot  # noqa: F401
from .router import router as sync_router  # noqa: F401
from .service import SyncService, sync_service  # noqa: F401
