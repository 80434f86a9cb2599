"""
Background sync routes.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from realite.auth.verify import current_user_id
from realite.features.sync.registry import SyncSnapshot
from realite.features.sync.service import sync_service

router = APIRouter(prefix="/sync", tags=["sync"])


class SyncStatusResponse(BaseModel):
    revalidating: bool = Field(..., description="Whether a sync is running right now")
    last_triggered_at: datetime | None = None
    last_completed_at: datetime | None = None
    warnings: list[str] = Field(default_factory=list, description="Failures of the last completed run")
    stats: dict[str, dict[str, int]] = Field(default_factory=dict, description="Per-collaborator counters")

    @classmethod
    def from_snapshot(cls, snapshot: SyncSnapshot) -> "SyncStatusResponse":
        return cls(
            revalidating=snapshot.revalidating,
            last_triggered_at=snapshot.last_triggered_at,
            last_completed_at=snapshot.last_completed_at,
            warnings=snapshot.warnings,
            stats=snapshot.stats,
        )


def get_sync_service():
    return sync_service


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    user_id: str = Depends(current_user_id),
    service=Depends(get_sync_service),
):
    return SyncStatusResponse.from_snapshot(service.snapshot(user_id))


@router.post("", response_model=SyncStatusResponse)
async def trigger_sync(
    force: bool = Query(False, description="Ignore the cooldown"),
    wait: bool = Query(False, description="Wait for the running sync to finish"),
    user_id: str = Depends(current_user_id),
    service=Depends(get_sync_service),
):
    """Start a background sync unless one is running or the cooldown is active."""
    if wait:
        snapshot = await service.sync_and_wait(user_id, force=force)
    else:
        snapshot = service.trigger(user_id, force=force)
    return SyncStatusResponse.from_snapshot(snapshot)
