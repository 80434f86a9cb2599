"""
Dating settings routes.

GET returns the stored profile with its unlock status; PATCH merges a partial
update into the stored profile and rejects inverted age ranges and minors
enabling the mode.
"""

from dataclasses import replace
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, status

from realite.auth.verify import current_user_id
from realite.features.dating.matching import (
    DATE_MIN_AGE,
    age_from_birth_year,
    get_profile_status,
    normalize_genders,
)
from realite.features.dating.repository.dating_repository import DatingProfileRepository
from realite.infrastructure.observability.logging import get_logger

from .schemas import DatingSettingsUpdateRequest, DatingStatusResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/settings/dating", tags=["dating"])


def get_dating_repository():
    return DatingProfileRepository


@router.get("", response_model=DatingStatusResponse)
async def get_dating_settings(
    user_id: str = Depends(current_user_id),
    repository=Depends(get_dating_repository),
):
    """Current dating profile and what is still missing to unlock it."""
    profile = await repository.get_profile(user_id)
    return DatingStatusResponse.build(profile, get_profile_status(profile, datetime.now(UTC)))


@router.patch("", response_model=DatingStatusResponse)
async def update_dating_settings(
    request: DatingSettingsUpdateRequest,
    user_id: str = Depends(current_user_id),
    repository=Depends(get_dating_repository),
):
    now = datetime.now(UTC)
    current = await repository.get_profile(user_id)

    changes = request.model_dump(exclude_unset=True)
    for flag in ("enabled", "is_single", "sought_only_singles"):
        if flag in changes and changes[flag] is None:
            del changes[flag]
    if "sought_genders" in changes:
        changes["sought_genders"] = normalize_genders(changes["sought_genders"] or [])

    updated = replace(current, **changes)

    if updated.birth_year is not None and updated.birth_year > now.year:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Birth year cannot be in the future",
        )

    if (
        updated.sought_age_min is not None
        and updated.sought_age_max is not None
        and updated.sought_age_min > updated.sought_age_max
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Minimum sought age must be less than or equal to the maximum",
        )

    if (
        updated.enabled
        and updated.birth_year is not None
        and age_from_birth_year(updated.birth_year, now) < DATE_MIN_AGE
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Dating mode is only available from {DATE_MIN_AGE} years",
        )

    saved = await repository.save_profile(updated)
    logger.info("Dating settings updated", user_id=user_id, fields=sorted(changes))
    return DatingStatusResponse.build(saved, get_profile_status(saved, now))
