"""
Dating settings request/response models.
"""

from pydantic import BaseModel, Field

from realite.features.dating.domain import DatingGender, DatingProfile, DatingProfileStatus
from realite.features.dating.matching import DATE_MAX_AGE, DATE_MIN_AGE


class DatingSettingsUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    enabled: bool | None = Field(None, description="Enable dating mode")
    birth_year: int | None = Field(None, ge=1900, description="Year of birth, not in the future")
    gender: DatingGender | None = Field(None, description="Own gender")
    is_single: bool | None = Field(None, description="Currently single")
    sought_genders: list[DatingGender] | None = Field(
        None, max_length=3, description="Genders the user wants to meet"
    )
    sought_age_min: int | None = Field(
        None, ge=DATE_MIN_AGE, le=DATE_MAX_AGE, description="Minimum age sought"
    )
    sought_age_max: int | None = Field(
        None, ge=DATE_MIN_AGE, le=DATE_MAX_AGE, description="Maximum age sought"
    )
    sought_only_singles: bool | None = Field(None, description="Only match with singles")


class DatingProfileResponse(BaseModel):
    enabled: bool = Field(..., description="Dating mode enabled")
    birth_year: int | None = Field(None, description="Year of birth")
    gender: DatingGender | None = Field(None, description="Own gender")
    is_single: bool = Field(..., description="Currently single")
    sought_genders: list[DatingGender] = Field(default_factory=list, description="Genders sought")
    sought_age_min: int | None = Field(None, description="Minimum age sought")
    sought_age_max: int | None = Field(None, description="Maximum age sought")
    sought_only_singles: bool = Field(..., description="Only match with singles")


class DatingStatusResponse(BaseModel):
    """Profile plus unlock status for the #date tag."""

    profile: DatingProfileResponse
    unlocked: bool = Field(..., description="Whether #date events can be created and seen")
    age: int | None = Field(None, description="Age derived from the birth year")
    missing_requirements: list[str] = Field(
        default_factory=list, description="Requirement codes still missing"
    )

    @classmethod
    def build(cls, profile: DatingProfile, status: DatingProfileStatus) -> "DatingStatusResponse":
        return cls(
            profile=DatingProfileResponse(
                enabled=profile.enabled,
                birth_year=profile.birth_year,
                gender=profile.gender,
                is_single=profile.is_single,
                sought_genders=list(profile.sought_genders),
                sought_age_min=profile.sought_age_min,
                sought_age_max=profile.sought_age_max,
                sought_only_singles=profile.sought_only_singles,
            ),
            unlocked=status.unlocked,
            age=status.age,
            missing_requirements=[code.value for code in status.missing_requirements],
        )
