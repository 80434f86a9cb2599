"""
Domain models for the dating mode.

A profile is owned by its user and never created implicitly; users without a
stored row read as `DatingProfile.empty(user_id)`, which is locked.
"""

from dataclasses import dataclass, field
from enum import StrEnum


class DatingGender(StrEnum):
    WOMAN = "woman"
    MAN = "man"
    NON_BINARY = "non_binary"


class MissingRequirement(StrEnum):
    ENABLE_MODE = "enable_mode"
    BIRTH_YEAR = "birth_year"
    ADULT = "adult"
    GENDER = "gender"
    MUST_BE_SINGLE = "must_be_single"
    SOUGHT_GENDERS = "sought_genders"
    SOUGHT_AGE_RANGE = "sought_age_range"


@dataclass(slots=True)
class DatingProfile:
    user_id: str
    enabled: bool = False
    birth_year: int | None = None
    gender: DatingGender | None = None
    is_single: bool = False
    sought_genders: list[DatingGender] = field(default_factory=list)
    sought_age_min: int | None = None
    sought_age_max: int | None = None
    sought_only_singles: bool = False

    @classmethod
    def empty(cls, user_id: str) -> "DatingProfile":
        return cls(user_id=user_id)


@dataclass(slots=True)
class DatingProfileStatus:
    unlocked: bool
    age: int | None
    missing_requirements: list[MissingRequirement]
