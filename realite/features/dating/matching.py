"""
Mutual-match filter for the dating pool.

Pure functions only. `is_mutual_match` is symmetric: both profiles must be
unlocked and each side must accept the other's gender, age and (optionally)
relationship status. Age is the whole-year difference `now.year - birth_year`.
"""

import re
from collections.abc import Iterable
from datetime import datetime

from realite.features.dating.domain import (
    DatingGender,
    DatingProfile,
    DatingProfileStatus,
    MissingRequirement,
)

DATE_TAG = "#date"
DATE_TAG_ALIAS = "#dating"
DATE_MIN_AGE = 18
DATE_MAX_AGE = 99

_DATE_TAG_IN_TITLE = re.compile(r"(^|\s)#dat(e|ing)\b", re.IGNORECASE)


def canonical_date_tag(tag: str) -> str:
    normalized = tag.strip().lower()
    return DATE_TAG if normalized == DATE_TAG_ALIAS else normalized


def normalize_date_tags(tags: Iterable[str]) -> list[str]:
    """Lowercase, map `#dating` to `#date` and drop duplicates, keeping order."""
    return list(dict.fromkeys(tag for tag in map(canonical_date_tag, tags) if tag))


def is_date_tag(tag: str) -> bool:
    return canonical_date_tag(tag) == DATE_TAG


def title_contains_date_tag(title: str) -> bool:
    return bool(_DATE_TAG_IN_TITLE.search(title))


def normalize_genders(values: Iterable[str] | None) -> list[DatingGender]:
    allowed = {gender.value for gender in DatingGender}
    normalized = (value.strip().lower() for value in values or [])
    return [DatingGender(value) for value in dict.fromkeys(v for v in normalized if v in allowed)]


def parse_genders(value: str | None) -> list[DatingGender]:
    """Parse the comma-separated storage format."""
    if not value:
        return []
    return normalize_genders(value.split(","))


def serialize_genders(genders: Iterable[str]) -> str:
    return ",".join(gender.value for gender in normalize_genders(genders))


def age_from_birth_year(birth_year: int, now: datetime) -> int:
    return now.year - birth_year


def _age_range_valid(profile: DatingProfile) -> bool:
    low, high = profile.sought_age_min, profile.sought_age_max
    if low is None or high is None:
        return False
    return DATE_MIN_AGE <= low <= high <= DATE_MAX_AGE


def get_profile_status(profile: DatingProfile, now: datetime) -> DatingProfileStatus:
    missing: list[MissingRequirement] = []

    if not profile.enabled:
        missing.append(MissingRequirement.ENABLE_MODE)

    age: int | None = None
    if not profile.birth_year:
        missing.append(MissingRequirement.BIRTH_YEAR)
    else:
        age = age_from_birth_year(profile.birth_year, now)
        if age < DATE_MIN_AGE:
            missing.append(MissingRequirement.ADULT)

    if not profile.gender:
        missing.append(MissingRequirement.GENDER)
    if not profile.is_single:
        missing.append(MissingRequirement.MUST_BE_SINGLE)
    if not profile.sought_genders:
        missing.append(MissingRequirement.SOUGHT_GENDERS)
    if not _age_range_valid(profile):
        missing.append(MissingRequirement.SOUGHT_AGE_RANGE)

    return DatingProfileStatus(unlocked=not missing, age=age, missing_requirements=missing)


def _accepts(seeker: DatingProfile, other: DatingProfile, other_age: int) -> bool:
    if other.gender not in seeker.sought_genders:
        return False
    if not (seeker.sought_age_min <= other_age <= seeker.sought_age_max):
        return False
    if seeker.sought_only_singles and not other.is_single:
        return False
    return True


def is_mutual_match(viewer: DatingProfile, candidate: DatingProfile, now: datetime) -> bool:
    viewer_status = get_profile_status(viewer, now)
    candidate_status = get_profile_status(candidate, now)
    if not viewer_status.unlocked or not candidate_status.unlocked:
        return False

    return _accepts(viewer, candidate, candidate_status.age) and _accepts(
        candidate, viewer, viewer_status.age
    )
