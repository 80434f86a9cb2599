"""
Persistence for dating profiles.

Reads never insert: users without a row get the empty (locked) profile.
"""

from realite.db.helpers import fetch_all, fetch_one
from realite.features.dating.domain import DatingGender, DatingProfile
from realite.features.dating.matching import parse_genders, serialize_genders
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatingProfileRepository:
    PROFILE_COLUMNS = """
        user_id, enabled, birth_year, gender, is_single,
        sought_genders, sought_age_min, sought_age_max, sought_only_singles
    """

    @classmethod
    def _row_to_profile(cls, row: dict) -> DatingProfile:
        return DatingProfile(
            user_id=str(row["user_id"]),
            enabled=bool(row["enabled"]),
            birth_year=row.get("birth_year"),
            gender=DatingGender(row["gender"]) if row.get("gender") else None,
            is_single=bool(row["is_single"]),
            sought_genders=parse_genders(row.get("sought_genders")),
            sought_age_min=row.get("sought_age_min"),
            sought_age_max=row.get("sought_age_max"),
            sought_only_singles=bool(row["sought_only_singles"]),
        )

    @classmethod
    async def get_profile(cls, user_id: str) -> DatingProfile:
        query = f"SELECT {cls.PROFILE_COLUMNS} FROM dating_profiles WHERE user_id = %s"
        row = await fetch_one(query, (user_id,))
        if not row:
            return DatingProfile.empty(user_id)
        return cls._row_to_profile(row)

    @classmethod
    async def get_profiles(cls, user_ids: list[str]) -> dict[str, DatingProfile]:
        """Profiles keyed by user id; every requested id is present."""
        ids = list(dict.fromkeys(uid.strip() for uid in user_ids if uid and uid.strip()))
        if not ids:
            return {}

        query = f"SELECT {cls.PROFILE_COLUMNS} FROM dating_profiles WHERE user_id = ANY(%s)"
        rows = await fetch_all(query, (ids,))
        profiles = {str(row["user_id"]): cls._row_to_profile(row) for row in rows}
        for user_id in ids:
            profiles.setdefault(user_id, DatingProfile.empty(user_id))
        return profiles

    @classmethod
    async def save_profile(cls, profile: DatingProfile) -> DatingProfile:
        query = f"""
            INSERT INTO dating_profiles (
                user_id, enabled, birth_year, gender, is_single,
                sought_genders, sought_age_min, sought_age_max, sought_only_singles,
                updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (user_id) DO UPDATE SET
                enabled = EXCLUDED.enabled,
                birth_year = EXCLUDED.birth_year,
                gender = EXCLUDED.gender,
                is_single = EXCLUDED.is_single,
                sought_genders = EXCLUDED.sought_genders,
                sought_age_min = EXCLUDED.sought_age_min,
                sought_age_max = EXCLUDED.sought_age_max,
                sought_only_singles = EXCLUDED.sought_only_singles,
                updated_at = NOW()
            RETURNING {cls.PROFILE_COLUMNS}
        """
        params = (
            profile.user_id,
            profile.enabled,
            profile.birth_year,
            profile.gender.value if profile.gender else None,
            profile.is_single,
            serialize_genders(profile.sought_genders),
            profile.sought_age_min,
            profile.sought_age_max,
            profile.sought_only_singles,
        )
        row = await fetch_one(query, params)
        logger.info("Dating profile saved", user_id=profile.user_id, enabled=profile.enabled)
        return cls._row_to_profile(row) if row else profile
