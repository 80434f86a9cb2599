"""
Persistence for learned tag preference weights.
"""

from realite.db.helpers import fetch_all
from realite.features.suggestions.domain import PreferenceWeight

UPSERT_WEIGHT_QUERY = """
    INSERT INTO tag_preferences (user_id, tag, weight, votes, updated_at)
    VALUES (%s, %s, %s, 1, NOW())
    ON CONFLICT (user_id, tag) DO UPDATE SET
        weight = tag_preferences.weight + EXCLUDED.weight,
        votes = tag_preferences.votes + 1,
        updated_at = NOW()
"""


class PreferenceRepository:
    @staticmethod
    async def get_weights(user_id: str) -> dict[str, PreferenceWeight]:
        rows = await fetch_all(
            "SELECT tag, weight, votes FROM tag_preferences WHERE user_id = %s", (user_id,)
        )
        return {
            row["tag"]: PreferenceWeight(
                user_id=user_id, tag=row["tag"], weight=float(row["weight"]), votes=row["votes"]
            )
            for row in rows
        }

    @staticmethod
    def upsert_statements(user_id: str, deltas: dict[str, float]) -> list[tuple[str, tuple]]:
        """(query, params) pairs adding each delta and one vote, for a transaction."""
        return [(UPSERT_WEIGHT_QUERY, (user_id, tag, delta)) for tag, delta in deltas.items()]
