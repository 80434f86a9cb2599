"""
Per-user suggestion settings. Missing rows read as the defaults.
"""

from realite.db.helpers import fetch_one
from realite.features.suggestions.domain import SuggestionSettings


class SuggestionSettingsRepository:
    @staticmethod
    async def get_settings(user_id: str) -> SuggestionSettings:
        row = await fetch_one(
            """
            SELECT auto_insert_suggestions, suggestion_calendar_id,
                   blocked_creator_ids, blocked_activity_tags
            FROM user_settings
            WHERE user_id = %s
            """,
            (user_id,),
        )
        if not row:
            return SuggestionSettings(user_id=user_id)
        return SuggestionSettings(
            user_id=user_id,
            auto_insert_suggestions=bool(row["auto_insert_suggestions"]),
            suggestion_calendar_id=(row.get("suggestion_calendar_id") or "").strip() or "primary",
            blocked_creator_ids=list(row.get("blocked_creator_ids") or []),
            blocked_activity_tags=list(row.get("blocked_activity_tags") or []),
        )
