"""
Persistence for suggestions.

Suggestions are never deleted. Upserts only refresh score and reason, so a
decision the user already made survives every later matching run.
"""

from realite.db.helpers import DatabaseError, execute_transaction, fetch_all, fetch_one
from realite.features.suggestions.domain import DeclineReason, Suggestion, SuggestionStatus
from realite.features.suggestions.repository.preference_repository import PreferenceRepository
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

UPSERT_BLOCKLISTS_QUERY = """
    INSERT INTO user_settings (user_id, blocked_creator_ids, blocked_activity_tags)
    VALUES (%s, %s, %s)
    ON CONFLICT (user_id) DO UPDATE SET
        blocked_creator_ids = EXCLUDED.blocked_creator_ids,
        blocked_activity_tags = EXCLUDED.blocked_activity_tags
"""


class SuggestionRepositoryError(DatabaseError):
    """More specific exception for suggestion persistence failures."""


def _parse_reasons(value: str | None) -> list[DeclineReason]:
    known = {reason.value for reason in DeclineReason}
    return [DeclineReason(code) for code in (value or "").split(",") if code in known]


class SuggestionRepository:
    SUGGESTION_COLUMNS = """
        id, user_id, event_id, score, reason, status,
        decision_reasons, decision_note, calendar_event_id, created_at
    """

    @classmethod
    def _row_to_suggestion(cls, row: dict) -> Suggestion:
        return Suggestion(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            event_id=str(row["event_id"]),
            score=float(row["score"]),
            reason=row["reason"],
            status=SuggestionStatus(row["status"]),
            decision_reasons=_parse_reasons(row.get("decision_reasons")),
            decision_note=row.get("decision_note"),
            calendar_event_id=row.get("calendar_event_id"),
            created_at=row.get("created_at"),
        )

    @classmethod
    async def get_for_user(cls, suggestion_id: str, user_id: str) -> Suggestion | None:
        query = f"SELECT {cls.SUGGESTION_COLUMNS} FROM suggestions WHERE id = %s AND user_id = %s"
        row = await fetch_one(query, (suggestion_id, user_id))
        return cls._row_to_suggestion(row) if row else None

    @classmethod
    async def list_for_user(cls, user_id: str) -> list[Suggestion]:
        query = f"""
            SELECT {cls.SUGGESTION_COLUMNS}
            FROM suggestions
            WHERE user_id = %s
            ORDER BY score DESC, created_at DESC
        """
        rows = await fetch_all(query, (user_id,))
        return [cls._row_to_suggestion(row) for row in rows]

    @classmethod
    async def upsert(cls, user_id: str, event_id: str, score: float, reason: str) -> Suggestion:
        """Create as pending or refresh score/reason, keeping the stored status."""
        query = f"""
            INSERT INTO suggestions (user_id, event_id, score, reason, status, created_at, updated_at)
            VALUES (%s, %s, %s, %s, 'pending', NOW(), NOW())
            ON CONFLICT (user_id, event_id) DO UPDATE SET
                score = EXCLUDED.score,
                reason = EXCLUDED.reason,
                updated_at = NOW()
            RETURNING {cls.SUGGESTION_COLUMNS}
        """
        row = await fetch_one(query, (user_id, event_id, score, reason))
        if not row:
            raise SuggestionRepositoryError("Failed to upsert suggestion", operation="upsert")
        return cls._row_to_suggestion(row)

    @classmethod
    async def mark_inserted(cls, suggestion_id: str, calendar_event_id: str) -> Suggestion | None:
        """Store the external entry; only a pending suggestion changes status."""
        query = f"""
            UPDATE suggestions
            SET calendar_event_id = %s,
                status = CASE WHEN status = 'pending' THEN 'calendar_inserted' ELSE status END,
                updated_at = NOW()
            WHERE id = %s
            RETURNING {cls.SUGGESTION_COLUMNS}
        """
        row = await fetch_one(query, (calendar_event_id, suggestion_id))
        return cls._row_to_suggestion(row) if row else None

    @classmethod
    async def save_decision(
        cls,
        suggestion: Suggestion,
        deltas: dict[str, float],
        blocklists: tuple[list[str], list[str]] | None = None,
    ) -> None:
        """
        Persist the decided suggestion and its weight updates atomically.

        `blocklists` (creator ids, activity tags) replaces the user's stored
        lists in the same transaction.
        """
        update = (
            """
            UPDATE suggestions
            SET status = %s,
                decision_reasons = %s,
                decision_note = %s,
                updated_at = NOW()
            WHERE id = %s AND user_id = %s
            """,
            (
                suggestion.status.value,
                ",".join(reason.value for reason in suggestion.decision_reasons),
                suggestion.decision_note,
                suggestion.id,
                suggestion.user_id,
            ),
        )
        statements = [update, *PreferenceRepository.upsert_statements(suggestion.user_id, deltas)]
        if blocklists is not None:
            statements.append((UPSERT_BLOCKLISTS_QUERY, (suggestion.user_id, *blocklists)))
        await execute_transaction(statements)
        logger.info(
            "Suggestion decision saved",
            suggestion_id=suggestion.id,
            status=suggestion.status.value,
            weight_updates=len(deltas),
            blocklists_updated=blocklists is not None,
        )
