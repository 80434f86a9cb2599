from datetime import datetime

from realite.db.helpers import DatabaseError, execute_transaction, fetch_one
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SOURCE_PROVIDER_GOOGLE = "google"


class ImportedEventRepository:
    """Events mirrored from a user's own calendar, keyed by their source id."""

    @staticmethod
    async def upsert_imported_event(
        user_id: str,
        source_event_id: str,
        title: str,
        description: str | None,
        location: str | None,
        starts_at: datetime,
        ends_at: datetime,
        tags: list[str],
    ) -> str:
        row = await fetch_one(
            """
            INSERT INTO events (
                title, description, location, starts_at, ends_at, visibility,
                created_by, source_provider, source_event_id, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, 'public', %s, %s, %s, NOW(), NOW())
            ON CONFLICT (created_by, source_provider, source_event_id) DO UPDATE SET
                title = EXCLUDED.title,
                description = EXCLUDED.description,
                location = EXCLUDED.location,
                starts_at = EXCLUDED.starts_at,
                ends_at = EXCLUDED.ends_at,
                updated_at = NOW()
            RETURNING id
            """,
            (
                title,
                description,
                location,
                starts_at,
                ends_at,
                user_id,
                SOURCE_PROVIDER_GOOGLE,
                source_event_id,
            ),
        )
        if not row:
            raise DatabaseError("Failed to upsert imported event", operation="upsert_imported_event")

        event_id = str(row["id"])
        statements = [("DELETE FROM event_tags WHERE event_id = %s", (event_id,))]
        statements.extend(
            ("INSERT INTO event_tags (event_id, tag) VALUES (%s, %s)", (event_id, tag)) for tag in tags
        )
        await execute_transaction(statements)
        return event_id
