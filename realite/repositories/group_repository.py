"""
Read access to groups, memberships and events.

Group and event CRUD belong to the web app; the engine only reads them.
"""

from collections import defaultdict

from realite.db.helpers import fetch_all, fetch_one
from realite.features.suggestions.domain import Event, EventVisibility
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class GroupRepository:
    EVENT_COLUMNS = """
        e.id, e.title, e.description, e.location, e.starts_at, e.ends_at,
        e.visibility, e.group_id, e.created_by
    """

    @classmethod
    def _row_to_event(cls, row: dict, tags: list[str]) -> Event:
        return Event(
            id=str(row["id"]),
            title=row["title"],
            starts_at=row["starts_at"],
            ends_at=row["ends_at"],
            created_by=str(row["created_by"]),
            visibility=EventVisibility(row["visibility"]),
            group_id=str(row["group_id"]) if row.get("group_id") else None,
            description=row.get("description"),
            location=row.get("location"),
            tags=tags,
        )

    @classmethod
    async def _load_tags(cls, event_ids: list[str]) -> dict[str, list[str]]:
        if not event_ids:
            return {}
        rows = await fetch_all(
            "SELECT event_id, tag FROM event_tags WHERE event_id = ANY(%s) ORDER BY tag",
            (event_ids,),
        )
        tags: dict[str, list[str]] = defaultdict(list)
        for row in rows:
            tags[str(row["event_id"])].append(row["tag"].strip().lower())
        return tags

    @staticmethod
    async def list_group_members(group_id: str) -> list[str]:
        rows = await fetch_all(
            "SELECT user_id FROM group_members WHERE group_id = %s ORDER BY joined_at",
            (group_id,),
        )
        return [str(row["user_id"]) for row in rows]

    @staticmethod
    async def is_group_member(group_id: str, user_id: str) -> bool:
        row = await fetch_one(
            "SELECT 1 AS ok FROM group_members WHERE group_id = %s AND user_id = %s",
            (group_id, user_id),
        )
        return row is not None

    @staticmethod
    async def get_user_emails(user_ids: list[str]) -> dict[str, str]:
        if not user_ids:
            return {}
        rows = await fetch_all("SELECT id, email FROM users WHERE id = ANY(%s)", (user_ids,))
        return {str(row["id"]): row["email"] for row in rows if row.get("email")}

    @staticmethod
    async def get_user_labels(user_ids: list[str]) -> dict[str, str]:
        """Display name (or email) per user id."""
        if not user_ids:
            return {}
        rows = await fetch_all("SELECT id, name, email FROM users WHERE id = ANY(%s)", (user_ids,))
        return {str(row["id"]): (row.get("name") or "").strip() or row["email"] for row in rows}

    @classmethod
    async def get_event(cls, event_id: str) -> Event | None:
        row = await fetch_one(f"SELECT {cls.EVENT_COLUMNS} FROM events e WHERE e.id = %s", (event_id,))
        if not row:
            return None
        tags = await cls._load_tags([event_id])
        return cls._row_to_event(row, tags.get(event_id, []))

    @classmethod
    async def list_visible_events_for_user(cls, user_id: str) -> list[Event]:
        """
        Public and dating-pool events, events of the user's groups and the
        user's own events that have not ended yet. Dating-pool events are
        returned unfiltered; mutual-match filtering happens in the engine.
        """
        query = f"""
            SELECT {cls.EVENT_COLUMNS}
            FROM events e
            WHERE e.ends_at > NOW()
              AND (
                e.visibility IN ('public', 'smart_date')
                OR e.created_by = %s
                OR e.group_id IN (SELECT group_id FROM group_members WHERE user_id = %s)
              )
            ORDER BY e.starts_at
        """
        rows = await fetch_all(query, (user_id, user_id))
        tags = await cls._load_tags([str(row["id"]) for row in rows])
        events = [cls._row_to_event(row, tags.get(str(row["id"]), [])) for row in rows]
        logger.debug("Visible events loaded", user_id=user_id, event_count=len(events))
        return events
