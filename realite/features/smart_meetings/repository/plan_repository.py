"""
Persistence for smart-meeting plans, invitations and member statistics.

Every state transition is committed in a single transaction together with
the invitation rows it opens or closes.
"""

from datetime import datetime

from realite.db.helpers import (
    DatabaseError,
    execute_query,
    execute_transaction,
    fetch_all,
    fetch_one,
    with_db_retry,
)
from realite.features.smart_meetings.domain import (
    CandidateSlot,
    Invitation,
    InvitationResponse,
    MemberOutcome,
    PlanState,
    SmartMeetingPlan,
)
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class PlanRepositoryError(DatabaseError):
    """More specific exception for smart-meeting persistence failures."""


UPSERT_MEMBER_STATS_QUERY = """
    INSERT INTO smart_meeting_member_stats (
        owner_user_id, group_id, participant_id,
        accept_count, decline_count, no_response_count, last_response, updated_at
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
    ON CONFLICT (owner_user_id, group_id, participant_id) DO UPDATE SET
        accept_count = smart_meeting_member_stats.accept_count + EXCLUDED.accept_count,
        decline_count = smart_meeting_member_stats.decline_count + EXCLUDED.decline_count,
        no_response_count = smart_meeting_member_stats.no_response_count + EXCLUDED.no_response_count,
        last_response = EXCLUDED.last_response,
        updated_at = NOW()
"""


class SmartMeetingRepository:
    PLAN_COLUMNS = """
        id, group_id, created_by, title, description, location, tags,
        duration_minutes, min_accepted_participants, response_window_hours,
        search_window_start, search_window_end, slot_interval_minutes, max_attempts,
        state, current_attempt, candidate_starts_at, candidate_ends_at,
        response_deadline_at, tried_slot_starts, finalized_starts_at, finalized_ends_at,
        status_reason, calendar_event_id, created_at, updated_at
    """

    @classmethod
    def _row_to_plan(cls, row: dict) -> SmartMeetingPlan:
        candidate = None
        if row.get("candidate_starts_at") and row.get("candidate_ends_at"):
            candidate = CandidateSlot(starts_at=row["candidate_starts_at"], ends_at=row["candidate_ends_at"])

        return SmartMeetingPlan(
            id=str(row["id"]),
            group_id=str(row["group_id"]),
            created_by=str(row["created_by"]),
            title=row["title"],
            description=row.get("description"),
            location=row.get("location"),
            tags=[tag for tag in (row.get("tags") or "").split(",") if tag],
            duration_minutes=row["duration_minutes"],
            min_accepted_participants=row["min_accepted_participants"],
            response_window_hours=row["response_window_hours"],
            search_window_start=row["search_window_start"],
            search_window_end=row["search_window_end"],
            slot_interval_minutes=row["slot_interval_minutes"],
            max_attempts=row["max_attempts"],
            state=PlanState(row["state"]),
            current_attempt=row["current_attempt"],
            candidate_slot=candidate,
            response_deadline_at=row.get("response_deadline_at"),
            tried_slot_starts=list(row.get("tried_slot_starts") or []),
            finalized_starts_at=row.get("finalized_starts_at"),
            finalized_ends_at=row.get("finalized_ends_at"),
            status_reason=row.get("status_reason"),
            calendar_event_id=row.get("calendar_event_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @staticmethod
    def _row_to_invitation(row: dict) -> Invitation:
        return Invitation(
            plan_id=str(row["plan_id"]),
            attempt_index=row["attempt_index"],
            participant_id=str(row["participant_id"]),
            response=InvitationResponse(row["response"]),
            responded_at=row.get("responded_at"),
        )

    @staticmethod
    def _save_plan_statement(plan: SmartMeetingPlan) -> tuple[str, tuple]:
        query = """
            UPDATE smart_meeting_plans
            SET state = %s,
                current_attempt = %s,
                candidate_starts_at = %s,
                candidate_ends_at = %s,
                response_deadline_at = %s,
                tried_slot_starts = %s,
                finalized_starts_at = %s,
                finalized_ends_at = %s,
                status_reason = %s,
                updated_at = NOW()
            WHERE id = %s
        """
        slot = plan.candidate_slot
        params = (
            plan.state.value,
            plan.current_attempt,
            slot.starts_at if slot else None,
            slot.ends_at if slot else None,
            plan.response_deadline_at,
            list(plan.tried_slot_starts),
            plan.finalized_starts_at,
            plan.finalized_ends_at,
            plan.status_reason,
            plan.id,
        )
        return query, params

    @staticmethod
    def _member_stats_statements(
        plan: SmartMeetingPlan, outcomes: dict[str, MemberOutcome]
    ) -> list[tuple[str, tuple]]:
        return [
            (
                UPSERT_MEMBER_STATS_QUERY,
                (
                    plan.created_by,
                    plan.group_id,
                    participant_id,
                    int(outcome is MemberOutcome.ACCEPTED),
                    int(outcome is MemberOutcome.DECLINED),
                    int(outcome is MemberOutcome.NO_RESPONSE),
                    outcome.value,
                ),
            )
            for participant_id, outcome in outcomes.items()
        ]

    @classmethod
    async def create_plan(cls, plan: SmartMeetingPlan) -> SmartMeetingPlan:
        query = f"""
            INSERT INTO smart_meeting_plans (
                id, group_id, created_by, title, description, location, tags,
                duration_minutes, min_accepted_participants, response_window_hours,
                search_window_start, search_window_end, slot_interval_minutes, max_attempts,
                state, current_attempt, tried_slot_starts, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, 0, '{{}}', NOW(), NOW())
            RETURNING {cls.PLAN_COLUMNS}
        """
        params = (
            plan.id,
            plan.group_id,
            plan.created_by,
            plan.title,
            plan.description,
            plan.location,
            ",".join(plan.tags),
            plan.duration_minutes,
            plan.min_accepted_participants,
            plan.response_window_hours,
            plan.search_window_start,
            plan.search_window_end,
            plan.slot_interval_minutes,
            plan.max_attempts,
            plan.state.value,
        )
        row = await fetch_one(query, params)
        if not row:
            raise PlanRepositoryError("Failed to create smart meeting plan", operation="create_plan")

        logger.info("Smart meeting plan created", plan_id=plan.id, group_id=plan.group_id)
        return cls._row_to_plan(row)

    @classmethod
    async def get_plan(cls, plan_id: str) -> SmartMeetingPlan | None:
        row = await fetch_one(f"SELECT {cls.PLAN_COLUMNS} FROM smart_meeting_plans WHERE id = %s", (plan_id,))
        return cls._row_to_plan(row) if row else None

    @classmethod
    async def list_plans_for_user(cls, user_id: str) -> list[SmartMeetingPlan]:
        """Plans the user created or was invited to, newest first."""
        query = f"""
            SELECT {cls.PLAN_COLUMNS}
            FROM smart_meeting_plans p
            WHERE p.created_by = %s
               OR EXISTS (
                   SELECT 1 FROM smart_meeting_invitations i
                   WHERE i.plan_id = p.id AND i.participant_id = %s
               )
            ORDER BY p.created_at DESC
        """
        rows = await fetch_all(query, (user_id, user_id))
        return [cls._row_to_plan(row) for row in rows]

    @staticmethod
    @with_db_retry()
    async def list_due_plan_ids(now: datetime) -> list[str]:
        """Plans still searching or whose response deadline has passed."""
        rows = await fetch_all(
            """
            SELECT id
            FROM smart_meeting_plans
            WHERE state = 'searching'
               OR (state = 'awaiting_responses' AND response_deadline_at <= %s)
            ORDER BY response_deadline_at NULLS FIRST
            """,
            (now,),
        )
        return [str(row["id"]) for row in rows]

    @classmethod
    async def list_invitations(cls, plan_id: str, attempt_index: int) -> list[Invitation]:
        rows = await fetch_all(
            """
            SELECT plan_id, attempt_index, participant_id, response, responded_at
            FROM smart_meeting_invitations
            WHERE plan_id = %s AND attempt_index = %s
            ORDER BY participant_id
            """,
            (plan_id, attempt_index),
        )
        return [cls._row_to_invitation(row) for row in rows]

    @classmethod
    async def get_invitation(
        cls, plan_id: str, attempt_index: int, participant_id: str
    ) -> Invitation | None:
        row = await fetch_one(
            """
            SELECT plan_id, attempt_index, participant_id, response, responded_at
            FROM smart_meeting_invitations
            WHERE plan_id = %s AND attempt_index = %s AND participant_id = %s
            """,
            (plan_id, attempt_index, participant_id),
        )
        return cls._row_to_invitation(row) if row else None

    @staticmethod
    async def record_response(
        plan_id: str,
        attempt_index: int,
        participant_id: str,
        response: InvitationResponse,
        responded_at: datetime,
    ) -> None:
        await execute_query(
            """
            UPDATE smart_meeting_invitations
            SET response = %s, responded_at = %s
            WHERE plan_id = %s AND attempt_index = %s AND participant_id = %s
            """,
            (response.value, responded_at, plan_id, attempt_index, participant_id),
        )

    @classmethod
    async def open_attempt(cls, plan: SmartMeetingPlan, participant_ids: list[str]) -> None:
        """Persist the opened attempt and its pending invitations."""
        statements = [cls._save_plan_statement(plan)]
        statements.extend(
            (
                """
                INSERT INTO smart_meeting_invitations (plan_id, attempt_index, participant_id, response)
                VALUES (%s, %s, %s, 'pending')
                ON CONFLICT (plan_id, attempt_index, participant_id) DO NOTHING
                """,
                (plan.id, plan.current_attempt, participant_id),
            )
            for participant_id in participant_ids
        )
        await execute_transaction(statements)
        logger.info(
            "Smart meeting attempt opened",
            plan_id=plan.id,
            attempt=plan.current_attempt,
            invited=len(participant_ids),
        )

    @classmethod
    async def close_attempt(
        cls, plan: SmartMeetingPlan, attempt_index: int, outcomes: dict[str, MemberOutcome]
    ) -> None:
        """Persist an expired attempt: pending invitations become declined."""
        statements = [
            cls._save_plan_statement(plan),
            (
                """
                UPDATE smart_meeting_invitations
                SET response = 'declined'
                WHERE plan_id = %s AND attempt_index = %s AND response = 'pending'
                """,
                (plan.id, attempt_index),
            ),
            *cls._member_stats_statements(plan, outcomes),
        ]
        await execute_transaction(statements)

    @classmethod
    async def finalize_attempt(cls, plan: SmartMeetingPlan, outcomes: dict[str, MemberOutcome]) -> None:
        await execute_transaction(
            [cls._save_plan_statement(plan), *cls._member_stats_statements(plan, outcomes)]
        )

    @classmethod
    async def save_plan(cls, plan: SmartMeetingPlan) -> None:
        query, params = cls._save_plan_statement(plan)
        await execute_query(query, params)

    @staticmethod
    async def set_calendar_event_id(plan_id: str, calendar_event_id: str) -> None:
        await execute_query(
            "UPDATE smart_meeting_plans SET calendar_event_id = %s, updated_at = NOW() WHERE id = %s",
            (calendar_event_id, plan_id),
        )
