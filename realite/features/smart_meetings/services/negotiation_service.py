"""
Smart-meeting negotiation service.

Drives plans through the state machine: proposes one candidate slot per
attempt, collects responses, finalizes on quorum and falls back to the next
slot when an attempt expires. Each transition is committed before its side
effects (invitations, calendar entry) run; those are reported as attempted
effects and never roll the plan back.

`advance` is idempotent and serialized per plan, so redundant ticks from
several workers are safe. Conflicting calls (terminal plans, closed attempts)
are logged and returned as no-op results.
"""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from realite.config import Settings, settings
from realite.exceptions import CollaboratorError, NotFoundError, StateConflictError, ValidationError
from realite.features.availability.resolver import AvailabilityResolver, Interval
from realite.features.smart_meetings.domain import (
    AdvanceResult,
    CandidateSlot,
    Invitation,
    InvitationResponse,
    PlanDraft,
    PlanState,
    SmartMeetingPlan,
)
from realite.features.smart_meetings.domain.state_machine import (
    NO_INVITEES,
    accepts_response,
    attempts_exhausted,
    close_expired_attempt,
    deadline_passed,
    everyone_declined,
    fail,
    finalize,
    iter_candidate_slots,
    member_outcomes,
    open_attempt,
    quorum_reached,
    tally,
)
from realite.features.smart_meetings.domain.validation import build_plan
from realite.features.smart_meetings.repository.plan_repository import SmartMeetingRepository
from realite.features.smart_meetings.services.notifications import (
    LogNotificationChannel,
    NotificationChannel,
)
from realite.features.smart_meetings.services.plan_locks import PlanLockRegistry
from realite.infrastructure.observability.logging import get_logger
from realite.models.domain.effects import AttemptedEffect, EffectKind
from realite.repositories.group_repository import GroupRepository
from realite.services.calendar.google_client import CALENDAR_PRIMARY
from realite.services.calendar.metadata import (
    CalendarLinkType,
    build_app_url,
    build_calendar_metadata,
)
from realite.services.calendar.provider import CalendarProvider, GoogleCalendarProvider

logger = get_logger(__name__)


class SmartMeetingService:
    def __init__(
        self,
        plans=None,
        groups=None,
        calendar: CalendarProvider | None = None,
        availability: AvailabilityResolver | None = None,
        notifications: NotificationChannel | None = None,
        locks: PlanLockRegistry | None = None,
        config: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.plans = plans or SmartMeetingRepository
        self.groups = groups or GroupRepository
        self.calendar = calendar or GoogleCalendarProvider()
        self.availability = availability or AvailabilityResolver(self.calendar)
        self.notifications = notifications or LogNotificationChannel()
        self.locks = locks or PlanLockRegistry()
        self.config = config or settings
        self._clock = clock or (lambda: datetime.now(UTC))

    async def create_plan(self, draft: PlanDraft, now: datetime | None = None) -> AdvanceResult:
        """
        Validate, persist and open the first attempt.

        Raises:
            ValidationError: If a plan parameter is out of bounds
            NotFoundError: If the organizer is not a member of the group
            ValidationError: If the group has nobody besides the organizer to invite
        """
        now = now or self._clock()
        plan = build_plan(str(uuid.uuid4()), draft, self.config)

        if not await self.groups.is_group_member(plan.group_id, plan.created_by):
            raise NotFoundError("Group not found", resource="group", resource_id=plan.group_id)
        if not await self._invitees(plan):
            raise ValidationError("Group has no members to invite", field="group_id")

        await self.plans.create_plan(plan)
        return await self.advance(plan.id, now)

    async def list_plans(self, user_id: str) -> list[SmartMeetingPlan]:
        return await self.plans.list_plans_for_user(user_id)

    async def advance(self, plan_id: str, now: datetime | None = None) -> AdvanceResult:
        """
        Move the plan forward as far as the observed state allows.

        Raises:
            NotFoundError: If the plan does not exist
        """
        now = now or self._clock()
        plan = None
        try:
            async with self.locks.hold(plan_id):
                plan = await self._load(plan_id)
                if plan.is_terminal:
                    raise StateConflictError(
                        f"Plan {plan_id} is already {plan.state.value}", current_state=plan.state.value
                    )
                result = AdvanceResult(plan=plan)
                await self._advance_locked(plan, now, result)
                return result
        except StateConflictError as e:
            return await self._conflict_result(plan, plan_id, e)

    async def record_response(
        self,
        plan_id: str,
        attempt_index: int,
        participant_id: str,
        accepted: bool,
        now: datetime | None = None,
    ) -> AdvanceResult:
        """
        Store a participant's answer for an attempt, then advance the plan.

        Answers to the current attempt are recorded until its deadline, also
        once quorum was reached; they never reopen a finalized plan.

        Raises:
            NotFoundError: If the plan or the participant's invitation does not exist
        """
        now = now or self._clock()
        plan = None
        try:
            async with self.locks.hold(plan_id):
                plan = await self._load(plan_id)
                if not accepts_response(plan, attempt_index, now):
                    raise StateConflictError(
                        f"Attempt {attempt_index} of plan {plan_id} is closed", current_state=plan.state.value
                    )

                invitation = await self.plans.get_invitation(plan_id, attempt_index, participant_id)
                if invitation is None:
                    raise NotFoundError(
                        "Invitation not found",
                        resource="invitation",
                        resource_id=f"{plan_id}:{attempt_index}:{participant_id}",
                    )

                response = InvitationResponse.ACCEPTED if accepted else InvitationResponse.DECLINED
                await self.plans.record_response(plan_id, attempt_index, participant_id, response, now)
                logger.info(
                    "Smart meeting response recorded",
                    plan_id=plan_id,
                    attempt=attempt_index,
                    participant_id=participant_id,
                    response=response.value,
                )

                result = AdvanceResult(plan=plan, response_recorded=True)
                if plan.state is PlanState.AWAITING_RESPONSES:
                    await self._advance_locked(plan, now, result)
                return result
        except StateConflictError as e:
            return await self._conflict_result(plan, plan_id, e)

    async def _load(self, plan_id: str) -> SmartMeetingPlan:
        plan = await self.plans.get_plan(plan_id)
        if not plan:
            raise NotFoundError("Smart meeting not found", resource="smart_meeting", resource_id=plan_id)
        return plan

    async def _conflict_result(
        self, plan: SmartMeetingPlan | None, plan_id: str, error: StateConflictError
    ) -> AdvanceResult:
        logger.info(
            "Smart meeting transition skipped",
            plan_id=plan_id,
            current_state=error.current_state,
            reason=error.message,
        )
        if plan is None:
            plan = await self._load(plan_id)
        return AdvanceResult(plan=plan, conflict=error.message)

    async def _advance_locked(self, plan: SmartMeetingPlan, now: datetime, result: AdvanceResult) -> None:
        if plan.state is PlanState.AWAITING_RESPONSES:
            invitations = await self.plans.list_invitations(plan.id, plan.current_attempt)
            counts = tally(invitations)

            if quorum_reached(plan, counts):
                finalize(plan)
                await self.plans.finalize_attempt(plan, member_outcomes(invitations))
                result.changed = True
                logger.info(
                    "Smart meeting finalized",
                    plan_id=plan.id,
                    attempt=plan.current_attempt,
                    accepted=counts.accepted,
                )
                await self._create_calendar_entry(plan, invitations, result)
                return

            if not deadline_passed(plan, now) and not everyone_declined(counts):
                return

            attempt_index = plan.current_attempt
            close_expired_attempt(plan, counts)
            await self.plans.close_attempt(plan, attempt_index, member_outcomes(invitations))
            result.changed = True
            logger.info(
                "Smart meeting attempt closed",
                plan_id=plan.id,
                attempt=attempt_index,
                accepted=counts.accepted,
                declined=counts.declined,
                no_response=counts.pending,
            )

        if plan.state is PlanState.SEARCHING:
            await self._open_next_attempt(plan, now, result)

    async def _invitees(self, plan: SmartMeetingPlan) -> list[str]:
        members = await self.groups.list_group_members(plan.group_id)
        return [member for member in members if member != plan.created_by]

    async def _open_next_attempt(self, plan: SmartMeetingPlan, now: datetime, result: AdvanceResult) -> None:
        participants = await self._invitees(plan)
        slot = None
        if participants and not attempts_exhausted(plan):
            slot = await self._pick_slot(plan, now, result)

        if slot is None:
            if participants:
                fail(plan)
            else:
                fail(plan, NO_INVITEES)
            await self.plans.save_plan(plan)
            result.changed = True
            logger.info(
                "Smart meeting failed", plan_id=plan.id, attempts=plan.current_attempt, reason=plan.status_reason
            )
            return

        open_attempt(plan, slot, now)
        await self.plans.open_attempt(plan, participants)
        result.changed = True

        for participant_id in participants:
            result.effects.append(await self._send_invitation(plan, participant_id, slot))
        result.warnings.extend(
            warning for warning in (effect.as_warning() for effect in result.effects) if warning
        )

    async def _pick_slot(
        self, plan: SmartMeetingPlan, now: datetime, result: AdvanceResult
    ) -> CandidateSlot | None:
        """First untried slot the organizer is free for, one calendar fetch per call."""
        candidates = list(
            iter_candidate_slots(plan, not_before=now, limit=self.config.SMART_MEETING_MAX_CANDIDATE_SLOTS)
        )
        if not candidates:
            return None

        availability = await self.availability.compute_availability(
            plan.created_by,
            [Interval(id=slot.starts_at.isoformat(), start=slot.starts_at, end=slot.ends_at) for slot in candidates],
        )
        if availability.warning:
            result.warnings.append(availability.warning)

        for slot in candidates:
            if availability.is_available(slot.starts_at.isoformat()):
                return slot
        return None

    async def _send_invitation(
        self, plan: SmartMeetingPlan, participant_id: str, slot: CandidateSlot
    ) -> AttemptedEffect:
        try:
            await self.notifications.send_invitation(plan.id, plan.current_attempt, participant_id, slot)
        except CollaboratorError as e:
            logger.warning(
                "Invitation delivery failed", plan_id=plan.id, participant_id=participant_id, error=e.message
            )
            return AttemptedEffect(EffectKind.INVITATION, participant_id, False, e.message)
        except Exception as e:
            logger.error(
                "Unexpected invitation delivery error", plan_id=plan.id, participant_id=participant_id, error=str(e)
            )
            return AttemptedEffect(EffectKind.INVITATION, participant_id, False, str(e))
        return AttemptedEffect(EffectKind.INVITATION, participant_id, True)

    async def _create_calendar_entry(
        self, plan: SmartMeetingPlan, invitations: list[Invitation], result: AdvanceResult
    ) -> None:
        accepted_ids = [
            invitation.participant_id
            for invitation in invitations
            if invitation.response is InvitationResponse.ACCEPTED
        ]
        emails = await self.groups.get_user_emails(accepted_ids)
        url = build_app_url(self.config.PUBLIC_APP_URL, CalendarLinkType.EVENT, plan.id)

        try:
            external_id = await self.calendar.insert_calendar_event(
                plan.created_by,
                CALENDAR_PRIMARY,
                plan.title,
                build_calendar_metadata(plan.description, url),
                plan.location,
                plan.finalized_starts_at,
                plan.finalized_ends_at,
                attendees=[emails[user_id] for user_id in accepted_ids if user_id in emails],
            )
        except CollaboratorError as e:
            logger.warning("Calendar entry for smart meeting failed", plan_id=plan.id, error=e.message)
            effect = AttemptedEffect(EffectKind.CALENDAR_INSERT, plan.id, False, e.message)
        except Exception as e:
            logger.error("Unexpected calendar error for smart meeting", plan_id=plan.id, error=str(e))
            effect = AttemptedEffect(EffectKind.CALENDAR_INSERT, plan.id, False, str(e))
        else:
            if external_id:
                await self.plans.set_calendar_event_id(plan.id, external_id)
                plan.calendar_event_id = external_id
                effect = AttemptedEffect(EffectKind.CALENDAR_INSERT, plan.id, True, external_id=external_id)
            else:
                effect = AttemptedEffect(EffectKind.CALENDAR_INSERT, plan.id, False, "calendar not connected")

        result.effects.append(effect)
        if effect.as_warning():
            result.warnings.append(effect.as_warning())


# Singleton instance for application use
smart_meeting_service = SmartMeetingService()
