"""
Smart-meeting negotiation state machine.

    searching ──open attempt──▶ awaiting_responses ──quorum──▶ finalized
        │  ▲                          │
        │  └────deadline passed───────┘
        └──no slot left / attempts used──▶ failed

All functions here are pure: they mutate the plan object they are given and
never touch storage or collaborators. `transition` is the only way to change
`plan.state`.
"""

from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta

from realite.exceptions import StateConflictError
from realite.features.smart_meetings.domain.models import (
    AttemptTally,
    CandidateSlot,
    Invitation,
    InvitationResponse,
    MemberOutcome,
    PlanState,
    SmartMeetingPlan,
)

NO_SLOT_FOUND = "no slot found"
QUORUM_REACHED = "quorum reached"
NO_INVITEES = "no members left to invite"

PLAN_TRANSITIONS: dict[PlanState, frozenset[PlanState]] = {
    PlanState.SEARCHING: frozenset({PlanState.AWAITING_RESPONSES, PlanState.FAILED}),
    PlanState.AWAITING_RESPONSES: frozenset({PlanState.SEARCHING, PlanState.FINALIZED}),
    PlanState.FINALIZED: frozenset(),
    PlanState.FAILED: frozenset(),
}


def transition(plan: SmartMeetingPlan, target: PlanState) -> SmartMeetingPlan:
    """
    Move the plan to `target`.

    Raises:
        StateConflictError: If the transition table does not allow it
    """
    if target not in PLAN_TRANSITIONS[plan.state]:
        raise StateConflictError(
            f"Plan {plan.id} cannot move from {plan.state.value} to {target.value}",
            current_state=plan.state.value,
        )
    plan.state = target
    return plan


def iter_candidate_slots(
    plan: SmartMeetingPlan, not_before: datetime, limit: int
) -> Iterator[CandidateSlot]:
    """
    Untried slots in chronological order, stepping by the slot interval from
    the start of the search window. Slots must end inside the window and may
    not start before `not_before`.
    """
    duration = timedelta(minutes=plan.duration_minutes)
    step = timedelta(minutes=plan.slot_interval_minutes)
    tried = set(plan.tried_slot_starts)

    cursor = plan.search_window_start
    produced = 0
    while cursor + duration <= plan.search_window_end and produced < limit:
        if cursor >= not_before and cursor not in tried:
            produced += 1
            yield CandidateSlot(starts_at=cursor, ends_at=cursor + duration)
        cursor += step


def attempts_exhausted(plan: SmartMeetingPlan) -> bool:
    return plan.current_attempt >= plan.max_attempts


def open_attempt(plan: SmartMeetingPlan, slot: CandidateSlot, now: datetime) -> SmartMeetingPlan:
    transition(plan, PlanState.AWAITING_RESPONSES)
    plan.current_attempt += 1
    plan.candidate_slot = slot
    plan.tried_slot_starts.append(slot.starts_at)
    plan.response_deadline_at = now + timedelta(hours=plan.response_window_hours)
    plan.status_reason = None
    return plan


def fail(plan: SmartMeetingPlan, reason: str = NO_SLOT_FOUND) -> SmartMeetingPlan:
    transition(plan, PlanState.FAILED)
    plan.candidate_slot = None
    plan.response_deadline_at = None
    plan.status_reason = reason
    return plan


def tally(invitations: Iterable[Invitation]) -> AttemptTally:
    counts = AttemptTally()
    for invitation in invitations:
        if invitation.response is InvitationResponse.ACCEPTED:
            counts.accepted += 1
        elif invitation.response is InvitationResponse.DECLINED:
            counts.declined += 1
        else:
            counts.pending += 1
    return counts


def quorum_reached(plan: SmartMeetingPlan, counts: AttemptTally) -> bool:
    return counts.accepted >= plan.min_accepted_participants


def deadline_passed(plan: SmartMeetingPlan, now: datetime) -> bool:
    return plan.response_deadline_at is not None and now >= plan.response_deadline_at


def everyone_declined(counts: AttemptTally) -> bool:
    return counts.declined > 0 and counts.accepted == 0 and counts.pending == 0


def finalize(plan: SmartMeetingPlan) -> SmartMeetingPlan:
    if plan.candidate_slot is None:
        raise StateConflictError(f"Plan {plan.id} has no candidate slot", current_state=plan.state.value)
    transition(plan, PlanState.FINALIZED)
    plan.finalized_starts_at = plan.candidate_slot.starts_at
    plan.finalized_ends_at = plan.candidate_slot.ends_at
    plan.status_reason = QUORUM_REACHED
    return plan


def close_expired_attempt(plan: SmartMeetingPlan, counts: AttemptTally) -> SmartMeetingPlan:
    """Back to searching; pending invitations count as declined from now on."""
    transition(plan, PlanState.SEARCHING)
    plan.candidate_slot = None
    plan.response_deadline_at = None
    if everyone_declined(counts):
        plan.status_reason = f"attempt {plan.current_attempt} declined by every invitee"
    else:
        plan.status_reason = (
            f"attempt {plan.current_attempt} expired with {counts.accepted} of "
            f"{plan.min_accepted_participants} acceptances"
        )
    return plan


def member_outcomes(invitations: Iterable[Invitation]) -> dict[str, MemberOutcome]:
    """Per-participant outcome of a closed attempt, silence counted separately."""
    outcomes: dict[str, MemberOutcome] = {}
    for invitation in invitations:
        if invitation.response is InvitationResponse.ACCEPTED:
            outcomes[invitation.participant_id] = MemberOutcome.ACCEPTED
        elif invitation.response is InvitationResponse.DECLINED:
            outcomes[invitation.participant_id] = MemberOutcome.DECLINED
        else:
            outcomes[invitation.participant_id] = MemberOutcome.NO_RESPONSE
    return outcomes


def accepts_response(plan: SmartMeetingPlan, attempt_index: int, now: datetime) -> bool:
    """
    Whether a response for `attempt_index` can still be recorded.

    The current attempt stays open until its deadline, including after it
    reached quorum; expired and superseded attempts are closed.
    """
    if attempt_index != plan.current_attempt or deadline_passed(plan, now):
        return False
    if plan.state is PlanState.AWAITING_RESPONSES:
        return True
    return plan.state is PlanState.FINALIZED and plan.response_deadline_at is not None
