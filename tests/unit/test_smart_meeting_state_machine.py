from datetime import UTC, datetime, timedelta

import pytest

from realite.exceptions import StateConflictError, ValidationError
from realite.features.smart_meetings.domain import (
    AttemptTally,
    Invitation,
    InvitationResponse,
    MemberOutcome,
    PlanDraft,
    PlanState,
)
from realite.features.smart_meetings.domain.state_machine import (
    accepts_response,
    attempts_exhausted,
    close_expired_attempt,
    everyone_declined,
    fail,
    finalize,
    iter_candidate_slots,
    member_outcomes,
    open_attempt,
    quorum_reached,
    tally,
    transition,
)
from realite.features.smart_meetings.domain.validation import build_plan, normalize_tags

WINDOW_START = datetime(2030, 5, 6, 9, 0, tzinfo=UTC)


def _draft(**overrides):
    values = {
        "group_id": "group-1",
        "created_by": "organizer",
        "title": "Team lunch",
        "duration_minutes": 60,
        "min_accepted_participants": 2,
        "search_window_start": WINDOW_START,
        "search_window_end": WINDOW_START + timedelta(hours=3),
        "slot_interval_minutes": 30,
    }
    values.update(overrides)
    return PlanDraft(**values)


def _invitation(participant_id, response):
    return Invitation(plan_id="plan-1", attempt_index=1, participant_id=participant_id, response=response)


def test_build_plan_applies_defaults():
    plan = build_plan("plan-1", _draft(slot_interval_minutes=None, tags=["Food", "#food", " #Team "]))

    assert plan.state is PlanState.SEARCHING
    assert plan.response_window_hours == 24
    assert plan.slot_interval_minutes == 30
    assert plan.max_attempts == 3
    assert plan.tags == ["#food", "#team"]
    assert plan.current_attempt == 0


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"title": "   "}, "title"),
        ({"title": "x" * 121}, "title"),
        ({"duration_minutes": 10}, "duration_minutes"),
        ({"min_accepted_participants": 0}, "min_accepted_participants"),
        ({"response_window_hours": 337}, "response_window_hours"),
        ({"slot_interval_minutes": 200}, "slot_interval_minutes"),
        ({"max_attempts": 11}, "max_attempts"),
        ({"search_window_end": WINDOW_START}, "search_window_end"),
        ({"search_window_end": WINDOW_START + timedelta(minutes=30)}, "search_window_end"),
        ({"search_window_start": datetime(2030, 5, 6, 9, 0)}, "search_window_start"),
    ],
)
def test_build_plan_rejects_out_of_bounds(overrides, field):
    with pytest.raises(ValidationError) as exc:
        build_plan("plan-1", _draft(**overrides))

    assert exc.value.field == field


def test_normalize_tags_prefixes_and_dedupes():
    assert normalize_tags(["Sport", "#sport", "", "  "]) == ["#sport"]


def test_candidate_slots_step_through_window():
    plan = build_plan("plan-1", _draft())

    starts = [slot.starts_at for slot in iter_candidate_slots(plan, not_before=WINDOW_START, limit=100)]

    assert starts == [WINDOW_START + timedelta(minutes=30 * i) for i in range(5)]


def test_candidate_slots_skip_tried_and_past_slots():
    plan = build_plan("plan-1", _draft())
    plan.tried_slot_starts = [WINDOW_START + timedelta(minutes=60)]

    slots = list(iter_candidate_slots(plan, not_before=WINDOW_START + timedelta(minutes=40), limit=100))

    assert [slot.starts_at for slot in slots] == [
        WINDOW_START + timedelta(minutes=90),
        WINDOW_START + timedelta(minutes=120),
    ]
    assert slots[0].ends_at == WINDOW_START + timedelta(minutes=150)


def test_candidate_slots_respect_limit():
    plan = build_plan("plan-1", _draft())

    assert len(list(iter_candidate_slots(plan, not_before=WINDOW_START, limit=2))) == 2


def test_open_attempt_sets_deadline_and_records_slot():
    plan = build_plan("plan-1", _draft(response_window_hours=6))
    slot = next(iter_candidate_slots(plan, WINDOW_START, 1))
    now = WINDOW_START - timedelta(days=1)

    open_attempt(plan, slot, now)

    assert plan.state is PlanState.AWAITING_RESPONSES
    assert plan.current_attempt == 1
    assert plan.candidate_slot == slot
    assert plan.tried_slot_starts == [slot.starts_at]
    assert plan.response_deadline_at == now + timedelta(hours=6)


def test_finalize_copies_candidate_slot():
    plan = build_plan("plan-1", _draft())
    slot = next(iter_candidate_slots(plan, WINDOW_START, 1))
    open_attempt(plan, slot, WINDOW_START)

    finalize(plan)

    assert plan.state is PlanState.FINALIZED
    assert plan.finalized_starts_at == slot.starts_at
    assert plan.finalized_ends_at == slot.ends_at
    assert plan.is_terminal


def test_terminal_states_reject_transitions():
    plan = build_plan("plan-1", _draft())
    fail(plan)

    with pytest.raises(StateConflictError) as exc:
        transition(plan, PlanState.SEARCHING)

    assert exc.value.current_state == "failed"
    assert plan.status_reason == "no slot found"


def test_searching_cannot_finalize_directly():
    plan = build_plan("plan-1", _draft())

    with pytest.raises(StateConflictError):
        finalize(plan)


def test_tally_and_quorum():
    invitations = [
        _invitation("a", InvitationResponse.ACCEPTED),
        _invitation("b", InvitationResponse.ACCEPTED),
        _invitation("c", InvitationResponse.PENDING),
        _invitation("d", InvitationResponse.DECLINED),
    ]
    plan = build_plan("plan-1", _draft(min_accepted_participants=2))

    counts = tally(invitations)

    assert counts == AttemptTally(accepted=2, declined=1, pending=1)
    assert quorum_reached(plan, counts) is True
    assert member_outcomes(invitations) == {
        "a": MemberOutcome.ACCEPTED,
        "b": MemberOutcome.ACCEPTED,
        "c": MemberOutcome.NO_RESPONSE,
        "d": MemberOutcome.DECLINED,
    }


def test_everyone_declined_needs_no_pending_or_accepted():
    assert everyone_declined(AttemptTally(declined=3)) is True
    assert everyone_declined(AttemptTally(declined=2, pending=1)) is False
    assert everyone_declined(AttemptTally(declined=2, accepted=1)) is False
    assert everyone_declined(AttemptTally()) is False


def test_close_expired_attempt_returns_to_searching():
    plan = build_plan("plan-1", _draft(min_accepted_participants=3))
    open_attempt(plan, next(iter_candidate_slots(plan, WINDOW_START, 1)), WINDOW_START)

    close_expired_attempt(plan, AttemptTally(accepted=1, pending=2))

    assert plan.state is PlanState.SEARCHING
    assert plan.candidate_slot is None
    assert plan.response_deadline_at is None
    assert plan.status_reason == "attempt 1 expired with 1 of 3 acceptances"


def test_attempts_exhausted():
    plan = build_plan("plan-1", _draft(max_attempts=1))
    assert attempts_exhausted(plan) is False

    open_attempt(plan, next(iter_candidate_slots(plan, WINDOW_START, 1)), WINDOW_START)

    assert attempts_exhausted(plan) is True


def test_accepts_response_only_for_open_current_attempt():
    plan = build_plan("plan-1", _draft())
    now = WINDOW_START - timedelta(days=2)
    open_attempt(plan, next(iter_candidate_slots(plan, WINDOW_START, 1)), now)

    assert accepts_response(plan, 1, now) is True
    assert accepts_response(plan, 2, now) is False
    assert accepts_response(plan, 1, plan.response_deadline_at) is False

    finalize(plan)
    assert accepts_response(plan, 1, now) is True

    failed = build_plan("plan-2", _draft())
    fail(failed)
    assert accepts_response(failed, 0, now) is False
