from datetime import UTC, datetime, timedelta

import pytest

from realite.features.smart_meetings.domain import PlanDraft, PlanState
from realite.features.smart_meetings.jobs import SmartMeetingTickJob
from realite.features.smart_meetings.services import PlanLockRegistry, SmartMeetingService

NOW = datetime(2030, 5, 4, 12, 0, tzinfo=UTC)
WINDOW_START = datetime(2030, 5, 6, 9, 0, tzinfo=UTC)


def _draft(title, **overrides):
    values = {
        "group_id": "group-1",
        "created_by": "organizer",
        "title": title,
        "duration_minutes": 60,
        "min_accepted_participants": 1,
        "search_window_start": WINDOW_START,
        "search_window_end": WINDOW_START + timedelta(hours=2),
        "response_window_hours": 12,
        "slot_interval_minutes": 60,
        "max_attempts": 2,
    }
    values.update(overrides)
    return PlanDraft(**values)


@pytest.fixture
def service(plan_store, groups, fake_calendar, notifications, fake_redis):
    groups.members["group-1"] = ["organizer", "member-a"]
    return SmartMeetingService(
        plans=plan_store,
        groups=groups,
        calendar=fake_calendar,
        notifications=notifications,
        locks=PlanLockRegistry(redis_client=fake_redis),
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_tick_advances_only_due_plans(service, plan_store):
    due = await service.create_plan(_draft("Due"), now=NOW - timedelta(hours=13))
    fresh = await service.create_plan(_draft("Fresh"), now=NOW)
    job = SmartMeetingTickJob(service=service, plans=plan_store)

    metrics = await job.run_once(NOW)

    assert metrics["due"] == 1
    assert metrics["changed"] == 1
    assert metrics["failed"] == 0
    assert plan_store.plans[due.plan.id].current_attempt == 2
    assert plan_store.plans[fresh.plan.id].current_attempt == 1
    assert job.last_run_at == NOW


@pytest.mark.asyncio
async def test_repeated_ticks_are_idempotent(service, plan_store):
    created = await service.create_plan(_draft("Due", max_attempts=1), now=NOW - timedelta(hours=13))
    job = SmartMeetingTickJob(service=service, plans=plan_store)

    first = await job.run_once(NOW)
    second = await job.run_once(NOW)

    assert first["changed"] == 1
    assert second["due"] == 0
    assert plan_store.plans[created.plan.id].state is PlanState.FAILED


@pytest.mark.asyncio
async def test_errors_are_counted_not_raised():
    class ExplodingService:
        async def advance(self, plan_id, now):
            raise RuntimeError("database went away")

    class DuePlans:
        async def list_due_plan_ids(self, now):
            return ["plan-1", "plan-2"]

    job = SmartMeetingTickJob(service=ExplodingService(), plans=DuePlans())

    metrics = await job.run_once(NOW)

    assert metrics["failed"] == 2
    assert metrics["errors"][0] == {"plan_id": "plan-1", "error": "database went away"}
