import copy
import uuid
from datetime import UTC, datetime

import pytest

from realite.auth.verify import current_user_id
from realite.exceptions import CalendarCollaboratorError
from realite.features.dating.domain import DatingProfile
from realite.features.smart_meetings.domain import InvitationResponse, Invitation, PlanState
from realite.features.suggestions.domain import Suggestion, SuggestionSettings, SuggestionStatus
from realite.features.suggestions.services.preference_learner import apply_deltas
from realite.services.calendar.models import BusyWindow

TEST_USER_ID = "user-123"


@pytest.fixture
def auth_override():
    def _override():
        return TEST_USER_ID

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[current_user_id] = auth_override

    return _apply


class FakeRedis:
    def __init__(self, fail: bool = False):
        self.store: dict[str, str] = {}
        self.renewals: list[tuple[str, int]] = []
        self.fail = fail

    async def set_if_absent(self, key: str, value: str, ttl_s: int) -> bool:
        if self.fail:
            raise RuntimeError("Redis initialization failed")
        if key in self.store:
            return False
        self.store[key] = value
        return True

    async def delete_if_equals(self, key: str, value: str) -> bool:
        if self.store.get(key) == value:
            del self.store[key]
            return True
        return False

    async def extend_if_equals(self, key: str, value: str, ttl_s: int) -> bool:
        if self.store.get(key) != value:
            return False
        self.renewals.append((key, ttl_s))
        return True

    async def get(self, key: str) -> str | None:
        return self.store.get(key)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def failing_redis():
    return FakeRedis(fail=True)


class FakeCalendar:
    """Calendar provider double with per-user busy windows and recorded writes."""

    def __init__(self):
        self.busy: dict[str, list[BusyWindow] | None] = {}
        self.fail_busy = False
        self.fail_insert = False
        self.busy_calls: list[tuple[str, datetime, datetime]] = []
        self.inserted: list[dict] = []
        self.synced: list[tuple[str, str, str]] = []
        self.events: dict[str, list] = {}

    async def get_busy_windows(self, user_id, time_min, time_max):
        self.busy_calls.append((user_id, time_min, time_max))
        if self.fail_busy:
            raise CalendarCollaboratorError("free/busy lookup failed", user_id=user_id)
        return self.busy.get(user_id, [])

    async def insert_calendar_event(
        self,
        user_id,
        calendar_id,
        title,
        description,
        location,
        start,
        end,
        attendees=None,
        transparent=False,
    ):
        if self.fail_insert:
            raise CalendarCollaboratorError("insert failed", user_id=user_id)
        external_id = f"{calendar_id}::evt-{len(self.inserted) + 1}"
        self.inserted.append(
            {
                "user_id": user_id,
                "calendar_id": calendar_id,
                "title": title,
                "description": description,
                "location": location,
                "start": start,
                "end": end,
                "attendees": attendees,
                "transparent": transparent,
                "external_id": external_id,
            }
        )
        return external_id

    async def sync_decision_status(self, user_id, external_event_id, decision):
        self.synced.append((user_id, external_event_id, decision))
        return True

    async def list_events(self, user_id, time_min, time_max):
        return self.events.get(user_id)


@pytest.fixture
def fake_calendar():
    return FakeCalendar()


class InMemoryGroups:
    def __init__(self):
        self.members: dict[str, list[str]] = {}
        self.events: dict[str, object] = {}
        self.emails: dict[str, str] = {}
        self.labels: dict[str, str] = {}

    async def list_group_members(self, group_id):
        return list(self.members.get(group_id, []))

    async def is_group_member(self, group_id, user_id):
        return user_id in self.members.get(group_id, [])

    async def get_user_emails(self, user_ids):
        return {user_id: self.emails[user_id] for user_id in user_ids if user_id in self.emails}

    async def get_user_labels(self, user_ids):
        return {user_id: self.labels[user_id] for user_id in user_ids if user_id in self.labels}

    async def get_event(self, event_id):
        return self.events.get(event_id)

    async def list_visible_events_for_user(self, user_id):
        return list(self.events.values())


@pytest.fixture
def groups():
    return InMemoryGroups()


class InMemoryPreferences:
    def __init__(self):
        self.weights: dict[str, dict] = {}

    async def get_weights(self, user_id):
        return dict(self.weights.get(user_id, {}))


@pytest.fixture
def preferences():
    return InMemoryPreferences()


class InMemorySuggestions:
    def __init__(self, preferences: InMemoryPreferences, settings: "InMemorySuggestionSettings"):
        self.preferences = preferences
        self.settings = settings
        self.rows: dict[tuple[str, str], Suggestion] = {}

    async def get_for_user(self, suggestion_id, user_id):
        for suggestion in self.rows.values():
            if suggestion.id == suggestion_id and suggestion.user_id == user_id:
                return copy.deepcopy(suggestion)
        return None

    async def list_for_user(self, user_id):
        return [copy.deepcopy(s) for s in self.rows.values() if s.user_id == user_id]

    async def upsert(self, user_id, event_id, score, reason):
        existing = self.rows.get((user_id, event_id))
        if existing:
            existing.score = score
            existing.reason = reason
        else:
            existing = Suggestion(
                id=str(uuid.uuid4()),
                user_id=user_id,
                event_id=event_id,
                score=score,
                reason=reason,
                created_at=datetime.now(UTC),
            )
            self.rows[(user_id, event_id)] = existing
        return copy.deepcopy(existing)

    async def mark_inserted(self, suggestion_id, calendar_event_id):
        for suggestion in self.rows.values():
            if suggestion.id == suggestion_id:
                suggestion.calendar_event_id = calendar_event_id
                if suggestion.status is SuggestionStatus.PENDING:
                    suggestion.status = SuggestionStatus.CALENDAR_INSERTED
                return copy.deepcopy(suggestion)
        return None

    async def save_decision(self, suggestion, deltas, blocklists=None):
        self.rows[(suggestion.user_id, suggestion.event_id)] = copy.deepcopy(suggestion)
        weights = self.preferences.weights.setdefault(suggestion.user_id, {})
        apply_deltas(suggestion.user_id, weights, deltas)
        if blocklists is not None:
            current = await self.settings.get_settings(suggestion.user_id)
            current.blocked_creator_ids, current.blocked_activity_tags = blocklists
            self.settings.settings[suggestion.user_id] = current


@pytest.fixture
def suggestions(preferences, suggestion_settings):
    return InMemorySuggestions(preferences, suggestion_settings)


class InMemorySuggestionSettings:
    def __init__(self):
        self.settings: dict[str, SuggestionSettings] = {}

    async def get_settings(self, user_id):
        return self.settings.get(user_id) or SuggestionSettings(user_id=user_id)


@pytest.fixture
def suggestion_settings():
    return InMemorySuggestionSettings()


class InMemoryDatingProfiles:
    def __init__(self):
        self.profiles: dict[str, DatingProfile] = {}

    async def get_profile(self, user_id):
        return copy.deepcopy(self.profiles.get(user_id) or DatingProfile.empty(user_id))

    async def get_profiles(self, user_ids):
        return {user_id: await self.get_profile(user_id) for user_id in user_ids}

    async def save_profile(self, profile):
        self.profiles[profile.user_id] = copy.deepcopy(profile)
        return copy.deepcopy(profile)


@pytest.fixture
def dating_profiles():
    return InMemoryDatingProfiles()


class InMemoryPlans:
    """Plan store that only keeps what was explicitly committed."""

    def __init__(self):
        self.plans: dict = {}
        self.invitations: dict[tuple[str, int, str], Invitation] = {}
        self.member_stats: dict[tuple[str, str, str], dict] = {}

    async def create_plan(self, plan):
        self.plans[plan.id] = copy.deepcopy(plan)
        return copy.deepcopy(plan)

    async def get_plan(self, plan_id):
        plan = self.plans.get(plan_id)
        return copy.deepcopy(plan) if plan else None

    async def list_plans_for_user(self, user_id):
        invited = {plan_id for plan_id, _, participant in self.invitations if participant == user_id}
        return [
            copy.deepcopy(plan)
            for plan in self.plans.values()
            if plan.created_by == user_id or plan.id in invited
        ]

    async def list_due_plan_ids(self, now):
        return [
            plan.id
            for plan in self.plans.values()
            if plan.state is PlanState.SEARCHING
            or (plan.state is PlanState.AWAITING_RESPONSES and plan.response_deadline_at <= now)
        ]

    async def list_invitations(self, plan_id, attempt_index):
        return [
            copy.deepcopy(invitation)
            for (pid, attempt, _), invitation in sorted(self.invitations.items())
            if pid == plan_id and attempt == attempt_index
        ]

    async def get_invitation(self, plan_id, attempt_index, participant_id):
        invitation = self.invitations.get((plan_id, attempt_index, participant_id))
        return copy.deepcopy(invitation) if invitation else None

    async def record_response(self, plan_id, attempt_index, participant_id, response, responded_at):
        invitation = self.invitations[(plan_id, attempt_index, participant_id)]
        invitation.response = response
        invitation.responded_at = responded_at

    async def open_attempt(self, plan, participant_ids):
        self.plans[plan.id] = copy.deepcopy(plan)
        for participant_id in participant_ids:
            key = (plan.id, plan.current_attempt, participant_id)
            self.invitations.setdefault(
                key, Invitation(plan_id=plan.id, attempt_index=plan.current_attempt, participant_id=participant_id)
            )

    async def close_attempt(self, plan, attempt_index, outcomes):
        self.plans[plan.id] = copy.deepcopy(plan)
        for (pid, attempt, _), invitation in self.invitations.items():
            if pid == plan.id and attempt == attempt_index and invitation.response is InvitationResponse.PENDING:
                invitation.response = InvitationResponse.DECLINED
        self._record_stats(plan, outcomes)

    async def finalize_attempt(self, plan, outcomes):
        self.plans[plan.id] = copy.deepcopy(plan)
        self._record_stats(plan, outcomes)

    async def save_plan(self, plan):
        self.plans[plan.id] = copy.deepcopy(plan)

    async def set_calendar_event_id(self, plan_id, calendar_event_id):
        self.plans[plan_id].calendar_event_id = calendar_event_id

    def _record_stats(self, plan, outcomes):
        for participant_id, outcome in outcomes.items():
            stats = self.member_stats.setdefault(
                (plan.created_by, plan.group_id, participant_id),
                {"accepted": 0, "declined": 0, "no_response": 0},
            )
            stats[outcome.value] += 1


@pytest.fixture
def plan_store():
    return InMemoryPlans()


class RecordingNotifications:
    def __init__(self):
        self.sent: list[tuple[str, int, str]] = []
        self.fail_for: set[str] = set()

    async def send_invitation(self, plan_id, attempt_index, participant_id, slot):
        if participant_id in self.fail_for:
            raise RuntimeError("push gateway unavailable")
        self.sent.append((plan_id, attempt_index, participant_id))


@pytest.fixture
def notifications():
    return RecordingNotifications()
