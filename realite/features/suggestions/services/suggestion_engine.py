"""
Suggestion engine.

Scores the events a user can see against the user's learned preference
weights, keeps those that fit into the user's calendar and clear the minimum
score, and stores them as suggestions. High-scoring suggestions can be
written to the user's calendar automatically; such writes are best effort and
reported as attempted effects.

Runs and decisions for the same user are serialized so scoring always sees a
consistent set of weights. Different users run concurrently.
"""

import asyncio
import re
import weakref
from collections.abc import Callable
from datetime import UTC, datetime

from realite.config import Settings, settings
from realite.exceptions import CollaboratorError, NotFoundError, StateConflictError
from realite.features.availability.resolver import AvailabilityResolver, Interval
from realite.features.dating.domain import DatingProfile
from realite.features.dating.matching import is_date_tag, is_mutual_match
from realite.features.dating.repository.dating_repository import DatingProfileRepository
from realite.features.suggestions.domain import (
    Decision,
    DecisionResult,
    Event,
    EventVisibility,
    LearningSummary,
    PreferenceWeight,
    Suggestion,
    SuggestionRunResult,
    SuggestionSettings,
    SuggestionStatus,
    transition_status,
)
from realite.features.suggestions.repository.preference_repository import PreferenceRepository
from realite.features.suggestions.repository.settings_repository import (
    SuggestionSettingsRepository,
)
from realite.features.suggestions.repository.suggestion_repository import SuggestionRepository
from realite.features.suggestions.services.preference_learner import (
    blocklist_additions,
    build_learning_summary,
    compute_feedback_deltas,
    merge_blocklist,
    normalize_decision_note,
    normalize_decision_reasons,
)
from realite.infrastructure.observability.logging import get_logger
from realite.models.domain.effects import AttemptedEffect, EffectKind
from realite.repositories.group_repository import GroupRepository
from realite.services.calendar.metadata import (
    CalendarLinkType,
    build_app_url,
    build_calendar_metadata,
)
from realite.services.calendar.provider import CalendarProvider, GoogleCalendarProvider

logger = get_logger(__name__)

ENGINE_TITLE_PREFIX = "[Realite]"
_ENGINE_TITLE = re.compile(r"^\[realite\]\s*", re.IGNORECASE)


def is_engine_generated(title: str) -> bool:
    return bool(_ENGINE_TITLE.match(title.strip()))


def score_event(
    tags: list[str],
    weights: dict[str, PreferenceWeight],
    exploration_bonus: float = settings.SUGGESTION_EXPLORATION_BONUS,
    everyone_bonus: float = settings.SUGGESTION_EVERYONE_BONUS,
    everyone_tag: str = settings.SUGGESTION_EVERYONE_TAG,
) -> float:
    """
    1.0 plus, per tag, the learned weight or the exploration bonus for tags
    without a weight yet, plus a bonus for events addressed to everyone.
    """
    score = 1.0
    for tag in tags:
        learned = weights.get(tag)
        score += learned.weight if learned is not None else exploration_bonus

    if any(everyone_tag in tag for tag in tags):
        score += everyone_bonus

    return round(score, 2)


def build_reason(event: Event) -> str:
    if not event.tags:
        return "Free time in your calendar"
    return f"Match on {', '.join(event.tags)} and free time in your calendar"


def in_dating_pool(event: Event) -> bool:
    return event.visibility is EventVisibility.SMART_DATE or any(is_date_tag(tag) for tag in event.tags)


class SuggestionEngine:
    def __init__(
        self,
        events=None,
        suggestions=None,
        preferences=None,
        settings_repository=None,
        dating_profiles=None,
        calendar: CalendarProvider | None = None,
        availability: AvailabilityResolver | None = None,
        config: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.events = events or GroupRepository
        self.suggestions = suggestions or SuggestionRepository
        self.preferences = preferences or PreferenceRepository
        self.settings_repository = settings_repository or SuggestionSettingsRepository
        self.dating_profiles = dating_profiles or DatingProfileRepository
        self.calendar = calendar or GoogleCalendarProvider()
        self.availability = availability or AvailabilityResolver(self.calendar)
        self.config = config or settings
        self._clock = clock or (lambda: datetime.now(UTC))
        self._user_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _user_lock(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    def score(self, event: Event, weights: dict[str, PreferenceWeight]) -> float:
        return score_event(
            event.tags,
            weights,
            exploration_bonus=self.config.SUGGESTION_EXPLORATION_BONUS,
            everyone_bonus=self.config.SUGGESTION_EVERYONE_BONUS,
            everyone_tag=self.config.SUGGESTION_EVERYONE_TAG,
        )

    async def generate_suggestions(self, user_id: str) -> SuggestionRunResult:
        """Score, filter, upsert and (optionally) auto-insert suggestions for one user."""
        async with self._user_lock(user_id):
            return await self._generate(user_id)

    async def _generate(self, user_id: str) -> SuggestionRunResult:
        now = self._clock()
        result = SuggestionRunResult()

        visible = await self.events.list_visible_events_for_user(user_id)
        candidates = [
            event
            for event in visible
            if event.created_by != user_id
            and event.starts_at > now
            and event.starts_at < event.ends_at
            and not is_engine_generated(event.title)
        ]
        candidates = await self._filter_dating_pool(user_id, candidates, now)
        if not candidates:
            logger.info("No suggestion candidates", user_id=user_id, visible_count=len(visible))
            return result

        weights = await self.preferences.get_weights(user_id)
        availability = await self.availability.compute_availability(
            user_id, [Interval(id=event.id, start=event.starts_at, end=event.ends_at) for event in candidates]
        )
        if availability.warning:
            result.warnings.append(availability.warning)

        scored: list[tuple[Event, float]] = []
        for event in candidates:
            if not availability.is_available(event.id):
                continue
            score = self.score(event, weights)
            if score < self.config.SUGGESTION_MIN_SCORE:
                continue
            scored.append((event, score))

        scored.sort(key=lambda item: (-item[1], item[0].starts_at))
        user_settings = await self.settings_repository.get_settings(user_id)

        for event, score in scored:
            suggestion = await self.suggestions.upsert(user_id, event.id, score, build_reason(event))

            if self._should_auto_insert(suggestion, score, user_settings):
                effect, suggestion = await self._insert_into_calendar(suggestion, event, user_settings)
                result.effects.append(effect)
                if effect.as_warning():
                    result.warnings.append(effect.as_warning())

            result.suggestions.append(suggestion)

        logger.info(
            "Suggestion run completed",
            user_id=user_id,
            candidate_count=len(candidates),
            suggestion_count=len(result.suggestions),
            effect_count=len(result.effects),
        )
        return result

    def _should_auto_insert(
        self, suggestion: Suggestion, score: float, user_settings: SuggestionSettings
    ) -> bool:
        return (
            user_settings.auto_insert_suggestions
            and score >= self.config.SUGGESTION_AUTO_INSERT_MIN_SCORE
            and not suggestion.calendar_event_id
            and suggestion.status is not SuggestionStatus.DECLINED
        )

    async def _filter_dating_pool(self, user_id: str, events: list[Event], now: datetime) -> list[Event]:
        """Dating-pool events are only kept when viewer and creator match mutually."""
        creators = list(dict.fromkeys(event.created_by for event in events if in_dating_pool(event)))
        if not creators:
            return events

        profiles = await self.dating_profiles.get_profiles([user_id, *creators])
        viewer = profiles.get(user_id) or DatingProfile.empty(user_id)

        kept = []
        for event in events:
            if not in_dating_pool(event):
                kept.append(event)
                continue
            creator = profiles.get(event.created_by) or DatingProfile.empty(event.created_by)
            if is_mutual_match(viewer, creator, now):
                kept.append(event)
        return kept

    async def _insert_into_calendar(
        self, suggestion: Suggestion, event: Event, user_settings: SuggestionSettings
    ) -> tuple[AttemptedEffect, Suggestion]:
        url = build_app_url(self.config.PUBLIC_APP_URL, CalendarLinkType.SUGGESTION, suggestion.id)
        title = f"{ENGINE_TITLE_PREFIX} {_ENGINE_TITLE.sub('', event.title.strip())}"

        try:
            external_id = await self.calendar.insert_calendar_event(
                suggestion.user_id,
                user_settings.suggestion_calendar_id,
                title,
                build_calendar_metadata(event.description, url),
                event.location,
                event.starts_at,
                event.ends_at,
                transparent=True,
            )
        except CollaboratorError as e:
            logger.warning(
                "Calendar insert failed for suggestion",
                suggestion_id=suggestion.id,
                user_id=suggestion.user_id,
                error=e.message,
            )
            return AttemptedEffect(EffectKind.CALENDAR_INSERT, suggestion.id, False, e.message), suggestion
        except Exception as e:
            logger.error(
                "Unexpected calendar insert error", suggestion_id=suggestion.id, error=str(e)
            )
            return AttemptedEffect(EffectKind.CALENDAR_INSERT, suggestion.id, False, str(e)), suggestion

        if not external_id:
            return (
                AttemptedEffect(EffectKind.CALENDAR_INSERT, suggestion.id, False, "calendar not connected"),
                suggestion,
            )

        updated = await self.suggestions.mark_inserted(suggestion.id, external_id) or suggestion
        return (
            AttemptedEffect(EffectKind.CALENDAR_INSERT, suggestion.id, True, external_id=external_id),
            updated,
        )

    async def apply_decision_feedback(
        self,
        user_id: str,
        suggestion_id: str,
        decision: Decision,
        reasons: list[str] | None = None,
        note: str | None = None,
    ) -> DecisionResult:
        """
        Record an accept/decline and learn from it.

        Raises:
            NotFoundError: If the suggestion (or its event) does not exist for the user
        """
        async with self._user_lock(user_id):
            suggestion = await self.suggestions.get_for_user(suggestion_id, user_id)
            if not suggestion:
                raise NotFoundError("Suggestion not found", resource="suggestion", resource_id=suggestion_id)

            try:
                target = transition_status(suggestion.status, SuggestionStatus(decision.value))
            except StateConflictError as e:
                logger.info(
                    "Decision ignored", suggestion_id=suggestion_id, user_id=user_id, reason=e.message
                )
                return DecisionResult(suggestion=suggestion, applied=False)

            event = await self.events.get_event(suggestion.event_id)
            if not event:
                raise NotFoundError("Event not found", resource="event", resource_id=suggestion.event_id)

            declined = decision is Decision.DECLINED
            suggestion.status = target
            suggestion.decision_reasons = normalize_decision_reasons(reasons) if declined else []
            suggestion.decision_note = normalize_decision_note(note) if declined else None

            deltas = compute_feedback_deltas(decision, suggestion.decision_reasons, event)
            blocked_creators, blocked_tags = blocklist_additions(suggestion.decision_reasons, event)
            blocklists = None
            if blocked_creators or blocked_tags:
                current = await self.settings_repository.get_settings(user_id)
                blocklists = (
                    merge_blocklist(current.blocked_creator_ids, blocked_creators),
                    merge_blocklist(current.blocked_activity_tags, blocked_tags),
                )
            await self.suggestions.save_decision(suggestion, deltas, blocklists)
            logger.info(
                "Decision applied",
                suggestion_id=suggestion_id,
                user_id=user_id,
                decision=decision.value,
                reasons=[reason.value for reason in suggestion.decision_reasons],
            )

            effects: list[AttemptedEffect] = []
            if suggestion.calendar_event_id:
                effects.append(await self._sync_decision(suggestion, decision))
            elif not declined:
                user_settings = await self.settings_repository.get_settings(user_id)
                effect, suggestion = await self._insert_into_calendar(suggestion, event, user_settings)
                effects.append(effect)

            return DecisionResult(suggestion=suggestion, applied=True, effects=effects)

    async def _sync_decision(self, suggestion: Suggestion, decision: Decision) -> AttemptedEffect:
        try:
            synced = await self.calendar.sync_decision_status(
                suggestion.user_id, suggestion.calendar_event_id, decision.value
            )
        except CollaboratorError as e:
            logger.warning("Decision sync failed", suggestion_id=suggestion.id, error=e.message)
            return AttemptedEffect(EffectKind.CALENDAR_DECISION_SYNC, suggestion.id, False, e.message)
        except Exception as e:
            logger.error("Unexpected decision sync error", suggestion_id=suggestion.id, error=str(e))
            return AttemptedEffect(EffectKind.CALENDAR_DECISION_SYNC, suggestion.id, False, str(e))

        return AttemptedEffect(
            EffectKind.CALENDAR_DECISION_SYNC,
            suggestion.id,
            synced,
            None if synced else "calendar entry not found",
            external_id=suggestion.calendar_event_id,
        )

    async def list_suggestions(self, user_id: str) -> list[Suggestion]:
        return await self.suggestions.list_for_user(user_id)

    async def learning_summary(self, user_id: str) -> LearningSummary:
        weights = await self.preferences.get_weights(user_id)
        user_settings = await self.settings_repository.get_settings(user_id)
        person_ids = [tag.removeprefix("person:") for tag in weights if tag.startswith("person:")]
        labels = await self.events.get_user_labels(
            list(dict.fromkeys([*person_ids, *user_settings.blocked_creator_ids]))
        )
        return build_learning_summary(
            weights.values(),
            labels,
            blocked_creator_ids=user_settings.blocked_creator_ids,
            blocked_activity_tags=user_settings.blocked_activity_tags,
        )


# Singleton instance for application use
suggestion_engine = SuggestionEngine()
