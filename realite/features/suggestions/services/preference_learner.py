"""
Preference learner.

Turns accept/decline feedback into additive weight changes per tag. The
weights are unbounded on purpose: strong recurring signals are allowed to
dominate the score.

Declining because of the person or the activity also puts the creator or
the event's hashtags on the user's blocklists.

Tags come in two families:
    - event hashtags (`#sport`, `#alle`, ...)
    - context tags derived from the event: `person:<creator_id>`,
      `timeslot:<weekday>:<hour>` (UTC, Sunday = 0) and `location:<slug>`
"""

import re
import unicodedata
from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, datetime

from realite.features.dating.matching import DATE_TAG
from realite.features.suggestions.domain import (
    BlockedPerson,
    Decision,
    DeclineReason,
    Event,
    LearningCriterion,
    LearningSummary,
    PreferenceWeight,
)

# Learning-rate table
ACCEPT_TAG_STEP = 1.1
ACCEPT_CONTEXT_STEP = 0.45
DECLINE_TAG_STEP = -0.5
CONDITIONAL_DECLINE_TAG_STEP = -0.1
DECLINE_CONTEXT_STEP = -0.25
NOT_WITH_THIS_PERSON_STEP = -1.2
NOT_THIS_ACTIVITY_STEP = -1.0
NO_TIME_STEP = -0.9
TOO_FAR_STEP = -1.0

DECISION_NOTE_MAX_LENGTH = 300
LOCATION_SLUG_MAX_LENGTH = 48

SUMMARY_THRESHOLD = 0.15
SUMMARY_LIMIT = 6

# Audience tags, never blocked as an activity
RESERVED_ACTIVITY_TAGS = frozenset({"#alle", "#kontakte", DATE_TAG})

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def person_tag(user_id: str) -> str:
    return f"person:{user_id}"


def timeslot_tag(starts_at: datetime) -> str:
    utc = starts_at.astimezone(UTC)
    weekday = (utc.weekday() + 1) % 7
    return f"timeslot:{weekday}:{utc.hour}"


def location_slug(location: str) -> str:
    decomposed = unicodedata.normalize("NFKD", location).lower()
    return _NON_ALNUM.sub("-", decomposed).strip("-")[:LOCATION_SLUG_MAX_LENGTH]


def location_tag(location: str | None) -> str | None:
    slug = location_slug(location) if location else ""
    return f"location:{slug}" if slug else None


def context_tags(event: Event) -> list[str]:
    """person, timeslot and (when the event has one) location tag."""
    tags = [person_tag(event.created_by), timeslot_tag(event.starts_at)]
    location = location_tag(event.location)
    if location:
        tags.append(location)
    return tags


def normalize_decision_reasons(reasons: Iterable[str] | None) -> list[DeclineReason]:
    """Known reason codes only, de-duplicated, in the order given."""
    known = {reason.value for reason in DeclineReason}
    stripped = (reason.strip() for reason in reasons or [])
    return [DeclineReason(reason) for reason in dict.fromkeys(r for r in stripped if r in known)]


def normalize_decision_note(note: str | None) -> str | None:
    normalized = (note or "").strip()
    return normalized[:DECISION_NOTE_MAX_LENGTH] if normalized else None


def compute_feedback_deltas(
    decision: Decision, reasons: list[DeclineReason], event: Event
) -> dict[str, float]:
    """
    Weight change per tag for one decision.

    Every returned tag gets exactly one vote, even when several rules
    contribute to its delta.
    """
    deltas: dict[str, float] = defaultdict(float)
    hashtags = list(dict.fromkeys(event.tags))
    person = person_tag(event.created_by)
    timeslot = timeslot_tag(event.starts_at)
    location = location_tag(event.location)

    if decision is Decision.ACCEPTED:
        for tag in hashtags:
            deltas[tag] += ACCEPT_TAG_STEP
        for tag in context_tags(event):
            deltas[tag] += ACCEPT_CONTEXT_STEP
        return dict(deltas)

    conditional = reasons == [DeclineReason.WOULD_IF_CHANGED]
    for tag in hashtags:
        deltas[tag] += CONDITIONAL_DECLINE_TAG_STEP if conditional else DECLINE_TAG_STEP

    if not reasons:
        for tag in context_tags(event):
            deltas[tag] += DECLINE_CONTEXT_STEP

    if DeclineReason.NOT_WITH_THIS_PERSON in reasons:
        deltas[person] += NOT_WITH_THIS_PERSON_STEP
    if DeclineReason.NOT_THIS_ACTIVITY in reasons:
        for tag in hashtags:
            deltas[tag] += NOT_THIS_ACTIVITY_STEP
    if DeclineReason.NO_TIME in reasons:
        deltas[timeslot] += NO_TIME_STEP
    if location and DeclineReason.TOO_FAR in reasons:
        deltas[location] += TOO_FAR_STEP

    return dict(deltas)


def blocklist_additions(reasons: list[DeclineReason], event: Event) -> tuple[list[str], list[str]]:
    """Creator ids and activity tags a decline adds to the user's blocklists."""
    creators = [event.created_by] if DeclineReason.NOT_WITH_THIS_PERSON in reasons else []
    tags = []
    if DeclineReason.NOT_THIS_ACTIVITY in reasons:
        tags = [tag for tag in event.tags if tag not in RESERVED_ACTIVITY_TAGS]
    return creators, tags


def merge_blocklist(current: Iterable[str], additions: Iterable[str]) -> list[str]:
    stripped = (value.strip() for value in [*current, *additions])
    return list(dict.fromkeys(value for value in stripped if value))


def apply_deltas(
    user_id: str, weights: dict[str, PreferenceWeight], deltas: dict[str, float]
) -> dict[str, PreferenceWeight]:
    """Additive update, creating weights lazily. Returns the touched weights."""
    touched: dict[str, PreferenceWeight] = {}
    for tag, delta in deltas.items():
        current = weights.get(tag) or PreferenceWeight(user_id=user_id, tag=tag, weight=0.0, votes=0)
        current.weight += delta
        current.votes += 1
        weights[tag] = current
        touched[tag] = current
    return touched


def person_label(user_id: str, person_labels: dict[str, str]) -> str:
    return person_labels.get(user_id) or f"Person {user_id[:8]}"


def criterion_label(tag: str, person_labels: dict[str, str] | None = None) -> str:
    person_labels = person_labels or {}

    if tag.startswith("person:"):
        return f"Person: {person_label(tag.removeprefix('person:'), person_labels)}"

    if tag.startswith("timeslot:"):
        weekday_raw, _, hour_raw = tag.removeprefix("timeslot:").partition(":")
        if weekday_raw.isdigit() and hour_raw.isdigit() and int(weekday_raw) < len(_WEEKDAYS):
            return f"Time slot: {_WEEKDAYS[int(weekday_raw)]} {int(hour_raw):02d}:00"

    if tag.startswith("location:"):
        place = tag.removeprefix("location:").replace("-", " ")
        return f"Location: {place or 'unknown'}"

    if tag.startswith("#"):
        return f"Activity: {tag}"

    return f"Signal: {tag}"


def build_learning_summary(
    weights: Iterable[PreferenceWeight],
    person_labels: dict[str, str] | None = None,
    blocked_creator_ids: Iterable[str] = (),
    blocked_activity_tags: Iterable[str] = (),
) -> LearningSummary:
    """Strongest learned likes and dislikes, six of each, plus the blocklists."""
    person_labels = person_labels or {}
    criteria = [
        LearningCriterion(
            key=weight.tag,
            label=criterion_label(weight.tag, person_labels),
            weight=round(weight.weight, 2),
            votes=weight.votes,
        )
        for weight in weights
    ]

    positive = sorted(
        (c for c in criteria if c.weight > SUMMARY_THRESHOLD),
        key=lambda c: (-c.weight, -c.votes),
    )
    negative = sorted(
        (c for c in criteria if c.weight < -SUMMARY_THRESHOLD),
        key=lambda c: (c.weight, -c.votes),
    )
    return LearningSummary(
        positive=positive[:SUMMARY_LIMIT],
        negative=negative[:SUMMARY_LIMIT],
        blocked_people=[
            BlockedPerson(id=user_id, label=person_label(user_id, person_labels))
            for user_id in blocked_creator_ids
        ],
        blocked_activity_tags=list(blocked_activity_tags),
    )
