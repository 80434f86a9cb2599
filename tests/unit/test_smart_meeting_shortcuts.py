from datetime import UTC, datetime, timedelta

from realite.features.smart_meetings.api.router import draft_from_request
from realite.features.smart_meetings.api.schemas import CreateSmartMeetingRequest
from realite.features.smart_meetings.domain.shortcuts import parse_shortcuts

START = datetime(2030, 5, 6, 9, 0, tzinfo=UTC)


def test_parses_and_strips_known_tokens():
    config = parse_shortcuts("Grillen !smart !min=4 !frist=12h !versuche3 am See")

    assert config.enabled is True
    assert config.cleaned_title == "Grillen am See"
    assert config.min_accepted_participants == 4
    assert config.response_window_hours == 12
    assert config.max_attempts == 3


def test_values_are_clamped():
    config = parse_shortcuts("Lauf !min=80 !frist=999 !fenster=1h !slot=5m !attempts=20")

    assert config.min_accepted_participants == 50
    assert config.response_window_hours == 336
    assert config.search_window_hours == 2
    assert config.slot_interval_minutes == 15
    assert config.max_attempts == 10


def test_unknown_tokens_stay_in_title():
    config = parse_shortcuts("Kino !wow !min=abc")

    assert config.enabled is False
    assert config.cleaned_title == "Kino !wow !min=abc"
    assert config.min_accepted_participants is None


def test_plain_title_is_untouched():
    config = parse_shortcuts("Abendessen bei Mia")

    assert config.enabled is False
    assert config.cleaned_title == "Abendessen bei Mia"


def test_explicit_fields_win_over_shortcuts():
    request = CreateSmartMeetingRequest(
        group_id="group-1",
        title="Grillen !min=4 !frist=12h !fenster=48h",
        search_window_start=START,
        min_accepted_participants=3,
    )

    draft = draft_from_request(request, "organizer")

    assert draft.title == "Grillen"
    assert draft.min_accepted_participants == 3
    assert draft.response_window_hours == 12
    assert draft.search_window_end == START + timedelta(hours=48)
    assert draft.created_by == "organizer"


def test_defaults_fill_omitted_fields():
    request = CreateSmartMeetingRequest(group_id="group-1", title="Brunch", search_window_start=START)

    draft = draft_from_request(request, "organizer")

    assert draft.min_accepted_participants == 2
    assert draft.search_window_end == START + timedelta(days=7)
    assert draft.response_window_hours is None
    assert draft.max_attempts is None
