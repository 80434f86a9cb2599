from realite.services.calendar.metadata import (
    CalendarLinkType,
    build_app_url,
    build_calendar_metadata,
    strip_calendar_metadata,
)
from realite.services.calendar.provider import build_event_ref, parse_event_ref

URL = "https://realite.app/e/evt-1"


def test_build_appends_single_block():
    assert build_calendar_metadata("Bring snacks", URL) == (
        "Bring snacks\n\nRealite-Link (automatisch ergänzt): https://realite.app/e/evt-1"
    )


def test_build_without_description():
    assert build_calendar_metadata(None, URL) == "Realite-Link (automatisch ergänzt): https://realite.app/e/evt-1"


def test_rebuilding_is_idempotent():
    once = build_calendar_metadata("Bring snacks", URL)

    assert build_calendar_metadata(once, URL) == once
    assert build_calendar_metadata(build_calendar_metadata(once, URL), URL) == once


def test_strip_removes_older_formats():
    description = (
        "Bring snacks\n\n"
        "Realite-Link (automatisch ergänzt)\nTyp: Event\nURL: https://realite.app/e/old\n\n"
        "Vorschlag von Realite.\nEventseite: https://realite.app/e/x\nAntwortseite: https://realite.app/s/y"
    )

    assert strip_calendar_metadata(description) == "Bring snacks"


def test_strip_returns_none_when_only_metadata_remains():
    assert strip_calendar_metadata(build_calendar_metadata("", URL)) is None
    assert strip_calendar_metadata("\r\n\r\n") is None


def test_app_urls():
    assert build_app_url("https://realite.app/", CalendarLinkType.EVENT, "evt-1") == URL
    assert build_app_url("https://realite.app", CalendarLinkType.SUGGESTION, "sug-1") == "https://realite.app/s/sug-1"


def test_event_refs():
    assert build_event_ref("team@group.calendar.google.com", "abc") == "team@group.calendar.google.com::abc"
    assert parse_event_ref("team@group.calendar.google.com::abc") == ("team@group.calendar.google.com", "abc")
    assert parse_event_ref("legacy-id") == ("primary", "legacy-id")
    assert parse_event_ref("::abc") == ("primary", "abc")
