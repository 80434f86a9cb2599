import json
import re
from datetime import UTC, datetime, timedelta

import pytest

from realite.exceptions import CalendarCollaboratorError
from realite.services.calendar.google_client import GoogleCalendarError, GoogleCalendarService
from realite.services.calendar.provider import GoogleCalendarProvider

BASE_URL = "https://www.googleapis.com/calendar/v3"
TIME_MIN = datetime(2030, 5, 6, 0, 0, tzinfo=UTC)
TIME_MAX = datetime(2030, 5, 7, 0, 0, tzinfo=UTC)


def _provider(service, token="token"):
    async def token_lookup(user_id):
        return token

    return GoogleCalendarProvider(service=service, token_lookup=token_lookup)


@pytest.mark.asyncio
async def test_free_busy_parses_busy_periods(httpx_mock):
    service = GoogleCalendarService(base_url=BASE_URL)

    httpx_mock.add_response(
        method="POST",
        url=f"{BASE_URL}/freeBusy",
        json={
            "calendars": {
                "primary": {
                    "busy": [
                        {"start": "2030-05-06T14:00:00Z", "end": "2030-05-06T15:00:00Z"},
                        {"start": "2030-05-06T09:00:00Z", "end": "2030-05-06T10:00:00Z"},
                        {"start": "bogus", "end": "2030-05-06T10:00:00Z"},
                    ]
                }
            }
        },
    )

    windows = await service.query_free_busy("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert [(w.start.hour, w.end.hour) for w in windows] == [(9, 10), (14, 15)]
    body = json.loads(httpx_mock.get_request().content)
    assert body["items"] == [{"id": "primary"}]


@pytest.mark.asyncio
async def test_free_busy_calendar_error(httpx_mock):
    service = GoogleCalendarService(base_url=BASE_URL)

    httpx_mock.add_response(
        method="POST",
        url=f"{BASE_URL}/freeBusy",
        json={"calendars": {"primary": {"errors": [{"reason": "notFound"}]}}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await service.query_free_busy("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert exc.value.error_code == "notFound"


@pytest.mark.asyncio
async def test_calendar_error_mapping(httpx_mock):
    service = GoogleCalendarService(base_url=BASE_URL)

    httpx_mock.add_response(
        method="GET",
        url=re.compile(rf"{re.escape(BASE_URL)}/calendars/primary/events.*"),
        status_code=401,
        json={"error": {"code": 401, "message": "Invalid Credentials"}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await service.list_events("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert exc.value.status_code == 401
    assert "authorization" in str(exc.value).lower()


@pytest.mark.asyncio
async def test_list_events_success(httpx_mock):
    service = GoogleCalendarService(base_url=BASE_URL)

    httpx_mock.add_response(
        method="GET",
        url=re.compile(rf"{re.escape(BASE_URL)}/calendars/primary/events.*"),
        json={
            "items": [
                {
                    "id": "event-1",
                    "status": "confirmed",
                    "summary": "Picknick #alle",
                    "start": {"dateTime": "2030-05-06T10:00:00Z"},
                    "end": {"dateTime": "2030-05-06T12:00:00Z"},
                },
                {
                    "id": "event-2",
                    "summary": "Urlaub",
                    "start": {"date": "2030-05-06"},
                    "end": {"date": "2030-05-07"},
                    "transparency": "transparent",
                },
            ]
        },
    )

    events = await service.list_events("token", TIME_MIN, TIME_MAX)
    await service.close()

    assert [event.id for event in events] == ["event-1", "event-2"]
    assert events[0].start_time == datetime(2030, 5, 6, 10, 0, tzinfo=UTC)
    assert events[1].start_time == datetime(2030, 5, 6, 0, 0, tzinfo=UTC)
    assert events[1].status == "confirmed"
    assert events[1].cancelled is False
    assert httpx_mock.get_request().url.params["singleEvents"] == "true"


@pytest.mark.asyncio
async def test_provider_insert_marks_entry_as_managed(httpx_mock):
    service = GoogleCalendarService(base_url=BASE_URL)
    provider = _provider(service)

    httpx_mock.add_response(
        method="POST",
        url=re.compile(rf"{re.escape(BASE_URL)}/calendars/primary/events.*"),
        json={"id": "evt-9", "summary": "Team lunch"},
    )

    ref = await provider.insert_calendar_event(
        "user-1",
        "primary",
        "Team lunch",
        "Somewhere nice",
        None,
        TIME_MIN + timedelta(hours=12),
        TIME_MIN + timedelta(hours=13),
        attendees=["a@example.com"],
    )
    await service.close()

    assert ref == "primary::evt-9"
    request = httpx_mock.get_request()
    body = json.loads(request.content)
    assert body["extendedProperties"] == {"private": {"realiteManaged": "true"}}
    assert body["attendees"] == [{"email": "a@example.com"}]
    assert body["transparency"] == "opaque"
    assert request.url.params["sendUpdates"] == "all"
    assert request.headers["Authorization"] == "Bearer token"


@pytest.mark.asyncio
async def test_provider_insert_failure_is_collaborator_error(httpx_mock):
    service = GoogleCalendarService(base_url=BASE_URL)
    provider = _provider(service)

    httpx_mock.add_response(
        method="POST",
        url=re.compile(rf"{re.escape(BASE_URL)}/calendars/primary/events.*"),
        status_code=400,
        json={"error": {"code": 400, "message": "Bad Request"}},
    )

    with pytest.raises(CalendarCollaboratorError):
        await provider.insert_calendar_event(
            "user-1", "primary", "Lunch", None, None, TIME_MIN, TIME_MIN + timedelta(hours=1)
        )
    await service.close()


@pytest.mark.asyncio
async def test_provider_without_token_skips_api():
    service = GoogleCalendarService(base_url=BASE_URL)
    provider = _provider(service, token=None)

    assert await provider.get_busy_windows("user-1", TIME_MIN, TIME_MAX) is None
    assert await provider.list_events("user-1", TIME_MIN, TIME_MAX) is None
    assert await provider.sync_decision_status("user-1", "primary::evt", "accepted") is False
    await service.close()


@pytest.mark.asyncio
async def test_provider_free_busy_forbidden_means_no_access(httpx_mock):
    service = GoogleCalendarService(base_url=BASE_URL)
    provider = _provider(service)

    httpx_mock.add_response(
        method="POST",
        url=f"{BASE_URL}/freeBusy",
        status_code=403,
        json={"error": {"code": 403, "message": "Forbidden"}},
    )

    assert await provider.get_busy_windows("user-1", TIME_MIN, TIME_MAX) is None
    await service.close()


@pytest.mark.asyncio
async def test_provider_decision_sync_falls_back_to_primary(httpx_mock):
    service = GoogleCalendarService(base_url=BASE_URL)
    provider = _provider(service)

    httpx_mock.add_response(
        method="PATCH",
        url=f"{BASE_URL}/calendars/team/events/abc",
        status_code=404,
        json={"error": {"code": 404, "message": "Not Found"}},
    )
    httpx_mock.add_response(
        method="PATCH",
        url=f"{BASE_URL}/calendars/primary/events/abc",
        json={"id": "abc", "transparency": "transparent"},
    )

    synced = await provider.sync_decision_status("user-1", "team::abc", "declined")
    await service.close()

    assert synced is True
    requests = httpx_mock.get_requests()
    assert [json.loads(r.content) for r in requests] == [{"transparency": "transparent"}] * 2
