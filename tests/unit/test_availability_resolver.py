from datetime import UTC, datetime, timedelta

import pytest

from realite.exceptions import ValidationError
from realite.features.availability import AvailabilityResolver, Interval
from realite.services.calendar.models import BusyWindow
from realite.services.calendar.provider import merge_busy_windows

BASE = datetime(2030, 5, 6, 9, 0, tzinfo=UTC)


def _interval(interval_id, start_hours, end_hours):
    return Interval(id=interval_id, start=BASE + timedelta(hours=start_hours), end=BASE + timedelta(hours=end_hours))


@pytest.mark.asyncio
async def test_overlapping_interval_is_busy(fake_calendar):
    fake_calendar.busy["user-1"] = [BusyWindow(start=BASE + timedelta(hours=1), end=BASE + timedelta(hours=2))]
    resolver = AvailabilityResolver(fake_calendar)

    result = await resolver.compute_availability(
        "user-1",
        [_interval("free", 0, 1), _interval("busy", 1.5, 3), _interval("later", 2, 4)],
    )

    assert result.availability == {"free": True, "busy": False, "later": True}
    assert result.warning is None


@pytest.mark.asyncio
async def test_queries_calendar_once_for_whole_span(fake_calendar):
    resolver = AvailabilityResolver(fake_calendar)

    await resolver.compute_availability("user-1", [_interval("a", 5, 6), _interval("b", 0, 1), _interval("c", 2, 8)])

    assert fake_calendar.busy_calls == [("user-1", BASE, BASE + timedelta(hours=8))]


@pytest.mark.asyncio
async def test_empty_batch_skips_calendar(fake_calendar):
    resolver = AvailabilityResolver(fake_calendar)

    result = await resolver.compute_availability("user-1", [])

    assert result.availability == {}
    assert fake_calendar.busy_calls == []


@pytest.mark.asyncio
async def test_calendar_failure_assumes_free_with_warning(fake_calendar):
    fake_calendar.fail_busy = True
    resolver = AvailabilityResolver(fake_calendar)

    result = await resolver.compute_availability("user-1", [_interval("a", 0, 1), _interval("b", 1, 2)])

    assert result.availability == {"a": True, "b": True}
    assert "free/busy lookup failed" in result.warning


@pytest.mark.asyncio
async def test_no_calendar_access_assumes_free(fake_calendar):
    fake_calendar.busy["user-1"] = None
    resolver = AvailabilityResolver(fake_calendar)

    result = await resolver.compute_availability("user-1", [_interval("a", 0, 1)])

    assert result.is_available("a") is True
    assert result.warning is None


@pytest.mark.asyncio
async def test_inverted_interval_rejected(fake_calendar):
    resolver = AvailabilityResolver(fake_calendar)

    with pytest.raises(ValidationError):
        await resolver.compute_availability("user-1", [_interval("bad", 2, 1)])


def test_touching_windows_do_not_overlap():
    window = BusyWindow(start=BASE, end=BASE + timedelta(hours=1))

    assert window.overlaps(BASE + timedelta(hours=1), BASE + timedelta(hours=2)) is False
    assert window.overlaps(BASE - timedelta(hours=1), BASE) is False
    assert window.overlaps(BASE + timedelta(minutes=59), BASE + timedelta(hours=2)) is True


def test_merge_busy_windows_unions_overlaps():
    windows = [
        BusyWindow(start=BASE + timedelta(hours=3), end=BASE + timedelta(hours=4)),
        BusyWindow(start=BASE, end=BASE + timedelta(hours=1)),
        BusyWindow(start=BASE + timedelta(minutes=30), end=BASE + timedelta(hours=2)),
        BusyWindow(start=BASE + timedelta(hours=4), end=BASE + timedelta(hours=5)),
    ]

    merged = merge_busy_windows(windows)

    assert merged == [
        BusyWindow(start=BASE, end=BASE + timedelta(hours=2)),
        BusyWindow(start=BASE + timedelta(hours=3), end=BASE + timedelta(hours=5)),
    ]
