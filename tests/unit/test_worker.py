from unittest.mock import AsyncMock

import pytest

from realite.jobs import worker


@pytest.fixture
def resources(monkeypatch):
    db_pool = AsyncMock()
    redis = AsyncMock()
    monkeypatch.setattr(worker, "db_pool", db_pool)
    monkeypatch.setattr(worker, "fast_redis", redis)
    return db_pool, redis


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch, resources):
    called = {"ok": False}

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("dummy")

    db_pool, redis = resources
    assert called["ok"] is True
    db_pool.initialize.assert_awaited_once()
    db_pool.close.assert_awaited_once()
    redis.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_worker_without_redis(monkeypatch, resources):
    db_pool, redis = resources
    redis.initialize.side_effect = RuntimeError("Redis initialization failed")
    called = {"ok": False}

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("dummy")

    assert called["ok"] is True


@pytest.mark.asyncio
async def test_run_worker_closes_resources_on_job_error(monkeypatch, resources):
    async def broken_job():
        raise RuntimeError("boom")

    monkeypatch.setitem(worker.JOB_REGISTRY, "broken", broken_job)

    with pytest.raises(RuntimeError):
        await worker.run_worker("broken")

    db_pool, redis = resources
    db_pool.close.assert_awaited_once()
    redis.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_worker_unknown_job(resources):
    with pytest.raises(ValueError):
        await worker.run_worker("missing")

    db_pool, _ = resources
    db_pool.initialize.assert_not_awaited()


def test_job_name_from_env(monkeypatch):
    monkeypatch.setattr(worker.sys, "argv", ["worker"])
    monkeypatch.setenv("WORKER_JOB", " Smart_Meeting_Tick ")

    assert worker._resolve_job_name() == "smart_meeting_tick"


@pytest.mark.asyncio
async def test_single_tick_job(monkeypatch, resources):
    tick = AsyncMock(return_value={"due": 2, "changed": 1, "conflicts": 0, "failed": 0, "errors": []})
    monkeypatch.setattr(worker, "run_smart_meeting_tick", tick)

    await worker.run_worker("smart_meeting_tick_once")

    tick.assert_awaited_once()
