"""
Background worker entrypoint.

    python -m realite.jobs.worker smart_meeting_tick        # loop forever
    python -m realite.jobs.worker smart_meeting_tick_once   # one pass, for cron

The job name comes from the first CLI argument or WORKER_JOB. The database
pool is required; Redis is optional since plan locks degrade to in-process
locks without it.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from realite.db.pool import db_pool
from realite.features.smart_meetings.jobs import (
    run_smart_meeting_tick,
    start_smart_meeting_tick_scheduler,
)
from realite.infrastructure.observability.logging import bind_log_context, get_logger, setup_logging
from realite.services.redis_client import fast_redis

logger = get_logger(__name__)

DEFAULT_JOB = "smart_meeting_tick"


async def _tick_once() -> None:
    metrics = await run_smart_meeting_tick()
    logger.info("Single smart meeting tick finished", **metrics)


JOB_REGISTRY: dict[str, Callable[[], Awaitable[None]]] = {
    "smart_meeting_tick": start_smart_meeting_tick_scheduler,
    "smart_meeting_tick_once": _tick_once,
}


def _resolve_job_name() -> str:
    raw = sys.argv[1] if len(sys.argv) > 1 else os.getenv("WORKER_JOB", DEFAULT_JOB)
    return raw.strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """
    Open shared resources, run the job and close them again.

    Raises:
        ValueError: If the job name is not registered
    """
    name = (job_name or _resolve_job_name()).strip().lower()
    job = JOB_REGISTRY.get(name)
    if job is None:
        raise ValueError(f"Unknown worker job '{name}'. Available jobs: {', '.join(sorted(JOB_REGISTRY))}")

    bind_log_context(job=name)
    logger.info("Worker starting")
    await db_pool.initialize()
    try:
        await fast_redis.initialize()
    except RuntimeError as e:
        logger.warning("Worker running without Redis", error=str(e))

    try:
        await job()
    finally:
        await fast_redis.close()
        await db_pool.close()
        logger.info("Worker stopped")


def main() -> None:
    setup_logging()
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
