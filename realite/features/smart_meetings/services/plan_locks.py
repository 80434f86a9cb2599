"""
Per-plan serialization.

Inside one process every plan has its own asyncio lock, kept only while
someone holds or waits for it. Across processes a Redis key
`smart_meeting_lock:<plan_id>` keeps two workers from advancing the same plan
at once. The key expires after a short TTL and is refreshed while the block
runs, so a crashed holder frees the plan but a slow one keeps it. When Redis
is unreachable the local lock still applies.
"""

import asyncio
import uuid
import weakref
from contextlib import asynccontextmanager

from realite.config import settings
from realite.exceptions import StateConflictError
from realite.infrastructure.observability.logging import get_logger
from realite.services.redis_client import fast_redis

logger = get_logger(__name__)

LOCK_KEY_PREFIX = "smart_meeting_lock:"


class PlanLockRegistry:
    def __init__(
        self,
        redis_client=None,
        ttl_seconds: int | None = None,
        wait_timeout: float = 10.0,
        poll_interval: float = 0.1,
        renew_interval: float | None = None,
    ):
        self.redis = redis_client or fast_redis
        self.ttl_seconds = ttl_seconds or settings.SMART_MEETING_LOCK_TTL_SECONDS
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval
        self.renew_interval = renew_interval or self.ttl_seconds / 3
        self._local: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _local_lock(self, plan_id: str) -> asyncio.Lock:
        lock = self._local.get(plan_id)
        if lock is None:
            lock = asyncio.Lock()
            self._local[plan_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, plan_id: str):
        """
        Hold the plan lock for the duration of the block.

        Raises:
            StateConflictError: If another process keeps the lock past the wait timeout
        """
        async with self._local_lock(plan_id):
            token = await self._acquire_distributed(plan_id)
            renewal = asyncio.create_task(self._keep_alive(plan_id, token)) if token else None
            try:
                yield
            finally:
                if renewal:
                    renewal.cancel()
                    await asyncio.gather(renewal, return_exceptions=True)
                if token:
                    await self._release_distributed(plan_id, token)

    async def _acquire_distributed(self, plan_id: str) -> str | None:
        key = f"{LOCK_KEY_PREFIX}{plan_id}"
        token = uuid.uuid4().hex
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_timeout

        while True:
            try:
                if await self.redis.set_if_absent(key, token, self.ttl_seconds):
                    return token
            except Exception as e:
                logger.warning("Redis plan lock unavailable, using local lock only", plan_id=plan_id, error=str(e))
                return None

            if loop.time() >= deadline:
                raise StateConflictError(f"Plan {plan_id} is being advanced elsewhere", current_state="locked")
            await asyncio.sleep(self.poll_interval)

    async def _keep_alive(self, plan_id: str, token: str) -> None:
        key = f"{LOCK_KEY_PREFIX}{plan_id}"
        while True:
            await asyncio.sleep(self.renew_interval)
            try:
                still_held = await self.redis.extend_if_equals(key, token, self.ttl_seconds)
            except Exception as e:
                logger.warning("Failed to refresh plan lock", plan_id=plan_id, error=str(e))
                continue
            if not still_held:
                logger.warning("Plan lock expired while held", plan_id=plan_id)
                return

    async def _release_distributed(self, plan_id: str, token: str) -> None:
        try:
            await self.redis.delete_if_equals(f"{LOCK_KEY_PREFIX}{plan_id}", token)
        except Exception as e:
            logger.warning("Failed to release plan lock", plan_id=plan_id, error=str(e))
