# realite/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from realite.config import settings
from realite.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Compare-and-delete so a lock is only released by the holder that set it
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

# Refresh the expiry only while the caller still holds the lock
_EXTEND_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class FastRedisClient:
    """Pooled async Redis client used for cross-process plan locks."""

    def __init__(self):
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            self.pool = ConnectionPool.from_url(
                settings.REDIS_URL,
                max_connections=20,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info("Redis client initialized successfully", max_connections=20)

        except Exception as e:
            logger.error("Failed to initialize Redis client", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        if not self._initialized:
            logger.warning("Redis not initialized, attempting to initialize")
            await self.initialize()

    async def ping(self) -> bool:
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def set_if_absent(self, key: str, value: str, ttl_s: int) -> bool:
        """SET NX with expiry. Returns True when the key was created."""
        await self._ensure_initialized()
        result = await self.client.set(key, value, nx=True, ex=ttl_s)
        return bool(result)

    async def delete_if_equals(self, key: str, value: str) -> bool:
        await self._ensure_initialized()
        result = await self.client.eval(_RELEASE_LOCK_SCRIPT, 1, key, value)
        return bool(result)

    async def extend_if_equals(self, key: str, value: str, ttl_s: int) -> bool:
        await self._ensure_initialized()
        result = await self.client.eval(_EXTEND_LOCK_SCRIPT, 1, key, value, ttl_s)
        return bool(result)


# Global instance
fast_redis = FastRedisClient()
