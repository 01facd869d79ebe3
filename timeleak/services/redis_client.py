# timeleak/services/redis_client.py
from typing import Protocol

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class KeyValueStoreError(Exception):
    """Raised by strict operations when the store cannot answer."""

    def __init__(self, message: str, operation: str, key: str):
        super().__init__(message)
        self.operation = operation
        self.key = key


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def get_strict(self, key: str) -> str | None: ...

    async def set_strict(self, key: str, value: str) -> None: ...

    async def set(self, key: str, value: str) -> bool: ...

    async def delete(self, key: str) -> bool: ...

    async def ping(self) -> bool: ...


class RedisKeyValueStore:
    """Pooled Redis client holding the service's small key-value state."""

    def __init__(self, redis_url: str | None = None, pool_config: dict | None = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self.pool_config = pool_config or settings.get_redis_config()
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            logger.info("Attempting Redis connection", url_preview=self.redis_url[:30] + "...")

            self.pool = ConnectionPool.from_url(
                self.redis_url,
                retry_on_timeout=True,
                health_check_interval=30,
                decode_responses=True,
                **self.pool_config,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info(
                "Redis key-value store initialized",
                max_connections=self.pool_config.get("max_connections"),
            )

        except Exception as e:
            logger.error("Failed to initialize Redis key-value store", error=str(e))
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
            logger.info("Redis key-value store closed")
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

    async def get(self, key: str) -> str | None:
        try:
            await self._ensure_initialized()
            result = await self.client.get(key)
            return result if result else None
        except Exception as e:
            logger.error("Redis GET failed", key=key[:60], error=str(e))
            return None

    async def set(self, key: str, value: str) -> bool:
        try:
            await self._ensure_initialized()
            return bool(await self.client.set(key, value))
        except Exception as e:
            logger.error("Redis SET failed", key=key[:60], error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self._ensure_initialized()
            return bool(await self.client.delete(key))
        except Exception as e:
            logger.error("Redis DELETE failed", key=key[:60], error=str(e))
            return False

    async def get_strict(self, key: str) -> str | None:
        """GET that raises instead of reading a failure as a missing key."""
        try:
            await self._ensure_initialized()
            result = await self.client.get(key)
        except Exception as e:
            logger.error("Redis strict GET failed", key=key[:60], error=str(e))
            raise KeyValueStoreError("Redis GET failed", operation="get", key=key) from e
        return result if result else None

    async def set_strict(self, key: str, value: str) -> None:
        try:
            await self._ensure_initialized()
            await self.client.set(key, value)
        except Exception as e:
            logger.error("Redis strict SET failed", key=key[:60], error=str(e))
            raise KeyValueStoreError("Redis SET failed", operation="set", key=key) from e
