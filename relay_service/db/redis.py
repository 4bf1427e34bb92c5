import logging
from contextlib import asynccontextmanager

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..errors import BackendError, NotFoundError, bounded

logger = logging.getLogger(__name__)


class RedisBackend:
    """TTL-aware list and scalar operations over a single Redis client.

    Keys are opaque strings. There are no transactions across keys, and the
    read-then-write helpers (``append_unique``) are not atomic against other
    writers to the same key.

    Every call is bounded by ``timeout`` seconds; running out of time raises
    ``OperationCancelled`` and any Redis failure raises ``BackendError``.
    """

    def __init__(self, client: Redis, timeout: float = 5.0):
        self.client = client
        self.timeout = timeout

    @classmethod
    async def open(cls, settings) -> "RedisBackend":
        client = Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_user,
            password=settings.redis_password,
            db=settings.redis_db,
            decode_responses=True,
        )
        backend = cls(client, timeout=settings.backend_timeout_seconds)
        try:
            await backend.ping()
        except BackendError:
            await client.aclose()
            raise
        return backend

    async def ping(self) -> bool:
        async with self._call("ping"):
            return bool(await self.client.ping())

    async def append(self, key: str, items: list[str], ttl: int) -> None:
        """RPUSH ``items`` (if any) and refresh the key's expiry."""
        async with self._call(f"append {key}"):
            if items:
                await self.client.rpush(key, *items)
            await self.client.expire(key, ttl)

    async def append_unique(self, key: str, items: list[str], ttl: int) -> list[str]:
        """Append the items not already stored under ``key``.

        The expiry is refreshed even when nothing new was appended. Returns the
        items that were actually pushed.
        """
        existing = set(await self.range(key))
        to_add = []
        for item in items:
            if item not in existing:
                existing.add(item)
                to_add.append(item)
        await self.append(key, to_add, ttl)
        return to_add

    async def range(self, key: str) -> list[str]:
        """Full list stored under ``key``; empty when the key is absent."""
        async with self._call(f"range {key}"):
            return await self.client.lrange(key, 0, -1)

    async def delete(self, key: str) -> None:
        async with self._call(f"delete {key}"):
            await self.client.delete(key)

    async def remove_one(self, key: str, value: str, ttl: int) -> int:
        """Remove the first element equal to ``value`` and refresh the expiry."""
        async with self._call(f"remove from {key}"):
            removed = await self.client.lrem(key, 1, value)
            await self.client.expire(key, ttl)
        return removed

    async def set_scalar(self, key: str, value: str, ttl: int) -> None:
        async with self._call(f"set {key}"):
            await self.client.set(key, value, ex=ttl)

    async def get_scalar(self, key: str) -> str:
        async with self._call(f"get {key}"):
            value = await self.client.get(key)
        if value is None:
            raise NotFoundError(f"{key} not found")
        return value

    async def close(self) -> None:
        await self.client.aclose()

    @asynccontextmanager
    async def _call(self, what: str):
        try:
            async with bounded(what, self.timeout):
                yield
        except RedisError as e:
            logger.error("Redis call failed (%s): %s", what, e)
            raise BackendError(f"fail to {what}: {e}") from e
