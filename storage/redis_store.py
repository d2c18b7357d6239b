import asyncio
import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import LockError, RedisError

from core.errors import ThreadBusyError
from core.types import ExecutionSnapshot
from .memory import ThreadStore


class RedisThreadStore(ThreadStore):
    """
    Redis-backed store for multi-process deployments.

    Snapshots are JSON under ``{prefix}:snapshot:{thread_id}``; the per-thread
    mutex is a Redis lock under ``{prefix}:lock:{thread_id}`` so every worker
    process sees the same exclusion.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "orchestrator",
        ttl: Optional[int] = None,
        lock_timeout: float = 300.0,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.prefix = prefix
        self.ttl = ttl
        self.lock_timeout = lock_timeout
        self._client = client

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            logger.info("Thread store connected to Redis at {}", self.redis_url)
        return self._client

    def _snapshot_key(self, thread_id: str) -> str:
        return f"{self.prefix}:snapshot:{thread_id}"

    def _lock_key(self, thread_id: str) -> str:
        return f"{self.prefix}:lock:{thread_id}"

    async def get(self, thread_id: str) -> Optional[ExecutionSnapshot]:
        raw = await self._get_client().get(self._snapshot_key(thread_id))
        if raw is None:
            return None
        return ExecutionSnapshot.from_dict(json.loads(raw))

    async def put(self, snapshot: ExecutionSnapshot) -> None:
        await self._get_client().set(
            self._snapshot_key(snapshot.thread_id),
            json.dumps(snapshot.to_dict()),
            ex=self.ttl,
        )

    async def delete(self, thread_id: str) -> bool:
        deleted = await self._get_client().delete(self._snapshot_key(thread_id))
        return bool(deleted)

    async def _keep_alive(self, thread_lock, thread_id: str) -> None:
        """Reset the lock expiry every third of ``lock_timeout`` while it is held."""
        while True:
            await asyncio.sleep(self.lock_timeout / 3)
            try:
                await thread_lock.reacquire()
            except LockError as e:
                logger.error("Lost Redis lock for thread {}: {}", thread_id, e)
                return
            except RedisError as e:
                logger.warning("Could not extend Redis lock for thread {}: {}", thread_id, e)

    @asynccontextmanager
    async def lock(self, thread_id: str, blocking: bool = False) -> AsyncIterator[None]:
        thread_lock = self._get_client().lock(self._lock_key(thread_id), timeout=self.lock_timeout)
        acquired = await thread_lock.acquire(blocking=blocking)
        if not acquired:
            raise ThreadBusyError(thread_id)
        keep_alive = asyncio.create_task(self._keep_alive(thread_lock, thread_id))
        try:
            yield
        finally:
            keep_alive.cancel()
            await asyncio.wait([keep_alive])
            try:
                await thread_lock.release()
            except LockError as e:
                # Expired or taken over; the body's own outcome still stands
                logger.warning("Redis lock for thread {} was no longer held at release: {}", thread_id, e)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
