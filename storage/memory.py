import asyncio
import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from core.errors import ThreadBusyError
from core.types import ExecutionSnapshot


class ThreadStore(ABC):
    """
    Durable mapping from thread id to its latest execution snapshot.

    Stores hand out copies: a snapshot read from the store is only visible to
    other readers once it is written back with ``put``. ``lock`` provides the
    per-thread mutex the orchestrator holds for a whole read-modify-write.
    """

    @abstractmethod
    async def get(self, thread_id: str) -> Optional[ExecutionSnapshot]:
        pass

    @abstractmethod
    async def put(self, snapshot: ExecutionSnapshot) -> None:
        pass

    @abstractmethod
    async def delete(self, thread_id: str) -> bool:
        pass

    @abstractmethod
    def lock(self, thread_id: str, blocking: bool = False):
        """Async context manager guarding one thread.

        Raises:
            ThreadBusyError: the thread is locked and ``blocking`` is False
        """
        pass

    async def close(self) -> None:
        pass


class InMemoryThreadStore(ThreadStore):
    """
    Single-process store. Snapshots are kept in their serialized form so the
    in-memory path exercises the same round trip as an external store.
    """

    def __init__(self):
        self._snapshots: Dict[str, str] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    async def get(self, thread_id: str) -> Optional[ExecutionSnapshot]:
        raw = self._snapshots.get(thread_id)
        if raw is None:
            return None
        return ExecutionSnapshot.from_dict(json.loads(raw))

    async def put(self, snapshot: ExecutionSnapshot) -> None:
        self._snapshots[snapshot.thread_id] = json.dumps(snapshot.to_dict())

    async def delete(self, thread_id: str) -> bool:
        return self._snapshots.pop(thread_id, None) is not None

    @asynccontextmanager
    async def lock(self, thread_id: str, blocking: bool = False) -> AsyncIterator[None]:
        thread_lock = self._locks.setdefault(thread_id, asyncio.Lock())
        if not blocking and thread_lock.locked():
            raise ThreadBusyError(thread_id)
        # Holders include queued waiters; the lock is dropped once none remain
        self._holders[thread_id] = self._holders.get(thread_id, 0) + 1
        try:
            async with thread_lock:
                yield
        finally:
            remaining = self._holders.pop(thread_id, 1) - 1
            if remaining:
                self._holders[thread_id] = remaining
            else:
                self._locks.pop(thread_id, None)

    def thread_ids(self) -> List[str]:
        return list(self._snapshots)

    def clear(self) -> None:
        self._snapshots.clear()
        self._locks.clear()
        self._holders.clear()
