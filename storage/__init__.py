from .memory import ThreadStore, InMemoryThreadStore
from .redis_store import RedisThreadStore


def create_thread_store(config) -> ThreadStore:
    """Build the thread store named by ``config.thread_store``."""
    if config.thread_store == "redis":
        return RedisThreadStore(redis_url=config.redis_url, ttl=config.thread_ttl_seconds)
    return InMemoryThreadStore()


__all__ = [
    "ThreadStore",
    "InMemoryThreadStore",
    "RedisThreadStore",
    "create_thread_store",
]
