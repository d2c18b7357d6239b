"""
Knowledge-source search for the research worker.

``SearchService`` wraps a backend with a result cache and a minimum interval
between live calls. One service instance is created per process by the
application factory and handed to the research worker; nothing here is
module-global.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from .errors import ExternalToolFailure

MAX_QUERY_LENGTH = 300


class SearchBackend(ABC):
    """A knowledge source returning plain-text results."""

    name: str = "search"

    @abstractmethod
    async def search(self, query: str, max_results: int = 3) -> str:
        """Return formatted results. Raise on source errors."""
        pass


class TavilySearchBackend(SearchBackend):
    """Web search via the Tavily API.

    Passing ``include_domains`` restricts results, which is how the academic
    search variant is built.
    """

    def __init__(
        self,
        api_key: str,
        name: str = "web_search",
        search_depth: str = "advanced",
        include_domains: Optional[List[str]] = None,
        client: Any = None,
    ):
        if client is None:
            from tavily import AsyncTavilyClient
            client = AsyncTavilyClient(api_key=api_key)
        self.client = client
        self.name = name
        self.search_depth = search_depth
        self.include_domains = include_domains or []

    async def search(self, query: str, max_results: int = 3) -> str:
        kwargs: Dict[str, Any] = {
            "query": query,
            "search_depth": self.search_depth,
            "max_results": max_results,
        }
        if self.include_domains:
            kwargs["include_domains"] = self.include_domains

        response = await self.client.search(**kwargs)
        return format_results(query, response.get("results", []), response.get("answer"))


class MockSearchBackend(SearchBackend):
    """Canned results used when no search API key is configured."""

    def __init__(self, name: str = "web_search"):
        self.name = name

    async def search(self, query: str, max_results: int = 3) -> str:
        results = [
            {
                "title": f"Research on: {query}",
                "url": "https://example.com/research",
                "content": f"Comprehensive analysis of {query}. This source provides detailed information and data points relevant to the research topic.",
            },
            {
                "title": f"Expert Analysis: {query}",
                "url": "https://academic.example.edu/paper",
                "content": f"Academic perspective on {query}. Peer-reviewed research with statistical analysis and methodology.",
            },
            {
                "title": f"Latest News: {query}",
                "url": "https://news.example.com/article",
                "content": f"Recent developments regarding {query}. Updated information from reliable news sources.",
            },
        ]
        return format_results(query, results[:max_results])


def format_results(query: str, results: List[Dict[str, Any]], answer: Optional[str] = None) -> str:
    if not results and not answer:
        return f"No results found for '{query}'."

    lines = [f"Results for '{query}':"]
    if answer:
        lines.append(f"Summary: {answer}")
    for i, item in enumerate(results, 1):
        lines.append(f"{i}. {item.get('title', 'Untitled')} ({item.get('url', '')})")
        content = item.get("content", "")
        if content:
            lines.append(f"   {content}")
    return "\n".join(lines)


class SearchService:
    """Cached, rate-limited access to one search backend."""

    def __init__(
        self,
        backend: SearchBackend,
        min_interval: float = 3.0,
        cache_size: int = 256,
        max_results: int = 3,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.backend = backend
        self.min_interval = min_interval
        self.cache_size = cache_size
        self.max_results = max_results
        self._clock = clock
        self._sleep = sleep
        self._cache: "OrderedDict[str, str]" = OrderedDict()
        self._last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.backend.name

    @staticmethod
    def cache_key(query: str) -> str:
        return query.lower().strip()

    async def search(self, query: str) -> str:
        """Search, serving repeats from the cache.

        Raises:
            ExternalToolFailure: the backend failed
        """
        query = query[:MAX_QUERY_LENGTH]
        key = self.cache_key(query)

        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            logger.debug("Using cached {} result for: {}", self.name, query[:30])
            return cached

        async with self._lock:
            await self._wait_for_slot()
            try:
                result = await self.backend.search(query, self.max_results)
            except Exception as e:
                raise ExternalToolFailure(self.name, str(e)) from e
            finally:
                self._last_call = self._clock()

        self._store(key, result)
        return result

    async def _wait_for_slot(self) -> None:
        if self._last_call is None:
            return
        elapsed = self._clock() - self._last_call
        if elapsed < self.min_interval:
            wait = self.min_interval - elapsed
            logger.info("Rate limiting: waiting {:.2f}s before next {} call", wait, self.name)
            await self._sleep(wait)

    def _store(self, key: str, result: str) -> None:
        self._cache[key] = result
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

    def clear(self) -> None:
        self._cache.clear()
        self._last_call = None
