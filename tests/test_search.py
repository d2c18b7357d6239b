from unittest.mock import AsyncMock

import pytest

from core.errors import ExternalToolFailure
from core.search import (
    MAX_QUERY_LENGTH,
    MockSearchBackend,
    SearchService,
    TavilySearchBackend,
    format_results,
)
from core.tools import Tool
from conftest import FakeSearchBackend


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return AsyncMock()


class TestSearchService:
    """Tests for the cached, rate-limited search service"""

    @pytest.mark.asyncio
    async def test_cache_key_is_normalized(self, clock, sleep):
        backend = FakeSearchBackend()
        service = SearchService(backend, clock=clock, sleep=sleep)

        first = await service.search("Capital of France ")
        second = await service.search("  capital of france")

        assert first == second
        assert backend.queries == ["Capital of France "]
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_long_queries_are_truncated(self, clock, sleep):
        backend = FakeSearchBackend()
        service = SearchService(backend, clock=clock, sleep=sleep)

        await service.search("x" * (MAX_QUERY_LENGTH + 50))

        assert len(backend.queries[0]) == MAX_QUERY_LENGTH

    @pytest.mark.asyncio
    async def test_waits_out_minimum_interval(self, clock, sleep):
        """Test that live calls closer than min_interval are delayed"""
        service = SearchService(FakeSearchBackend(), min_interval=3.0, clock=clock, sleep=sleep)

        await service.search("first")
        clock.now = 1.0
        await service.search("second")

        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_no_wait_after_interval(self, clock, sleep):
        service = SearchService(FakeSearchBackend(), min_interval=3.0, clock=clock, sleep=sleep)

        await service.search("first")
        clock.now = 5.0
        await service.search("second")

        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lru_eviction(self, clock, sleep):
        backend = FakeSearchBackend()
        service = SearchService(backend, min_interval=0.0, cache_size=2, clock=clock, sleep=sleep)

        await service.search("a")
        await service.search("b")
        await service.search("a")
        await service.search("c")
        await service.search("b")

        assert backend.queries == ["a", "b", "c", "b"]

    @pytest.mark.asyncio
    async def test_backend_error_becomes_tool_failure(self, clock, sleep):
        backend = FakeSearchBackend("academic_search", error=ConnectionError("refused"))
        service = SearchService(backend, clock=clock, sleep=sleep)

        with pytest.raises(ExternalToolFailure) as exc_info:
            await service.search("query")

        assert exc_info.value.tool_name == "academic_search"
        assert exc_info.value.detail == "refused"

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, clock, sleep):
        backend = FakeSearchBackend(error=ConnectionError("refused"))
        service = SearchService(backend, min_interval=0.0, clock=clock, sleep=sleep)

        with pytest.raises(ExternalToolFailure):
            await service.search("query")
        backend.error = None
        result = await service.search("query")

        assert "query overview" in result
        assert len(backend.queries) == 2

    @pytest.mark.asyncio
    async def test_clear(self, clock, sleep):
        backend = FakeSearchBackend()
        service = SearchService(backend, clock=clock, sleep=sleep)

        await service.search("a")
        service.clear()
        await service.search("a")

        assert backend.queries == ["a", "a"]
        sleep.assert_not_awaited()


class TestBackends:
    """Tests for concrete search backends"""

    @pytest.mark.asyncio
    async def test_tavily_backend(self):
        client = AsyncMock()
        client.search.return_value = {
            "answer": "CRISPR edits genes.",
            "results": [{"title": "CRISPR review", "url": "https://arxiv.org/abs/1", "content": "A review."}],
        }
        backend = TavilySearchBackend(
            api_key="tvly-test",
            name="academic_search",
            include_domains=["arxiv.org"],
            client=client,
        )

        text = await backend.search("CRISPR", max_results=2)

        client.search.assert_awaited_once_with(
            query="CRISPR",
            search_depth="advanced",
            max_results=2,
            include_domains=["arxiv.org"],
        )
        assert "Summary: CRISPR edits genes." in text
        assert "1. CRISPR review (https://arxiv.org/abs/1)" in text

    @pytest.mark.asyncio
    async def test_mock_backend(self):
        text = await MockSearchBackend().search("quantum computing", max_results=2)
        assert text.startswith("Results for 'quantum computing':")
        assert "3." not in text

    def test_format_no_results(self):
        assert format_results("nothing", []) == "No results found for 'nothing'."


class TestTool:
    """Tests for tool execution"""

    @pytest.mark.asyncio
    async def test_tool_failure_is_a_result(self, clock, sleep):
        service = SearchService(FakeSearchBackend(error=RuntimeError("boom")), clock=clock, sleep=sleep)
        tool = Tool(name="web_search", description="search", func=service.search, requires_confirmation=True)

        result = await tool.execute("q")

        assert result.success is False
        assert result.as_text() == "Error: boom"

    def test_proposed_argument(self):
        tool = Tool(name="web_search", description="search", func=lambda query: query)

        assert tool.proposed_argument({"query": "a"}) == "a"
        assert tool.proposed_argument({"q": "b"}) == "b"
        assert tool.proposed_argument({"q": "b", "r": "c"}) == ""
        assert tool.parameters["required"] == ["query"]
