import asyncio
import json
from types import SimpleNamespace
from typing import Any, List, Optional

import pytest

from config import Config
from core.llm import ChatChoice, ChatMessage, ChatResponse, FunctionCall, ToolCall
from core.search import SearchBackend
from orchestrator import build_orchestrator
from storage import InMemoryThreadStore


def text_response(content: str) -> ChatResponse:
    """A plain text model reply"""
    return ChatResponse(choices=[ChatChoice(message=ChatMessage(content=content))], model="scripted")


def tool_call_response(query: Any, name: str = "web_search", call_id: str = "call_1") -> ChatResponse:
    """A model reply proposing one tool call"""
    arguments = json.dumps({"query": query}) if isinstance(query, str) else json.dumps(query)
    call = ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))
    return ChatResponse(
        choices=[ChatChoice(message=ChatMessage(content=None, tool_calls=[call]), finish_reason="tool_use")],
        model="scripted",
    )


class ScriptedLLMClient:
    """
    Fake model client with the ``chat.completions.create`` interface.

    Replies are consumed in call order. Strings become text replies,
    exceptions are raised, anything else is returned as-is.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[dict] = []
        self.entered: Optional[asyncio.Event] = None
        self.gate: Optional[asyncio.Event] = None
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self.create))

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    def hold(self) -> None:
        """Block every call until ``release`` is called. Call inside a running loop."""
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    def release(self) -> None:
        self.gate.set()

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.entered is not None:
            self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if not self.responses:
            raise AssertionError("ScriptedLLMClient ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return text_response(response)
        return response

    def system_prompt(self, index: int) -> str:
        messages = self.calls[index]["messages"]
        return next((m["content"] for m in messages if m["role"] == "system"), "")


class FakeSearchBackend(SearchBackend):
    """Search backend recording every query it receives"""

    def __init__(self, name: str = "web_search", error: Optional[Exception] = None):
        self.name = name
        self.error = error
        self.queries: List[str] = []

    async def search(self, query: str, max_results: int = 3) -> str:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return f"Results for '{query}':\n1. {query} overview (https://example.org/{len(self.queries)})"


@pytest.fixture
def llm():
    """Scripted model client shared by the supervisor and both workers"""
    return ScriptedLLMClient()


@pytest.fixture
def web_backend():
    return FakeSearchBackend("web_search")


@pytest.fixture
def academic_backend():
    return FakeSearchBackend("academic_search")


@pytest.fixture
def store():
    return InMemoryThreadStore()


@pytest.fixture
def app_config():
    """Config with rate limiting disabled"""
    return Config(search_min_interval=0.0)


@pytest.fixture
def make_orchestrator(llm, web_backend, academic_backend, store):
    """Factory building an orchestrator over the shared fakes"""

    def _make(**overrides):
        config = Config(search_min_interval=0.0, **overrides)
        return build_orchestrator(
            config,
            llm_client=llm,
            web_backend=web_backend,
            academic_backend=academic_backend,
            store=store,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()
