from types import SimpleNamespace

import pytest

from core.errors import ConfigurationError
from core.llm import AnthropicLLMClient, LLMProvider, create_llm_client, get_default_model


class TestCreateLLMClient:
    """Tests for provider selection"""

    def test_no_keys(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ConfigurationError):
            create_llm_client()

    def test_openai_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ConfigurationError) as exc_info:
            create_llm_client(LLMProvider.OPENAI)

        assert "OPENAI_API_KEY" in str(exc_info.value)

    def test_default_models(self):
        assert get_default_model(LLMProvider.OPENAI) == "gpt-4o-mini"
        assert get_default_model(LLMProvider.ANTHROPIC).startswith("claude")


class TestAnthropicConversion:
    """Tests for mapping between the OpenAI-style and Claude formats"""

    def test_convert_messages(self):
        system, messages = AnthropicLLMClient._convert_messages([
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Research task: capital of France"},
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [{
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "web_search", "arguments": '{"query": "capital of France"}'},
                }],
            },
            {"role": "tool", "tool_call_id": "call_1", "content": "Paris"},
        ])

        assert system == "Be brief."
        assert messages[1] == {
            "role": "assistant",
            "content": [{
                "type": "tool_use",
                "id": "call_1",
                "name": "web_search",
                "input": {"query": "capital of France"},
            }],
        }
        assert messages[2]["role"] == "user"
        assert messages[2]["content"][0] == {"type": "tool_result", "tool_use_id": "call_1", "content": "Paris"}

    def test_convert_tools(self):
        tools = AnthropicLLMClient._convert_tools([{
            "type": "function",
            "function": {"name": "web_search", "description": "Search", "parameters": {"type": "object"}},
        }])

        assert tools == [{"name": "web_search", "description": "Search", "input_schema": {"type": "object"}}]

    def test_convert_response_with_tool_use(self):
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Let me search."),
                SimpleNamespace(type="tool_use", id="toolu_1", name="web_search", input={"query": "Paris"}),
            ],
            stop_reason="tool_use",
            model="claude-test",
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        )

        converted = AnthropicLLMClient._convert_response(response)

        message = converted.choices[0].message
        assert message.content == "Let me search."
        assert message.tool_calls[0].id == "toolu_1"
        assert message.tool_calls[0].function.name == "web_search"
        assert message.tool_calls[0].function.arguments == '{"query": "Paris"}'
        assert converted.usage == {"input_tokens": 10, "output_tokens": 5}
