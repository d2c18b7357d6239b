"""
LLM Provider abstraction supporting Claude (Anthropic) and OpenAI.

Both clients expose the OpenAI-style ``client.chat.completions.create``
interface the agents call, so the rest of the system never branches on the
provider.

Usage:
    from core.llm import create_llm_client, LLMProvider

    # Use Claude (default/recommended)
    client = create_llm_client(LLMProvider.ANTHROPIC, api_key="...")

    # Or use OpenAI
    client = create_llm_client(LLMProvider.OPENAI, api_key="...")
"""

import json
import os
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from loguru import logger

from .errors import ConfigurationError


class LLMProvider(Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


DEFAULT_MODELS = {
    LLMProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    LLMProvider.OPENAI: "gpt-4o-mini",
}


@dataclass
class FunctionCall:
    name: str
    arguments: str  # JSON-encoded, as in the OpenAI wire format


@dataclass
class ToolCall:
    id: str
    function: FunctionCall
    type: str = "function"


@dataclass
class ChatMessage:
    content: Optional[str]
    tool_calls: Optional[List[ToolCall]] = None
    role: str = "assistant"


@dataclass
class ChatChoice:
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResponse:
    choices: List[ChatChoice]
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)


class AnthropicLLMClient:
    """Wrapper for Anthropic's Claude API with OpenAI-compatible interface."""

    def __init__(self, api_key: str, default_model: str = DEFAULT_MODELS[LLMProvider.ANTHROPIC], base_url: str = None):
        from anthropic import AsyncAnthropic

        if base_url:
            self.client = AsyncAnthropic(api_key=api_key, base_url=base_url)
        else:
            self.client = AsyncAnthropic(api_key=api_key)
        logger.info("Anthropic client using base URL: {}", base_url or os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com"))

        self.default_model = default_model
        self.chat = self  # For compatibility with OpenAI interface
        self.completions = self

    async def create(
        self,
        model: Optional[str] = None,
        messages: List[Dict[str, Any]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
        tools: Optional[List[Dict]] = None,
        tool_choice: Optional[str] = None,  # Claude picks tools on its own
        **kwargs
    ) -> ChatResponse:
        """Create a chat completion using Claude."""
        system_content, chat_messages = self._convert_messages(messages or [])

        request_kwargs = {
            "model": model or self.default_model,
            "max_tokens": max_tokens,
            "messages": chat_messages,
            "temperature": temperature,
        }
        if system_content:
            request_kwargs["system"] = system_content

        claude_tools = self._convert_tools(tools or [])
        if claude_tools:
            request_kwargs["tools"] = claude_tools

        response = await self.client.messages.create(**request_kwargs)
        return self._convert_response(response)

    @staticmethod
    def _convert_messages(messages: List[Dict[str, Any]]):
        """Split out the system prompt and map OpenAI-shaped turns to Claude blocks."""
        system_parts = []
        chat_messages = []

        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content") or ""

            if role == "system":
                system_parts.append(content)
            elif role == "tool":
                # Claude expects tool results as user turns with tool_result blocks
                chat_messages.append({
                    "role": "user",
                    "content": [{
                        "type": "tool_result",
                        "tool_use_id": msg.get("tool_call_id", "unknown"),
                        "content": content if isinstance(content, str) else json.dumps(content),
                    }],
                })
            elif role == "assistant" and msg.get("tool_calls"):
                blocks = []
                if content:
                    blocks.append({"type": "text", "text": content})
                for tc in msg["tool_calls"]:
                    arguments = tc["function"]["arguments"]
                    blocks.append({
                        "type": "tool_use",
                        "id": tc["id"],
                        "name": tc["function"]["name"],
                        "input": json.loads(arguments) if isinstance(arguments, str) else arguments,
                    })
                chat_messages.append({"role": "assistant", "content": blocks})
            else:
                chat_messages.append({"role": role, "content": content})

        return "\n".join(system_parts).strip(), chat_messages

    @staticmethod
    def _convert_tools(tools: List[Dict]) -> List[Dict[str, Any]]:
        return [
            {
                "name": tool["function"]["name"],
                "description": tool["function"].get("description", ""),
                "input_schema": tool["function"].get("parameters", {"type": "object", "properties": {}}),
            }
            for tool in tools
            if tool.get("type") == "function"
        ]

    @staticmethod
    def _convert_response(response: Any) -> ChatResponse:
        """Convert an Anthropic response to the OpenAI-compatible shape."""
        text_content = ""
        tool_calls = []

        for block in response.content:
            if getattr(block, "type", None) == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    function=FunctionCall(name=block.name, arguments=json.dumps(block.input)),
                ))
            elif hasattr(block, "text"):
                text_content += block.text

        return ChatResponse(
            choices=[ChatChoice(
                message=ChatMessage(content=text_content, tool_calls=tool_calls or None),
                finish_reason=response.stop_reason,
            )],
            model=response.model,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )


class OpenAILLMClient:
    """Wrapper for OpenAI API."""

    def __init__(self, api_key: str, default_model: str = DEFAULT_MODELS[LLMProvider.OPENAI], base_url: str = None):
        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.default_model = default_model
        self.chat = self.client.chat
        self.completions = self.client.chat.completions


def create_llm_client(
    provider: LLMProvider = None,
    api_key: str = None,
    model: str = None
) -> Any:
    """
    Create an LLM client based on provider.

    Args:
        provider: LLM provider (anthropic or openai). Auto-detects if not specified.
        api_key: API key. Uses environment variable if not specified.
        model: Model to use. Uses provider default if not specified.

    Returns:
        LLM client with OpenAI-compatible interface

    Raises:
        ConfigurationError: no usable API key for the provider
    """
    if provider is None:
        if api_key or os.getenv("ANTHROPIC_API_KEY"):
            provider = LLMProvider.ANTHROPIC
        elif os.getenv("OPENAI_API_KEY"):
            provider = LLMProvider.OPENAI
        else:
            raise ConfigurationError("No API key found. Set ANTHROPIC_API_KEY or OPENAI_API_KEY")

    if provider == LLMProvider.ANTHROPIC:
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is required")
        # Always use official Anthropic API (ignore global env that might point to proxies)
        return AnthropicLLMClient(
            api_key=api_key,
            default_model=model or get_default_model(provider),
            base_url="https://api.anthropic.com",
        )

    if provider == LLMProvider.OPENAI:
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is required")
        return OpenAILLMClient(api_key=api_key, default_model=model or get_default_model(provider))

    raise ConfigurationError(f"Unknown provider: {provider}")


def get_default_model(provider: LLMProvider) -> str:
    """Get the default model for a provider."""
    return DEFAULT_MODELS.get(provider, DEFAULT_MODELS[LLMProvider.ANTHROPIC])
