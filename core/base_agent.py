from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional, Sequence
from dataclasses import dataclass
import time
import uuid

from loguru import logger

from .errors import ConfigurationError, ModelCallFailure
from .types import Message, Role


@dataclass
class AgentConfig:
    """Configuration for an agent."""
    name: str
    description: str
    model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.2
    max_tokens: int = 4096
    system_prompt: Optional[str] = None


class Agent(ABC):
    """Base class for the supervisor and worker nodes.

    Agents hold no per-thread state: everything a node needs is passed in
    from the thread's snapshot, so one instance serves every thread.
    """

    failure_class = ModelCallFailure

    def __init__(self, config: AgentConfig, llm_client: Any):
        self.id = f"{self.node_name}-{str(uuid.uuid4())[:8]}"
        self.config = config
        self.llm_client = llm_client

    @property
    @abstractmethod
    def node_name(self) -> str:
        """Name of the graph node this agent runs as."""
        pass

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def description(self) -> str:
        return self.config.description

    def get_system_prompt(self) -> str:
        """Get the system prompt for this agent."""
        if self.config.system_prompt:
            return self.config.system_prompt
        return self._default_system_prompt()

    @abstractmethod
    def _default_system_prompt(self) -> str:
        """Return the default system prompt for this agent type."""
        pass

    def ensure_configured(self) -> None:
        if self.llm_client is None:
            raise ConfigurationError(
                f"{self.name} has no language model configured. "
                "Set ANTHROPIC_API_KEY or OPENAI_API_KEY."
            )

    async def _complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict]] = None
    ) -> Any:
        """Make a call to the LLM and return the first choice's message."""
        self.ensure_configured()
        start_time = time.time()

        kwargs = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            response = await self.llm_client.chat.completions.create(**kwargs)
        except Exception as e:
            raise self.failure_class(f"{self.name} LLM call failed: {e}") from e

        logger.debug("{} LLM call took {}ms", self.name, int((time.time() - start_time) * 1000))
        return response.choices[0].message

    async def _call_llm(self, messages: List[Dict[str, Any]]) -> str:
        """Make a plain text call to the LLM."""
        message = await self._complete(messages)
        return message.content or ""

    @staticmethod
    def format_history(messages: Sequence[Message]) -> List[Dict[str, str]]:
        """Convert thread messages to LLM chat format.

        Tool messages are folded into user turns since they carry no
        tool-call id at the thread level.
        """
        formatted = []
        for msg in messages:
            role = "assistant" if msg.role == Role.ASSISTANT else "user"
            formatted.append({"role": role, "content": msg.content})
        return formatted
