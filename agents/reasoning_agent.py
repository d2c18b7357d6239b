from typing import Any, Optional, Sequence
from dataclasses import dataclass

from loguru import logger

from core.base_agent import Agent, AgentConfig
from core.errors import ReasoningFailure
from core.types import Message, NodeName, OriginTag, Role


@dataclass
class ReasoningAgentConfig(AgentConfig):
    """Configuration specific to the Reasoning Worker."""
    recent_messages: int = 5
    temperature: float = 0.7


class ReasoningWorker(Agent):
    """
    Reasoning Worker: single-turn synthesis, summarization and critique.

    Stateless and never suspends. Context is every ``research-output``
    message gathered on the thread so far.
    """

    failure_class = ReasoningFailure

    def __init__(self, config: ReasoningAgentConfig, llm_client: Any):
        super().__init__(config, llm_client)
        self.recent_messages = config.recent_messages

    @property
    def node_name(self) -> str:
        return NodeName.REASONING_WORKER.value

    def _default_system_prompt(self) -> str:
        return """You are an advanced reasoning agent. Your goal is to provide clear, concise, and well-summarized logical analyses.

Please adhere to the following guidelines:
1. Summarize Key Findings: Focus on a summarized version of the logical steps and conclusions.
2. Clarity and Precision: Use precise language. Avoid ambiguity.
3. Step-by-Step (Brief): Briefly outline the main steps in your reasoning, but keep it high-level.
4. Direct Answer: Provide a direct and synthesized answer to the request.
5. Logical Soundness: Point out claims in the context that are unsupported or contradict each other.

Respond with a refined and summarized logical analysis."""

    @staticmethod
    def gather_context(messages: Sequence[Message]) -> str:
        return "\n\n".join(
            msg.content for msg in messages if msg.origin == OriginTag.RESEARCH_OUTPUT
        )

    @staticmethod
    def derive_task(messages: Sequence[Message]) -> Optional[str]:
        """Quote the most recent non-supervisor message when no task was given."""
        for msg in reversed(messages):
            if msg.origin != OriginTag.SUPERVISOR_DECISION and msg.content.strip():
                return f"Analyze and summarize the following: {msg.content}"
        return None

    async def run(self, task: Optional[str], messages: Sequence[Message]) -> Message:
        """
        Produce a ``reasoning-output`` message for ``task``.

        Raises:
            ConfigurationError: no model client is configured
            ReasoningFailure: the model call failed
        """
        task = (task or "").strip() or self.derive_task(messages)
        if not task:
            return Message(
                role=Role.ASSISTANT,
                origin=OriginTag.REASONING_OUTPUT,
                content="ReasoningWorker: No task or sufficient context provided.",
            )

        context_text = self.gather_context(messages)
        recent = [
            msg for msg in messages
            if msg.origin in (OriginTag.USER_INPUT, OriginTag.PRIOR_TURN)
        ][-self.recent_messages:]

        prompt = [
            {
                "role": "system",
                "content": f"{self.get_system_prompt()}\n\nContext for your reasoning:\n{context_text or 'No additional context provided.'}",
            },
            *self.format_history(recent),
            {"role": "user", "content": task},
        ]

        logger.info("Reasoning worker: task={} context_chars={}", task[:100], len(context_text))
        answer = await self._call_llm(prompt)
        return Message(role=Role.ASSISTANT, origin=OriginTag.REASONING_OUTPUT, content=answer)
