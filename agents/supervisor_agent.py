from typing import Any, List, Optional, Sequence
from dataclasses import dataclass

from loguru import logger

from core.base_agent import Agent, AgentConfig
from core.types import Message, NodeName, OriginTag, Role


@dataclass
class SupervisorConfig(AgentConfig):
    """Configuration for the Supervisor."""
    history_window: int = 3  # Most recent messages shown on each decision


class Supervisor(Agent):
    """
    Supervisor: decides, on every invocation, whether to delegate or finalize.

    It makes exactly one model call over a bounded window of the thread's
    history and returns the raw decision as a ``supervisor-decision``
    message. Parsing that decision belongs to ``core.decision``.
    """

    def __init__(self, config: SupervisorConfig, llm_client: Any):
        super().__init__(config, llm_client)
        self.history_window = config.history_window

    @property
    def node_name(self) -> str:
        return NodeName.SUPERVISOR.value

    def _default_system_prompt(self) -> str:
        return """You are a supervisor coordinating two specialist workers:

1. research_worker: looks up information in external knowledge sources (web and academic search).
   Delegate with exactly: DELEGATE: research_worker; TASK: <detailed research query>
   Every search it proposes is shown to a human for approval first. If a search was rejected you will see that in the history.
2. reasoning_worker: logical analysis, summarization, critique or refinement of text, including earlier research output.
   Delegate with exactly: DELEGATE: reasoning_worker; TASK: <detailed reasoning request>

Rules:
- If the query needs information lookup or new data, delegate to research_worker.
- If it needs analysis or summarization of information already gathered, delegate to reasoning_worker.
- Once enough information is gathered and analyzed, reply with exactly: FINALIZE: <your complete answer to the user>
- Reply with one decision only, starting with DELEGATE: or FINALIZE: and nothing before it."""

    def build_prompt(self, messages: Sequence[Message]) -> List[dict]:
        """Full task framing plus the last few messages of the thread."""
        user_query = self._latest_user_query(messages)
        window = messages[-self.history_window:] if self.history_window > 0 else []
        history = "\n".join(
            f"{msg.role.value} ({msg.origin.value}): {msg.content}" for msg in window
        )

        return [
            {"role": "system", "content": self.get_system_prompt()},
            {
                "role": "user",
                "content": f"""User query: {user_query or "(none)"}

Conversation history (last {len(window)} messages):
{history or "(empty)"}

Your decision (DELEGATE: research_worker; TASK: ..., DELEGATE: reasoning_worker; TASK: ..., or FINALIZE: ...):"""
            },
        ]

    async def decide(self, messages: Sequence[Message]) -> Message:
        """
        Ask the model for the next instruction.

        Raises:
            ConfigurationError: no model client is configured
            ModelCallFailure: the model call failed
        """
        decision = await self._call_llm(self.build_prompt(messages))
        logger.info("Supervisor decision: {}", decision[:100])
        return Message(
            role=Role.ASSISTANT,
            origin=OriginTag.SUPERVISOR_DECISION,
            content=decision,
        )

    @staticmethod
    def _latest_user_query(messages: Sequence[Message]) -> Optional[str]:
        for msg in reversed(messages):
            if msg.origin == OriginTag.USER_INPUT:
                return msg.content
        return None
