import json
from typing import Dict, Any, Optional, List, Mapping
from dataclasses import dataclass, field

from loguru import logger

from core.base_agent import Agent, AgentConfig
from core.errors import InvalidStateError
from core.search import SearchService
from core.tools import Tool, ToolRegistry
from core.types import InterruptDescriptor, Message, NodeName, OriginTag, Role

REJECTION_MARKERS = {"rejected", "reject", "deny", "denied"}
APPROVED_VALUE_KEYS = ("approved_query", "query", "value")
MAX_TOOL_MESSAGE_CHARS = 2000


@dataclass
class ResearchAgentConfig(AgentConfig):
    """Configuration specific to the Research Worker."""
    max_tool_rounds: int = 5


@dataclass
class ToolDecision:
    """How a human resolved a proposed tool call."""
    approved: bool
    argument: Optional[str] = None


def resolve_human_input(human_input: Any) -> ToolDecision:
    """
    Interpret a resume payload for a pending tool call.

    In priority order:
    - a non-blank string is the approved argument, verbatim
    - a mapping with an explicit rejection marker rejects
    - a mapping carrying a non-blank string under one of
      ``APPROVED_VALUE_KEYS`` approves that value
    Anything else is a rejection; unclear input never runs the original
    proposal.
    """
    if isinstance(human_input, str):
        if human_input.strip():
            return ToolDecision(approved=True, argument=human_input)
        return ToolDecision(approved=False)

    if isinstance(human_input, Mapping):
        for key in ("status", "type", "action"):
            marker = human_input.get(key)
            if isinstance(marker, str) and marker.strip().lower() in REJECTION_MARKERS:
                return ToolDecision(approved=False)
        for key in APPROVED_VALUE_KEYS:
            value = human_input.get(key)
            if isinstance(value, str) and value.strip():
                return ToolDecision(approved=True, argument=value)

    return ToolDecision(approved=False)


@dataclass
class ResearchState:
    """The research worker's scratch state, persisted while suspended."""
    task: str
    transcript: List[Dict[str, Any]] = field(default_factory=list)
    rounds: int = 0
    pending_call: Optional[Dict[str, Any]] = None
    source_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.task,
            "transcript": self.transcript,
            "rounds": self.rounds,
            "pending_call": self.pending_call,
            "source_errors": self.source_errors,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResearchState":
        return cls(
            task=data["task"],
            transcript=list(data.get("transcript", [])),
            rounds=data.get("rounds", 0),
            pending_call=data.get("pending_call"),
            source_errors=list(data.get("source_errors", [])),
        )


@dataclass
class WorkerStep:
    """Outcome of running a worker up to completion or suspension."""
    messages: List[Message] = field(default_factory=list)
    interrupt: Optional[InterruptDescriptor] = None
    state: Optional[Dict[str, Any]] = None

    @property
    def suspended(self) -> bool:
        return self.interrupt is not None


class ResearchWorker(Agent):
    """
    Research Worker: bounded tool-use loop against external knowledge sources.

    Every search the model proposes suspends the worker before the call is
    made. ``resume`` re-enters that exact call site with the human's
    resolution, runs (or skips) the search and carries on with the loop.
    """

    def __init__(
        self,
        config: ResearchAgentConfig,
        llm_client: Any,
        web_search: SearchService,
        academic_search: Optional[SearchService] = None,
    ):
        super().__init__(config, llm_client)
        self.max_tool_rounds = config.max_tool_rounds

        self.tool_registry = ToolRegistry()
        self._register_tools(web_search, academic_search)

    @property
    def node_name(self) -> str:
        return NodeName.RESEARCH_WORKER.value

    def _register_tools(self, web_search: SearchService, academic_search: Optional[SearchService]) -> None:
        """Register available tools for this worker."""
        self.tool_registry.register(Tool(
            name="web_search",
            description="Search general knowledge sources (encyclopedia and web) for a topic. Returns titles, URLs and content snippets.",
            func=web_search.search,
            requires_confirmation=True,
        ))
        if academic_search is not None:
            self.tool_registry.register(Tool(
                name="academic_search",
                description="Search academic papers and scholarly sources for a topic.",
                func=academic_search.search,
                requires_confirmation=True,
            ))

    def _default_system_prompt(self) -> str:
        return """You are a research agent that helps users find information.

Use the search tools to gather facts before answering. Propose one search at a time; each search is reviewed by a human who may edit or reject it.
If a search is rejected or fails, do not repeat it verbatim. Either try a different search or answer with what you have.

When you have enough information, reply WITHOUT calling a tool:
- answer the research task directly
- cite which search result each claim comes from
- say explicitly when results were missing or limited"""

    async def run(self, task: str, thread_id: str) -> WorkerStep:
        """Start researching ``task``. Returns a completed or suspended step."""
        if not task or not task.strip():
            logger.warning("Research worker: no task provided on thread {}", thread_id)
            return WorkerStep(messages=[self._output("ResearchWorker: No task provided or error in task format.")])

        state = ResearchState(
            task=task,
            transcript=[
                {"role": "system", "content": self.get_system_prompt()},
                {"role": "user", "content": f"Research task: {task}"},
            ],
        )
        return await self._advance(state, thread_id, [])

    async def resume(self, state_data: Dict[str, Any], human_input: Any, thread_id: str) -> WorkerStep:
        """Resolve the pending tool call with ``human_input`` and continue."""
        state = ResearchState.from_dict(state_data)
        call = state.pending_call
        if not call:
            raise InvalidStateError("Research worker has no pending tool call", thread_id=thread_id)

        tool = self.tool_registry.get(call["name"])
        if tool is None:
            raise InvalidStateError(f"Tool '{call['name']}' is no longer registered", thread_id=thread_id)
        proposed = call["proposed_argument"]
        decision = resolve_human_input(human_input)
        emitted: List[Message] = []

        if decision.approved:
            logger.info("Thread {}: {} approved with '{}'", thread_id, call["name"], decision.argument)
            result = await tool.execute(decision.argument)
            tool_text = result.as_text()
            if not result.success:
                state.source_errors.append(f"{call['name']}('{decision.argument}'): {result.error}")
            emitted.append(Message(
                role=Role.TOOL,
                origin=OriginTag.TOOL_RESULT,
                content=f"{call['name']}('{decision.argument}') returned:\n{tool_text[:MAX_TOOL_MESSAGE_CHARS]}",
            ))
        else:
            logger.info("Thread {}: {} rejected for '{}'", thread_id, call["name"], proposed)
            tool_text = (
                f"The user rejected this {call['name']} call for '{proposed}'. "
                "No search was executed. Continue with the information you have or propose a different search."
            )
            emitted.append(Message(
                role=Role.TOOL,
                origin=OriginTag.TOOL_RESULT,
                content=f"Human rejected {call['name']} for '{proposed}'. No search was executed.",
            ))

        state.transcript.append({"role": "tool", "tool_call_id": call["id"], "content": tool_text})
        state.pending_call = None
        state.rounds += 1
        return await self._advance(state, thread_id, emitted)

    async def _advance(self, state: ResearchState, thread_id: str, emitted: List[Message]) -> WorkerStep:
        """Run the decide/propose loop until the worker answers or suspends."""
        while state.rounds < self.max_tool_rounds:
            message = await self._complete(state.transcript, tools=self.tool_registry.to_openai_format())
            if not message.tool_calls:
                return self._finish(state, message.content, emitted)

            # One proposal at a time: each is confirmed separately
            call = message.tool_calls[0]
            name = call.function.name
            arguments = self._parse_arguments(call.function.arguments)
            state.transcript.append({
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [{
                    "id": call.id,
                    "type": "function",
                    "function": {"name": name, "arguments": json.dumps(arguments)},
                }],
            })

            tool = self.tool_registry.get(name)
            if tool is None:
                state.transcript.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": f"Error: Tool '{name}' not found",
                })
                state.rounds += 1
                continue

            proposed = tool.proposed_argument(arguments)
            if tool.requires_confirmation:
                state.pending_call = {
                    "id": call.id,
                    "name": name,
                    "proposed_argument": proposed,
                }
                logger.info("Thread {}: research worker proposes {}('{}'), awaiting confirmation", thread_id, name, proposed)
                return WorkerStep(
                    messages=emitted,
                    interrupt=InterruptDescriptor(tool_name=name, proposed_argument=proposed, thread_id=thread_id),
                    state=state.to_dict(),
                )

            result = await tool.execute(proposed)
            state.transcript.append({"role": "tool", "tool_call_id": call.id, "content": result.as_text()})
            state.rounds += 1

        logger.info("Thread {}: research worker used all {} tool rounds", thread_id, self.max_tool_rounds)
        final = await self._complete(state.transcript + [{
            "role": "user",
            "content": "The search budget is used up. Answer the research task now with the information gathered.",
        }])
        return self._finish(state, final.content, emitted)

    def _finish(self, state: ResearchState, content: Optional[str], emitted: List[Message]) -> WorkerStep:
        content = content or "ResearchWorker: No content."
        if state.source_errors:
            errors = "\n".join(f"- {error}" for error in state.source_errors)
            content = f"{content}\n\nNote: some sources failed during research:\n{errors}"
        emitted.append(self._output(content))
        return WorkerStep(messages=emitted)

    @staticmethod
    def _output(content: str) -> Message:
        return Message(role=Role.ASSISTANT, origin=OriginTag.RESEARCH_OUTPUT, content=content)

    @staticmethod
    def _parse_arguments(arguments: Any) -> Dict[str, Any]:
        if isinstance(arguments, dict):
            return arguments
        try:
            parsed = json.loads(arguments or "{}")
        except json.JSONDecodeError:
            # Some models send the bare query string
            return {"query": arguments}
        return parsed if isinstance(parsed, dict) else {"query": str(parsed)}
