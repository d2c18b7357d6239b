"""
Graph executor binding the supervisor, router and workers together.

The graph is fixed:

    supervisor --(Delegate research)--> research_worker --> supervisor
    supervisor --(Delegate reasoning)--> reasoning_worker --> supervisor
    supervisor --(Finalize | Unrecognized)--> terminal

A snapshot is written after every node. When the research worker proposes a
search the snapshot records the resumption point and the turn returns the
interrupt descriptor; ``resume`` later re-enters that call site.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from loguru import logger

from agents.reasoning_agent import ReasoningWorker
from agents.research_agent import ResearchWorker, WorkerStep
from agents.supervisor_agent import Supervisor
from core.decision import latest_instruction, parse_decision, route
from core.errors import (
    InvalidRequestError,
    InvalidStateError,
    OrchestratorError,
    ThreadNotFoundError,
    TurnLimitExceeded,
)
from core.types import (
    Delegate,
    ExecutionSnapshot,
    Finalize,
    Instruction,
    InterruptDescriptor,
    Message,
    NodeName,
    OriginTag,
    ResumePoint,
    Role,
    ThreadStatus,
    Unrecognized,
)
from storage.memory import ThreadStore

NO_DECISION_TEXT = "No decision was reached for this request."


@dataclass
class OrchestratorConfig:
    """Limits and policies for the executor."""
    max_round_trips: int = 25
    unrecognized_retries: int = 0
    lock_policy: str = "reject"  # "reject" or "queue"


@dataclass
class TurnResult:
    """What a start/resume call hands back to the caller."""
    thread_id: str
    status: ThreadStatus
    messages: List[Message] = field(default_factory=list)
    text: Optional[str] = None
    interrupt: Optional[InterruptDescriptor] = None
    degraded: bool = False

    @property
    def interrupted(self) -> bool:
        return self.status == ThreadStatus.SUSPENDED

    def to_response(self) -> Dict[str, Any]:
        messages = [m.to_dict() for m in self.messages]
        if self.interrupted:
            return {
                "type": "interrupted",
                "thread_id": self.thread_id,
                "interrupt_data": self.interrupt.to_dict(),
                "messages": messages,
            }
        return {
            "text": self.text,
            "thread_id": self.thread_id,
            "messages": messages,
            "degraded": self.degraded,
        }


class Orchestrator:
    """Drives the supervisor/worker loop and owns the suspend/resume protocol."""

    def __init__(
        self,
        supervisor: Supervisor,
        research_worker: ResearchWorker,
        reasoning_worker: ReasoningWorker,
        store: ThreadStore,
        config: Optional[OrchestratorConfig] = None,
    ):
        self.supervisor = supervisor
        self.research_worker = research_worker
        self.reasoning_worker = reasoning_worker
        self.store = store
        self.config = config or OrchestratorConfig()

    @property
    def _blocking(self) -> bool:
        return self.config.lock_policy == "queue"

    async def start(
        self,
        query: str,
        thread_id: Optional[str] = None,
        history: Optional[Sequence[Message]] = None,
    ) -> TurnResult:
        """
        Begin a turn on a new or finished thread.

        ``history`` only seeds a thread that has no snapshot yet; an existing
        thread already holds its own authoritative history.

        Raises:
            InvalidRequestError: empty query
            InvalidStateError: the thread is suspended awaiting ``resume``
            ThreadBusyError: another step is running on the thread
        """
        if not query or not query.strip():
            raise InvalidRequestError("Query is required for new conversations.", thread_id=thread_id)
        self.supervisor.ensure_configured()

        thread_id = thread_id or str(uuid.uuid4())
        async with self.store.lock(thread_id, blocking=self._blocking):
            snapshot = await self.store.get(thread_id)
            if snapshot is None:
                snapshot = ExecutionSnapshot(thread_id=thread_id)
                for message in history or []:
                    snapshot.append(message)
            elif snapshot.status == ThreadStatus.SUSPENDED:
                raise InvalidStateError(
                    f"Thread '{thread_id}' is awaiting confirmation; resume it instead",
                    thread_id=thread_id,
                )

            logger.info("Starting turn on thread {}: {}", thread_id, query[:50])
            snapshot.append(Message(role=Role.USER, origin=OriginTag.USER_INPUT, content=query))
            snapshot.status = ThreadStatus.RUNNING
            snapshot.current_node = NodeName.SUPERVISOR
            snapshot.result_text = None
            snapshot.degraded = False
            snapshot.error = None
            await self._persist(snapshot)

            return await self._drive(snapshot)

    async def resume(self, thread_id: str, human_input: Any) -> TurnResult:
        """
        Resolve a suspended thread's pending tool call and continue the turn.

        Raises:
            InvalidRequestError: missing thread id
            ThreadNotFoundError: no such thread
            InvalidStateError: the thread is not suspended
            ThreadBusyError: another step is running on the thread
        """
        if not thread_id:
            raise InvalidRequestError("thread_id is required to resume")
        self.supervisor.ensure_configured()

        async with self.store.lock(thread_id, blocking=self._blocking):
            snapshot = await self.store.get(thread_id)
            if snapshot is None:
                raise ThreadNotFoundError(thread_id)
            if snapshot.status != ThreadStatus.SUSPENDED or snapshot.resume_point != ResumePoint.RESEARCH_TOOL_CALL:
                raise InvalidStateError(
                    f"Thread '{thread_id}' is {snapshot.status.value}, not awaiting confirmation",
                    thread_id=thread_id,
                )

            logger.info("Resuming thread {} at {}", thread_id, snapshot.resume_point.value)
            worker_state = snapshot.worker_state
            snapshot.clear_suspension()
            snapshot.status = ThreadStatus.RUNNING

            return await self._drive(snapshot, resume_state=worker_state, human_input=human_input)

    async def get_thread(self, thread_id: str) -> ExecutionSnapshot:
        snapshot = await self.store.get(thread_id)
        if snapshot is None:
            raise ThreadNotFoundError(thread_id)
        return snapshot

    async def _drive(
        self,
        snapshot: ExecutionSnapshot,
        resume_state: Optional[Dict[str, Any]] = None,
        human_input: Any = None,
    ) -> TurnResult:
        thread_id = snapshot.thread_id
        round_trips = 0
        retries_left = self.config.unrecognized_retries

        try:
            if resume_state is not None:
                step = await self.research_worker.resume(resume_state, human_input, thread_id)
                suspended = await self._apply_worker_step(snapshot, step)
                if suspended:
                    return suspended

            while True:
                node = snapshot.current_node

                if node == NodeName.SUPERVISOR:
                    if round_trips >= self.config.max_round_trips:
                        raise TurnLimitExceeded(self.config.max_round_trips, thread_id=thread_id)
                    round_trips += 1

                    decision = await self.supervisor.decide(snapshot.messages)
                    snapshot.append(decision)
                    instruction = parse_decision(decision.content)
                    next_node = route(instruction)

                    if next_node != NodeName.TERMINAL:
                        logger.info("Thread {}: supervisor -> {}", thread_id, next_node.value)
                        snapshot.current_node = next_node
                        await self._persist(snapshot)
                    elif isinstance(instruction, Unrecognized) and retries_left > 0:
                        retries_left -= 1
                        logger.warning("Thread {}: unrecognized decision, asking supervisor again", thread_id)
                        await self._persist(snapshot)
                    else:
                        return await self._complete(snapshot, instruction)

                elif node == NodeName.RESEARCH_WORKER:
                    step = await self.research_worker.run(self._delegated_task(snapshot), thread_id)
                    suspended = await self._apply_worker_step(snapshot, step)
                    if suspended:
                        return suspended

                elif node == NodeName.REASONING_WORKER:
                    output = await self.reasoning_worker.run(self._delegated_task(snapshot), snapshot.messages)
                    snapshot.append(output)
                    snapshot.current_node = NodeName.SUPERVISOR
                    await self._persist(snapshot)

                else:
                    raise InvalidStateError(f"Thread '{thread_id}' has no node to run", thread_id=thread_id)

        except asyncio.CancelledError:
            # Record the outcome even if the caller cancels again while persisting
            await asyncio.shield(self._fail(snapshot, "Turn cancelled before completion"))
            raise
        except Exception as exc:
            await self._fail(snapshot, exc)
            raise

    @staticmethod
    def _delegated_task(snapshot: ExecutionSnapshot) -> str:
        instruction = latest_instruction(snapshot.messages)
        return instruction.task if isinstance(instruction, Delegate) else ""

    async def _apply_worker_step(self, snapshot: ExecutionSnapshot, step: WorkerStep) -> Optional[TurnResult]:
        """Record a worker's output. Returns the suspended result when it paused."""
        for message in step.messages:
            snapshot.append(message)

        if step.suspended:
            snapshot.suspend(step.interrupt, step.state)
            await self._persist(snapshot)
            logger.info(
                "Thread {} suspended: {} proposes '{}'",
                snapshot.thread_id, step.interrupt.tool_name, step.interrupt.proposed_argument,
            )
            return TurnResult(
                thread_id=snapshot.thread_id,
                status=ThreadStatus.SUSPENDED,
                messages=list(snapshot.messages),
                interrupt=step.interrupt,
            )

        snapshot.current_node = NodeName.SUPERVISOR
        await self._persist(snapshot)
        return None

    async def _complete(self, snapshot: ExecutionSnapshot, instruction: Instruction) -> TurnResult:
        if isinstance(instruction, Finalize):
            text = instruction.answer
            degraded = False
        else:
            text = instruction.raw.strip() or NO_DECISION_TEXT
            degraded = True
            logger.warning("Thread {}: supervisor gave no recognizable decision, ending turn", snapshot.thread_id)

        snapshot.status = ThreadStatus.COMPLETED
        snapshot.current_node = NodeName.TERMINAL
        snapshot.result_text = text
        snapshot.degraded = degraded
        await self._persist(snapshot)
        logger.info("Thread {} completed", snapshot.thread_id)

        return TurnResult(
            thread_id=snapshot.thread_id,
            status=ThreadStatus.COMPLETED,
            messages=list(snapshot.messages),
            text=text,
            degraded=degraded,
        )

    async def _fail(self, snapshot: ExecutionSnapshot, exc: Union[Exception, str]) -> None:
        if isinstance(exc, OrchestratorError) and exc.thread_id is None:
            exc.thread_id = snapshot.thread_id
        logger.error("Thread {} failed: {}", snapshot.thread_id, exc)

        snapshot.status = ThreadStatus.FAILED
        snapshot.error = str(exc)
        snapshot.clear_suspension()
        await self._persist(snapshot)

    async def _persist(self, snapshot: ExecutionSnapshot) -> None:
        snapshot.version += 1
        snapshot.updated_at = datetime.now()
        await self.store.put(snapshot)
