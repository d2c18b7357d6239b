"""
Decision parsing and routing.

The supervisor model only returns free text, so its decision is encoded as a
literal prefix:

    DELEGATE: research_worker; TASK: <research query>
    DELEGATE: reasoning_worker; TASK: <analysis request>
    FINALIZE: <answer for the user>

``parse_decision`` turns that text into an ``Instruction`` right away and
``route`` picks the next graph node from it. Nothing downstream sees the raw
string.
"""

from typing import Iterable, Optional

from .types import (
    Delegate,
    Finalize,
    Instruction,
    Message,
    NodeName,
    OriginTag,
    Unrecognized,
    WorkerName,
)

DELEGATE_PREFIX = "DELEGATE:"
TASK_SEPARATOR = "; TASK:"
FINALIZE_PREFIX = "FINALIZE:"

_WORKERS = {worker.value: worker for worker in WorkerName}

_ROUTES = {
    WorkerName.RESEARCH: NodeName.RESEARCH_WORKER,
    WorkerName.REASONING: NodeName.REASONING_WORKER,
}


def parse_decision(text: str) -> Instruction:
    """Map a supervisor response to a typed instruction.

    Matching is a case-sensitive literal prefix match on the stripped text.
    Anything that does not match exactly is reported as ``Unrecognized``.
    """
    stripped = (text or "").strip()

    if stripped.startswith(DELEGATE_PREFIX):
        body = stripped[len(DELEGATE_PREFIX):]
        worker_name, separator, task = body.partition(TASK_SEPARATOR)
        worker = _WORKERS.get(worker_name.strip())
        if not separator or worker is None:
            return Unrecognized(raw=text)
        return Delegate(target=worker, task=task.strip())

    if stripped.startswith(FINALIZE_PREFIX):
        return Finalize(answer=stripped[len(FINALIZE_PREFIX):].strip())

    return Unrecognized(raw=text)


def route(instruction: Instruction) -> NodeName:
    """Select the node that runs after the supervisor. Fails closed."""
    if isinstance(instruction, Delegate):
        return _ROUTES[instruction.target]
    return NodeName.TERMINAL


def latest_instruction(messages: Iterable[Message]) -> Optional[Instruction]:
    """Re-derive the instruction from the newest supervisor decision, if any."""
    for message in reversed(list(messages)):
        if message.origin == OriginTag.SUPERVISOR_DECISION:
            return parse_decision(message.content)
    return None
