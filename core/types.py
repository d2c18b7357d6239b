from enum import Enum
from typing import List, Dict, Any, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime


class Role(Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class OriginTag(Enum):
    USER_INPUT = "user-input"
    PRIOR_TURN = "prior-turn"
    SUPERVISOR_DECISION = "supervisor-decision"
    RESEARCH_OUTPUT = "research-output"
    REASONING_OUTPUT = "reasoning-output"
    TOOL_RESULT = "tool-result"


class ThreadStatus(Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkerName(Enum):
    RESEARCH = "research_worker"
    REASONING = "reasoning_worker"


class NodeName(Enum):
    SUPERVISOR = "supervisor"
    RESEARCH_WORKER = "research_worker"
    REASONING_WORKER = "reasoning_worker"
    TERMINAL = "terminal"


class InterruptKind(Enum):
    TOOL_CONFIRMATION = "tool_confirmation"


class ResumePoint(Enum):
    NONE = "none"
    RESEARCH_TOOL_CALL = "research_tool_call"


@dataclass
class Message:
    role: Role
    origin: OriginTag
    content: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "origin": self.origin.value,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Build a message from its dict form.

        Caller-supplied history usually carries only ``role`` and ``content``;
        the origin then defaults from the role.
        """
        role = Role(data.get("role", "user"))
        origin_value = data.get("origin")
        if origin_value:
            origin = OriginTag(origin_value)
        elif role == Role.USER:
            origin = OriginTag.USER_INPUT
        else:
            origin = OriginTag.PRIOR_TURN

        created_at = data.get("created_at")
        return cls(
            role=role,
            origin=origin,
            content=str(data.get("content", "")),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
        )


@dataclass(frozen=True)
class Delegate:
    """Hand a sub-task to one of the workers."""
    target: WorkerName
    task: str


@dataclass(frozen=True)
class Finalize:
    """End the turn with an answer for the user."""
    answer: str


@dataclass(frozen=True)
class Unrecognized:
    """Supervisor output that matched no known decision form."""
    raw: str


Instruction = Union[Delegate, Finalize, Unrecognized]


@dataclass
class InterruptDescriptor:
    """A confirmation request surfaced to the caller while a thread is suspended."""
    tool_name: str
    proposed_argument: str
    thread_id: str = ""
    kind: InterruptKind = InterruptKind.TOOL_CONFIRMATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "tool_name": self.tool_name,
            "proposed_query": self.proposed_argument,
        }

    def to_state(self) -> Dict[str, Any]:
        return {**self.to_dict(), "thread_id": self.thread_id}

    @classmethod
    def from_state(cls, data: Dict[str, Any]) -> "InterruptDescriptor":
        return cls(
            tool_name=data["tool_name"],
            proposed_argument=data["proposed_query"],
            thread_id=data.get("thread_id", ""),
            kind=InterruptKind(data.get("type", InterruptKind.TOOL_CONFIRMATION.value)),
        )


@dataclass
class ExecutionSnapshot:
    """Durable, resumable record of a thread's execution position."""
    thread_id: str
    status: ThreadStatus = ThreadStatus.RUNNING
    current_node: NodeName = NodeName.SUPERVISOR
    messages: List[Message] = field(default_factory=list)

    # Suspension
    pending_interrupt: Optional[InterruptDescriptor] = None
    resume_point: ResumePoint = ResumePoint.NONE
    worker_state: Dict[str, Any] = field(default_factory=dict)

    # Outcome of the last turn
    result_text: Optional[str] = None
    degraded: bool = False
    error: Optional[str] = None

    version: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def append(self, message: Message) -> None:
        self.messages.append(message)

    def suspend(self, interrupt: InterruptDescriptor, worker_state: Dict[str, Any]) -> None:
        self.status = ThreadStatus.SUSPENDED
        self.current_node = NodeName.RESEARCH_WORKER
        self.pending_interrupt = interrupt
        self.resume_point = ResumePoint.RESEARCH_TOOL_CALL
        self.worker_state = worker_state

    def clear_suspension(self) -> None:
        self.pending_interrupt = None
        self.resume_point = ResumePoint.NONE
        self.worker_state = {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "thread_id": self.thread_id,
            "status": self.status.value,
            "current_node": self.current_node.value,
            "messages": [m.to_dict() for m in self.messages],
            "pending_interrupt": self.pending_interrupt.to_state() if self.pending_interrupt else None,
            "resume_point": self.resume_point.value,
            "worker_state": self.worker_state,
            "result_text": self.result_text,
            "degraded": self.degraded,
            "error": self.error,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionSnapshot":
        interrupt = data.get("pending_interrupt")
        return cls(
            thread_id=data["thread_id"],
            status=ThreadStatus(data["status"]),
            current_node=NodeName(data["current_node"]),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            pending_interrupt=InterruptDescriptor.from_state(interrupt) if interrupt else None,
            resume_point=ResumePoint(data.get("resume_point", ResumePoint.NONE.value)),
            worker_state=data.get("worker_state") or {},
            result_text=data.get("result_text"),
            degraded=data.get("degraded", False),
            error=data.get("error"),
            version=data.get("version", 0),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )
