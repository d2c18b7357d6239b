from .types import (
    Role,
    OriginTag,
    ThreadStatus,
    WorkerName,
    NodeName,
    ResumePoint,
    Message,
    Delegate,
    Finalize,
    Unrecognized,
    Instruction,
    InterruptDescriptor,
    ExecutionSnapshot,
)
from .errors import (
    OrchestratorError,
    ConfigurationError,
    InvalidRequestError,
    InvalidStateError,
    ThreadNotFoundError,
    ThreadBusyError,
    ExternalToolFailure,
    ModelCallFailure,
    ReasoningFailure,
    TurnLimitExceeded,
)
from .decision import parse_decision, route
from .base_agent import Agent, AgentConfig
from .tools import Tool, ToolResult
from .llm import LLMProvider, create_llm_client, get_default_model

__all__ = [
    "Role",
    "OriginTag",
    "ThreadStatus",
    "WorkerName",
    "NodeName",
    "ResumePoint",
    "Message",
    "Delegate",
    "Finalize",
    "Unrecognized",
    "Instruction",
    "InterruptDescriptor",
    "ExecutionSnapshot",
    "OrchestratorError",
    "ConfigurationError",
    "InvalidRequestError",
    "InvalidStateError",
    "ThreadNotFoundError",
    "ThreadBusyError",
    "ExternalToolFailure",
    "ModelCallFailure",
    "ReasoningFailure",
    "TurnLimitExceeded",
    "parse_decision",
    "route",
    "Agent",
    "AgentConfig",
    "Tool",
    "ToolResult",
    "LLMProvider",
    "create_llm_client",
    "get_default_model",
]
