"""Error taxonomy for the orchestrator.

Every error carries the HTTP status it maps to and, once known, the id of
the thread it happened on so callers can inspect or resume that thread.
"""

from typing import Optional


class OrchestratorError(Exception):
    """Base exception for orchestration errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, thread_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.thread_id = thread_id


class ConfigurationError(OrchestratorError):
    """Model credentials are missing or invalid."""

    error_code = "CONFIGURATION_ERROR"


class InvalidRequestError(OrchestratorError):
    """The caller asked for something the thread cannot do."""

    status_code = 400
    error_code = "INVALID_REQUEST"


class InvalidStateError(InvalidRequestError):
    """Resume against a thread that is not suspended."""

    error_code = "INVALID_STATE"


class ThreadNotFoundError(InvalidRequestError):
    """No snapshot exists for the thread."""

    error_code = "NOT_FOUND"

    def __init__(self, thread_id: str):
        super().__init__(f"Thread '{thread_id}' not found", thread_id=thread_id)


class ThreadBusyError(InvalidRequestError):
    """Another step is already running on the thread."""

    status_code = 409
    error_code = "CONFLICT"

    def __init__(self, thread_id: str):
        super().__init__(f"Thread '{thread_id}' is already executing a step", thread_id=thread_id)


class ExternalToolFailure(OrchestratorError):
    """A knowledge source failed. Absorbed by the research worker."""

    status_code = 502
    error_code = "EXTERNAL_API_ERROR"

    def __init__(self, tool_name: str, detail: str):
        super().__init__(f"{tool_name} failed: {detail}")
        self.tool_name = tool_name
        self.detail = detail


class ModelCallFailure(OrchestratorError):
    """The language model call failed."""

    error_code = "MODEL_CALL_FAILURE"


class ReasoningFailure(ModelCallFailure):
    """The reasoning worker's model call failed."""

    error_code = "REASONING_FAILURE"


class TurnLimitExceeded(OrchestratorError):
    """Supervisor and workers kept delegating without reaching a terminal decision."""

    error_code = "TURN_LIMIT_EXCEEDED"

    def __init__(self, limit: int, thread_id: Optional[str] = None):
        super().__init__(
            f"Turn exceeded {limit} supervisor round trips without a final decision",
            thread_id=thread_id,
        )
        self.limit = limit
