from .executor import Orchestrator, OrchestratorConfig, TurnResult
from .factory import build_orchestrator

__all__ = [
    "Orchestrator",
    "OrchestratorConfig",
    "TurnResult",
    "build_orchestrator",
]
