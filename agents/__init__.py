from .research_agent import ResearchWorker
from .reasoning_agent import ReasoningWorker
from .supervisor_agent import Supervisor

__all__ = [
    "ResearchWorker",
    "ReasoningWorker",
    "Supervisor",
]
