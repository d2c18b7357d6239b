"""
Supervised Research Orchestrator

A supervisor/worker research system with human-in-the-loop search approval:
- Supervisor: decides each step whether to delegate to a worker or finalize
- Research Worker: web and academic search via Tavily, one confirmed search at a time
- Reasoning Worker: synthesis, summarization and critique of gathered material

Key Features:
- Fixed supervisor/worker graph with a bounded number of round trips
- Durable per-thread snapshots (in memory or Redis) after every node
- Suspend before every search; resume with approve, edit or reject
- Per-thread mutual exclusion so a thread never runs two steps at once
"""

__version__ = "1.0.0"
__author__ = "Multi-Agent Research Team"
