"""
Configuration for the Research Orchestrator.

Environment Variables:
    ANTHROPIC_API_KEY     - Primary: Your Anthropic/Claude API key
    OPENAI_API_KEY        - Fallback: Your OpenAI API key (if no Anthropic key)
    TAVILY_API_KEY        - Optional: Tavily API key for web/academic search (mock data if unset)
    LLM_MODEL             - Optional: LLM model (default depends on provider)
    LLM_PROVIDER          - Optional: LLM provider (default: auto-detected)
    MAX_ROUND_TRIPS       - Optional: supervisor round trips per start/resume (default: 25)
    THREAD_STORE          - Optional: "memory" or "redis" (default: memory)
    REDIS_URL             - Optional: Redis URL when THREAD_STORE=redis
    THREAD_LOCK_POLICY    - Optional: "reject" or "queue" for concurrent steps on one thread

Create a .env file in this directory with:

    ANTHROPIC_API_KEY=sk-ant-your-key-here
    TAVILY_API_KEY=tvly-your-key-here
    LLM_MODEL=claude-sonnet-4-20250514
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional

from loguru import logger


def _optional_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value else None


@dataclass
class Config:
    """Application configuration."""

    # LLM Settings (Claude/Anthropic is primary)
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None  # Fallback
    tavily_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    llm_provider: str = "anthropic"

    # Orchestration
    max_round_trips: int = 25
    supervisor_window: int = 3
    unrecognized_retries: int = 0
    max_tool_rounds: int = 5

    # Search
    max_search_results: int = 3
    search_min_interval: float = 3.0
    search_cache_size: int = 256

    # Thread store
    thread_store: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    thread_ttl_seconds: Optional[int] = None
    thread_lock_policy: str = "reject"

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        # Auto-detect provider based on available keys
        anthropic_key = os.getenv("ANTHROPIC_API_KEY")
        openai_key = os.getenv("OPENAI_API_KEY")

        if anthropic_key:
            provider = "anthropic"
            default_model = "claude-sonnet-4-20250514"
        elif openai_key:
            provider = "openai"
            default_model = "gpt-4o-mini"
        else:
            provider = "anthropic"
            default_model = "claude-sonnet-4-20250514"

        return cls(
            anthropic_api_key=anthropic_key,
            openai_api_key=openai_key,
            tavily_api_key=os.getenv("TAVILY_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", default_model),
            llm_provider=os.getenv("LLM_PROVIDER", provider),
            max_round_trips=int(os.getenv("MAX_ROUND_TRIPS", "25")),
            supervisor_window=int(os.getenv("SUPERVISOR_WINDOW", "3")),
            unrecognized_retries=int(os.getenv("UNRECOGNIZED_RETRIES", "0")),
            max_tool_rounds=int(os.getenv("MAX_TOOL_ROUNDS", "5")),
            max_search_results=int(os.getenv("MAX_SEARCH_RESULTS", "3")),
            search_min_interval=float(os.getenv("SEARCH_MIN_INTERVAL", "3.0")),
            search_cache_size=int(os.getenv("SEARCH_CACHE_SIZE", "256")),
            thread_store=os.getenv("THREAD_STORE", "memory").lower(),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            thread_ttl_seconds=_optional_int(os.getenv("THREAD_TTL_SECONDS")),
            thread_lock_policy=os.getenv("THREAD_LOCK_POLICY", "reject").lower(),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> bool:
        """Check if required configuration is present."""
        return bool(self.anthropic_api_key or self.openai_api_key)

    def get_api_key(self) -> Optional[str]:
        """Get the appropriate API key based on provider."""
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr at ``level``."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - {message}",
    )

