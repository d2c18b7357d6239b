#!/usr/bin/env python3
"""
Run the Research Orchestrator API server.

Usage:
    python run.py                    # Run on default port 8000
    python run.py --port 8080        # Run on custom port
    python run.py --reload           # Run with hot reload (dev mode)

Environment Variables (set in .env file or export):
    ANTHROPIC_API_KEY=sk-ant-...    # Primary: Your Anthropic/Claude API key
    OPENAI_API_KEY=sk-...           # Fallback: OpenAI API key (if no Anthropic)
    TAVILY_API_KEY=tvly-...         # Optional: For web/academic search (uses mock if not set)
    THREAD_STORE=redis              # Optional: Persist threads in Redis (default: memory)

Quick Start:
    1. Create a .env file with your API keys
    2. Install: pip install -e .
    3. Run the server: python run.py
    4. POST a query to http://localhost:8000/orchestrate
"""

import os
import argparse
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

# Load environment variables from .env file if it exists
env_file = Path(__file__).parent / ".env"
if env_file.exists():
    load_dotenv(env_file)

from config import Config, configure_logging  # noqa: E402


def main():
    config = Config.from_env()
    parser = argparse.ArgumentParser(description="Run the Research Orchestrator API")
    parser.add_argument("--host", default=config.api_host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=config.api_port, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    configure_logging(config.log_level)

    if not config.validate():
        logger.warning("No LLM API key found. Every request will fail with a configuration error.")
        logger.warning("Set ANTHROPIC_API_KEY (recommended) or OPENAI_API_KEY in your environment.")
    elif config.llm_provider == "anthropic":
        logger.info("Using Claude (Anthropic) as LLM provider")
    else:
        logger.info("Using OpenAI as LLM provider")

    if not os.getenv("TAVILY_API_KEY"):
        logger.info("TAVILY_API_KEY not set. Search tools will use mock data.")

    logger.info("Thread store: {} (lock policy: {})", config.thread_store, config.thread_lock_policy)
    logger.info("Starting server at http://{}:{} (docs at /docs)", args.host, args.port)

    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
