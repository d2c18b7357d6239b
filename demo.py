#!/usr/bin/env python3
"""
Demo script for the Supervised Research Orchestrator.

Runs one turn in the console without the API server. Every search the
research worker proposes is shown for approval: approve it, edit the query,
or reject it.

Usage:
    python demo.py "What are the latest developments in quantum computing?"
    python demo.py --mock "Explain the impact of AI on healthcare"
    python demo.py --mock --auto-approve "Explain CRISPR"
"""

import json
import uuid
import asyncio
import argparse
from pathlib import Path
from datetime import datetime

from dotenv import load_dotenv

env_file = Path(__file__).parent / ".env"
if env_file.exists():
    load_dotenv(env_file)

from config import Config, configure_logging  # noqa: E402
from core.errors import OrchestratorError  # noqa: E402
from core.llm import ChatChoice, ChatMessage, ChatResponse, FunctionCall, ToolCall  # noqa: E402
from core.search import MockSearchBackend  # noqa: E402
from orchestrator import build_orchestrator  # noqa: E402
from storage import InMemoryThreadStore  # noqa: E402


class MockLLMClient:
    """Scripted model for running the demo without API keys.

    Picks its reply from the system prompt of each call so the supervisor,
    research worker and reasoning worker each follow a plausible script.
    """

    class ChatCompletions:
        async def create(self, **kwargs):
            messages = kwargs.get("messages", [])
            system_msg = next((m["content"] for m in messages if m["role"] == "system"), "")
            user_msg = next((m["content"] for m in reversed(messages) if m["role"] == "user"), "")

            if "supervisor coordinating" in system_msg:
                return _reply(self._supervise(user_msg))
            if "research agent" in system_msg and kwargs.get("tools"):
                return self._research(messages)
            return _reply(
                "Summary: the gathered sources agree that the field is advancing quickly, "
                "driven by academic work and industry investment. Open questions remain around "
                "standardization and long-term impact, which the sources treat as speculative."
            )

        @staticmethod
        def _supervise(prompt: str) -> str:
            query = prompt.split("\n", 1)[0].replace("User query:", "").strip()
            if "(reasoning-output)" in prompt:
                return (
                    f"FINALIZE: Here is what I found about '{query}'. The research step gathered "
                    "background sources and the reasoning step distilled them: progress is real and "
                    "measurable, investment is growing, and adoption challenges remain."
                )
            if "(research-output)" in prompt:
                return "DELEGATE: reasoning_worker; TASK: Summarize and critique the research findings so far"
            return f"DELEGATE: research_worker; TASK: {query}"

        @staticmethod
        def _research(messages):
            tool_results = [m for m in messages if m["role"] == "tool"]
            if not tool_results:
                task = next(
                    (m["content"] for m in messages if m["role"] == "user" and m["content"].startswith("Research task:")),
                    "",
                )
                query = task.replace("Research task:", "").strip()[:80]
                call = ToolCall(
                    id=f"call_{uuid.uuid4().hex[:8]}",
                    function=FunctionCall(name="web_search", arguments=json.dumps({"query": query})),
                )
                return ChatResponse(choices=[ChatChoice(message=ChatMessage(content=None, tool_calls=[call]))])

            latest = tool_results[-1]["content"]
            if "rejected" in latest:
                return _reply("The search was declined, so this answer relies on general knowledge only.")
            return _reply(f"Research findings based on the approved search:\n{latest[:600]}")

    def __init__(self):
        self.chat = type('Chat', (), {'completions': self.ChatCompletions()})()


def _reply(content: str) -> ChatResponse:
    return ChatResponse(choices=[ChatChoice(message=ChatMessage(content=content))], model="mock-model")


def ask_human(interrupt_data: dict, auto_approve: bool):
    """Collect a resume payload for a proposed search from the console."""
    proposed = interrupt_data["proposed_query"]
    print(f"\n🔎 {interrupt_data['tool_name']} wants to search for: '{proposed}'")
    if auto_approve:
        print("   ✓ Auto-approved")
        return proposed

    while True:
        choice = input("   [a]pprove, [e]dit or [r]eject? ").strip().lower()
        if choice in ("a", "approve", ""):
            return proposed
        if choice in ("e", "edit"):
            edited = input("   New query: ").strip()
            if edited:
                return {"approved_query": edited}
        if choice in ("r", "reject"):
            return {"type": "reject"}


async def run_demo(query: str, use_mock: bool = False, auto_approve: bool = False):
    """Run one orchestrated turn, pausing at each proposed search."""

    print("\n" + "="*60)
    print("🔬 SUPERVISED RESEARCH ORCHESTRATOR DEMO")
    print("="*60)
    print(f"\n📝 Query: {query}\n")

    config = Config.from_env()
    configure_logging("WARNING")

    if use_mock or not config.validate():
        print("ℹ️  Using mock LLM client (no API key found)\n")
        orchestrator = build_orchestrator(
            config,
            llm_client=MockLLMClient(),
            web_backend=MockSearchBackend("web_search"),
            academic_backend=MockSearchBackend("academic_search"),
            store=InMemoryThreadStore(),
        )
    else:
        print(f"✅ Using {config.llm_provider} ({config.llm_model})\n")
        orchestrator = build_orchestrator(config, store=InMemoryThreadStore())

    start_time = datetime.now()
    try:
        result = await orchestrator.start(query)
        while result.interrupted:
            payload = ask_human(result.interrupt.to_dict(), auto_approve)
            result = await orchestrator.resume(result.thread_id, payload)
    except OrchestratorError as e:
        print(f"\n❌ Error ({e.error_code}): {e.message}")
        return

    elapsed = (datetime.now() - start_time).total_seconds()
    print(f"\n✅ Turn complete in {elapsed:.1f}s\n")
    print("-"*60)

    print("\n🧵 Thread log:")
    for message in result.messages:
        print(f"   [{message.origin.value}] {message.content[:120]}")

    print("\n📄 Answer:" + (" (no clear decision)" if result.degraded else ""))
    print(result.text)

    print("\n" + "="*60)
    print("Demo complete!")
    print("="*60 + "\n")


def main():
    parser = argparse.ArgumentParser(description="Supervised Research Orchestrator Demo")
    parser.add_argument("query", nargs="?", default="What are the latest developments in artificial intelligence?",
                        help="Research query to investigate")
    parser.add_argument("--mock", action="store_true", help="Use mock LLM (no API key needed)")
    parser.add_argument("--auto-approve", action="store_true", help="Approve every proposed search")
    args = parser.parse_args()

    asyncio.run(run_demo(args.query, args.mock, args.auto_approve))


if __name__ == "__main__":
    main()
