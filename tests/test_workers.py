import pytest

from agents.reasoning_agent import ReasoningAgentConfig, ReasoningWorker
from agents.supervisor_agent import Supervisor, SupervisorConfig
from core.errors import ConfigurationError, ModelCallFailure, ReasoningFailure
from core.types import Message, OriginTag, Role
from conftest import ScriptedLLMClient


def msg(origin, content, role=Role.ASSISTANT):
    return Message(role=role, origin=origin, content=content)


@pytest.fixture
def thread_messages():
    return [
        msg(OriginTag.USER_INPUT, "What is the capital of France?", role=Role.USER),
        msg(OriginTag.SUPERVISOR_DECISION, "DELEGATE: research_worker; TASK: capital of France"),
        msg(OriginTag.TOOL_RESULT, "web_search('capital of France') returned:\nParis", role=Role.TOOL),
        msg(OriginTag.RESEARCH_OUTPUT, "Paris is the capital of France."),
        msg(OriginTag.SUPERVISOR_DECISION, "DELEGATE: reasoning_worker; TASK: double check"),
    ]


def make_supervisor(llm, window=3):
    return Supervisor(
        config=SupervisorConfig(name="Supervisor", description="Routes", history_window=window),
        llm_client=llm,
    )


def make_reasoner(llm):
    return ReasoningWorker(
        config=ReasoningAgentConfig(name="Reasoning Worker", description="Reasons"),
        llm_client=llm,
    )


class TestSupervisor:
    """Tests for the supervisor node"""

    def test_prompt_uses_bounded_window(self, thread_messages):
        supervisor = make_supervisor(ScriptedLLMClient())

        prompt = supervisor.build_prompt(thread_messages)

        user_content = prompt[1]["content"]
        assert user_content.startswith("User query: What is the capital of France?")
        assert "last 3 messages" in user_content
        assert "tool (tool-result)" in user_content
        assert "assistant (research-output): Paris is the capital of France." in user_content
        assert "TASK: capital of France" not in user_content

    def test_system_prompt_override(self):
        supervisor = Supervisor(
            config=SupervisorConfig(name="Supervisor", description="Routes", system_prompt="Custom rules"),
            llm_client=ScriptedLLMClient(),
        )
        assert supervisor.build_prompt([])[0]["content"] == "Custom rules"

    @pytest.mark.asyncio
    async def test_decide_wraps_raw_text(self, thread_messages):
        """Test that the decision is returned unparsed as a supervisor message"""
        llm = ScriptedLLMClient(["  FINALIZE: Paris  "])
        supervisor = make_supervisor(llm)

        decision = await supervisor.decide(thread_messages)

        assert decision.role == Role.ASSISTANT
        assert decision.origin == OriginTag.SUPERVISOR_DECISION
        assert decision.content == "  FINALIZE: Paris  "
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_unconfigured(self, thread_messages):
        supervisor = make_supervisor(None)

        with pytest.raises(ConfigurationError):
            await supervisor.decide(thread_messages)

    @pytest.mark.asyncio
    async def test_model_failure(self, thread_messages):
        supervisor = make_supervisor(ScriptedLLMClient([RuntimeError("503")]))

        with pytest.raises(ModelCallFailure) as exc_info:
            await supervisor.decide(thread_messages)

        assert not isinstance(exc_info.value, ReasoningFailure)


class TestReasoningWorker:
    """Tests for the reasoning node"""

    def test_context_is_research_output_only(self, thread_messages):
        extra = thread_messages + [msg(OriginTag.RESEARCH_OUTPUT, "Second finding.")]

        context = ReasoningWorker.gather_context(extra)

        assert context == "Paris is the capital of France.\n\nSecond finding."

    def test_derive_task_skips_supervisor(self, thread_messages):
        task = ReasoningWorker.derive_task(thread_messages)
        assert task == "Analyze and summarize the following: Paris is the capital of France."

    @pytest.mark.asyncio
    async def test_run_with_task(self, thread_messages):
        llm = ScriptedLLMClient(["Confirmed: Paris."])
        worker = make_reasoner(llm)

        output = await worker.run("double check", thread_messages)

        assert output.origin == OriginTag.REASONING_OUTPUT
        assert output.content == "Confirmed: Paris."
        messages = llm.calls[0]["messages"]
        assert "Context for your reasoning:\nParis is the capital of France." in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "double check"}
        assert llm.calls[0]["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_run_derives_missing_task(self, thread_messages):
        llm = ScriptedLLMClient(["Summary."])
        worker = make_reasoner(llm)

        await worker.run(None, thread_messages)

        assert llm.calls[0]["messages"][-1]["content"].startswith("Analyze and summarize the following:")

    @pytest.mark.asyncio
    async def test_run_without_anything_to_do(self):
        llm = ScriptedLLMClient()
        worker = make_reasoner(llm)

        output = await worker.run("", [])

        assert "No task" in output.content
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_failure_kind(self, thread_messages):
        """Test that model failures surface as ReasoningFailure"""
        worker = make_reasoner(ScriptedLLMClient([TimeoutError("slow")]))

        with pytest.raises(ReasoningFailure):
            await worker.run("double check", thread_messages)
