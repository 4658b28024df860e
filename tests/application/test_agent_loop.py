"""Tests for AgentLoop, including nested spawn_agent sessions."""

import json
from collections.abc import Callable
from pathlib import Path

import pytest
from support import (
    FakeClock,
    FakeTaskLifecycle,
    final_response,
    three_stage_template,
    tool_response,
)

from choreguard.application import AgentLoop, ToolCallGate, ToolExecutor, WorkflowManager
from choreguard.domain.models import ChatRole, ChatResponse, StopReason, ToolCall
from choreguard.domain.session import LoopStopReason, SessionContext, SessionOutcome
from choreguard.domain.workflow import StageType
from choreguard.infrastructure.llm import MockProvider
from choreguard.infrastructure.persistence import InMemorySessionStore

MakeContext = Callable[..., SessionContext]
MakeLoop = Callable[..., tuple[AgentLoop, MockProvider]]


@pytest.fixture
def make_loop(
    gate: ToolCallGate,
    task_lifecycle: FakeTaskLifecycle,
    workflows: WorkflowManager,
    session_store: InMemorySessionStore,
    clock: FakeClock,
) -> MakeLoop:
    """Build an AgentLoop around a scripted MockProvider."""

    def _make(*responses: ChatResponse) -> tuple[AgentLoop, MockProvider]:
        provider = MockProvider(responses)
        loop = AgentLoop(
            provider,
            gate,
            ToolExecutor(task_lifecycle, workflows),
            session_store,
            workflows=workflows,
            clock=clock,
        )
        return loop, provider

    return _make


def _tool_payloads(messages: list) -> list[dict]:
    return [json.loads(m.content) for m in messages if m.role is ChatRole.TOOL]


class TestBasicRun:
    def test_end_turn_ends_successfully(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        loop, provider = make_loop(final_response("All done."))

        result = loop.run(make_context("impl"), "Say hi")

        assert result.success
        assert result.stop_reason is LoopStopReason.END_TURN
        assert result.iterations == 1
        assert result.summary == "All done."
        assert result.session.outcome is SessionOutcome.SUCCESS
        assert result.session.model == "mock"
        assert provider.call_count == 1

    def test_conversation_shape(self, make_loop: MakeLoop, make_context: MakeContext) -> None:
        loop, provider = make_loop(final_response())

        loop.run(make_context("impl", chain_id="CH-1"), "Fix the bug")

        messages, _ = provider.requests[0]
        assert [m.role for m in messages] == [ChatRole.SYSTEM, ChatRole.USER]
        assert "implementation agent" in messages[0].content
        assert "Chain: CH-1" in messages[1].content
        assert messages[1].content.endswith("Fix the bug")

    def test_offers_stage_filtered_tools(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        loop, provider = make_loop(final_response())

        loop.run(make_context("impl", stage_type=StageType.REVIEW))

        _, tools = provider.requests[0]
        names = {t.name for t in tools}
        assert "read_file" in names
        assert "write_file" not in names

    def test_allowed_call_executes_and_continues(
        self, make_loop: MakeLoop, make_context: MakeContext, tmp_path: Path
    ) -> None:
        loop, _ = make_loop(
            tool_response(
                ToolCall("c1", "write_file", {"path": "src/app.py", "content": "print(1)\n"})
            ),
            final_response(),
        )

        result = loop.run(make_context("impl"))

        assert result.success
        assert result.iterations == 2
        assert (tmp_path / "src" / "app.py").read_text() == "print(1)\n"
        [record] = result.session.tool_calls
        assert record.governance_result.allowed
        assert record.tool_call_id == "c1"
        assert result.session.token_usage.total == 15 + 12

    def test_multiple_calls_run_in_order(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        loop, _ = make_loop(
            tool_response(
                ToolCall("c1", "write_file", {"path": "src/a.py", "content": "a"}),
                ToolCall("c2", "read_file", {"path": "src/a.py"}),
            ),
            final_response(),
        )

        result = loop.run(make_context("impl"))

        payloads = _tool_payloads(result.session.messages)
        assert payloads[1]["data"]["content"] == "a"
        assert [r.name for r in result.session.tool_calls] == ["write_file", "read_file"]


class TestDenials:
    def test_denial_is_fed_back_to_the_model(
        self, make_loop: MakeLoop, make_context: MakeContext, tmp_path: Path
    ) -> None:
        loop, provider = make_loop(
            tool_response(ToolCall("c1", "write_file", {"path": "prod.key", "content": "k"})),
            final_response("Understood."),
        )

        result = loop.run(make_context("impl"))

        assert result.success
        assert not (tmp_path / "prod.key").exists()
        [payload] = _tool_payloads(result.session.messages)
        assert payload["toolName"] == "write_file"
        assert payload["error"].startswith("DENIED: Governance denies create prod.key")
        follow_up, _ = provider.requests[1]
        assert follow_up[-1].role is ChatRole.TOOL
        assert follow_up[-1].tool_call_id == "c1"

    def test_impl_cannot_spawn_control(
        self,
        make_loop: MakeLoop,
        make_context: MakeContext,
        session_store: InMemorySessionStore,
    ) -> None:
        loop, provider = make_loop(
            tool_response(ToolCall("c1", "spawn_agent", {"role": "control", "task": "Take over"})),
            final_response(),
        )

        result = loop.run(make_context("impl"))

        [record] = result.session.tool_calls
        assert not record.governance_result.allowed
        assert "cannot spawn" in (record.governance_result.reason or "")
        assert result.session.child_session_ids == []
        assert provider.call_count == 2

    def test_always_denied_tool_runs_to_max_iterations(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        """A model that keeps calling a forbidden tool is stopped, not crashed."""
        approve = ToolCall("c", "task:approve", {"chain_id": "CH-1", "task_id": "T-2"})
        loop, _ = make_loop(*(tool_response(approve) for _ in range(3)))

        result = loop.run(make_context("impl", max_iterations=3))

        assert not result.success
        assert result.stop_reason is LoopStopReason.MAX_ITERATIONS
        assert result.session.outcome is SessionOutcome.INTERRUPTED
        assert result.iterations == 3
        assert len(result.session.tool_calls) == 3
        assert all(not r.governance_result.allowed for r in result.session.tool_calls)


class TestNestedSessions:
    def test_spawned_child_runs_and_reports(
        self,
        make_loop: MakeLoop,
        make_context: MakeContext,
        session_store: InMemorySessionStore,
    ) -> None:
        loop, provider = make_loop(
            tool_response(
                ToolCall("c1", "spawn_agent", {"role": "impl", "task": "Implement T-1"})
            ),
            final_response("Child finished T-1."),
            final_response("Parent done."),
        )

        result = loop.run(make_context("control", chain_id="CH-1"))

        assert result.success
        assert result.summary == "Parent done."
        [child_id] = result.session.child_session_ids
        child = session_store.load(child_id)
        assert child is not None
        assert child.nesting_depth == 1
        assert child.parent_session_id == result.session.id
        assert child.chain_id == "CH-1"
        [payload] = _tool_payloads(result.session.messages)
        assert payload["data"]["summary"] == "Child finished T-1."
        assert payload["data"]["session_id"] == child_id
        child_messages, _ = provider.requests[1]
        assert "Context from parent session:\nImplement T-1" in child_messages[1].content

    def test_child_at_max_depth_cannot_spawn(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        loop, _ = make_loop(
            tool_response(ToolCall("c1", "spawn_agent", {"role": "control", "task": "t"})),
            final_response(),
        )

        result = loop.run(make_context("control", nesting_depth=2))

        [record] = result.session.tool_calls
        assert record.governance_result.reason == "Maximum nesting depth reached (2/2)"

    def test_context_beyond_max_depth_fails_fast(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        loop, provider = make_loop()

        result = loop.run(make_context("impl", nesting_depth=3))

        assert result.stop_reason is LoopStopReason.MAX_DEPTH
        assert result.session.outcome is SessionOutcome.FAILURE
        assert provider.call_count == 0


class TestStops:
    def test_end_turn_with_tool_calls_runs_them_then_stops(
        self, make_loop: MakeLoop, make_context: MakeContext, tmp_path: Path
    ) -> None:
        write = ToolCall("c1", "write_file", {"path": "src/a.py", "content": "x"})
        loop, provider = make_loop(ChatResponse("Wrote it.", StopReason.END_TURN, (write,)))

        result = loop.run(make_context("impl"))

        assert result.success
        assert result.stop_reason is LoopStopReason.END_TURN
        assert result.iterations == 1
        assert provider.call_count == 1
        assert (tmp_path / "src" / "a.py").read_text() == "x"

    def test_truncated_answer_keeps_looping(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        loop, provider = make_loop(
            ChatResponse("Partial answ", StopReason.MAX_TOKENS), final_response("Complete.")
        )

        result = loop.run(make_context("impl"))

        assert result.success
        assert result.iterations == 2
        assert result.summary == "Complete."
        assert provider.call_count == 2

    def test_truncated_answer_at_iteration_limit_is_not_success(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        loop, _ = make_loop(ChatResponse("Partial answ", StopReason.MAX_TOKENS))

        result = loop.run(make_context("impl", max_iterations=1))

        assert not result.success
        assert result.stop_reason is LoopStopReason.MAX_ITERATIONS

    def test_keyboard_interrupt_saves_session_as_interrupted(
        self,
        make_loop: MakeLoop,
        make_context: MakeContext,
        session_store: InMemorySessionStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def _interrupt(messages: object, tools: object) -> ChatResponse:
            raise KeyboardInterrupt

        loop, provider = make_loop()
        monkeypatch.setattr(provider, "chat", _interrupt)

        with pytest.raises(KeyboardInterrupt):
            loop.run(make_context("impl"))

        [stored] = session_store.list()
        assert stored.outcome is SessionOutcome.INTERRUPTED
        assert stored.stop_reason is LoopStopReason.INTERRUPTED
        assert stored.error == "Interrupted"
        assert stored.ended_at is not None

    def test_provider_error(self, make_loop: MakeLoop, make_context: MakeContext) -> None:
        loop, _ = make_loop()

        result = loop.run(make_context("impl"))

        assert not result.success
        assert result.stop_reason is LoopStopReason.ERROR
        assert result.error == "MockProvider exhausted responses"

    def test_paused_workflow_stops_session(
        self, make_loop: MakeLoop, make_context: MakeContext, workflows: WorkflowManager
    ) -> None:
        workflow = workflows.create("REQ-1", three_stage_template())
        workflows.pause(workflow.id)
        loop, provider = make_loop(final_response())

        result = loop.run(make_context("impl", workflow_id=workflow.id))

        assert result.stop_reason is LoopStopReason.WORKFLOW_INACTIVE
        assert result.session.outcome is SessionOutcome.INTERRUPTED
        assert result.error == f"Workflow {workflow.id} is paused"
        assert provider.call_count == 0

    def test_missing_workflow_counts_as_inactive(
        self, make_loop: MakeLoop, make_context: MakeContext
    ) -> None:
        loop, _ = make_loop(final_response())

        result = loop.run(make_context("impl", workflow_id="WF-20250101-404"))

        assert result.stop_reason is LoopStopReason.WORKFLOW_INACTIVE

    def test_dry_run_validates_without_executing(
        self, make_loop: MakeLoop, make_context: MakeContext, tmp_path: Path
    ) -> None:
        loop, _ = make_loop(
            tool_response(ToolCall("c1", "write_file", {"path": "src/a.py", "content": "x"})),
            final_response(),
        )

        result = loop.run(make_context("impl", dry_run=True))

        assert not (tmp_path / "src" / "a.py").exists()
        assert _tool_payloads(result.session.messages) == [{"dry_run": True}]
        assert result.session.tool_calls[0].governance_result.allowed


class TestPersistence:
    def test_session_saved_after_each_call_and_at_end(
        self,
        make_loop: MakeLoop,
        make_context: MakeContext,
        session_store: InMemorySessionStore,
    ) -> None:
        loop, _ = make_loop(
            tool_response(
                ToolCall("c1", "read_file", {"path": "a"}),
                ToolCall("c2", "read_file", {"path": "b"}),
            ),
            final_response(),
        )

        result = loop.run(make_context("impl"))

        assert session_store.save_count == 3
        stored = session_store.load(result.session.id)
        assert stored is not None
        assert stored.outcome is SessionOutcome.SUCCESS
        assert len(stored.tool_calls) == 2
