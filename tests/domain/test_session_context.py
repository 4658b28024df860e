"""Tests for SessionContext, SessionState and the role prompts."""

import re
from pathlib import Path

from support import START

from choreguard.domain.models import ChatRole, Message, Usage
from choreguard.domain.prompts import build_initial_message, system_prompt_for
from choreguard.domain.session import (
    LoopResult,
    LoopStopReason,
    SessionContext,
    SessionOutcome,
    SessionState,
    TokenUsage,
    new_session_id,
)
from choreguard.domain.workflow import StageType


class TestSessionContext:
    def test_child_increments_depth(self, tmp_path: Path) -> None:
        parent = SessionContext(project_root=tmp_path, role="control", chain_id="CH-1")

        child = parent.child("impl", parent_session_id="session-1", task_id="T-1")

        assert child.nesting_depth == 1
        assert child.role == "impl"
        assert child.chain_id == "CH-1"
        assert child.task_id == "T-1"
        assert child.parent_session_id == "session-1"
        assert parent.nesting_depth == 0

    def test_child_drops_parent_role_id(self, tmp_path: Path) -> None:
        parent = SessionContext(project_root=tmp_path, role="control", role_id="controller")

        assert parent.child("impl", parent_session_id="s").role_id is None

    def test_child_keeps_stage_unless_overridden(self, tmp_path: Path) -> None:
        parent = SessionContext(
            project_root=tmp_path, role="control", stage_type=StageType.IMPLEMENTATION
        )

        assert parent.child("impl", "s").stage_type is StageType.IMPLEMENTATION
        assert parent.child("review", "s", stage_type=StageType.REVIEW).stage_type is (
            StageType.REVIEW
        )

    def test_can_nest_until_max_depth(self, tmp_path: Path) -> None:
        """Depth 0 and 1 may nest; depth 2 may not with the default limit of 2."""
        root = SessionContext(project_root=tmp_path, role="control")
        first = root.child("control", "s0")
        second = first.child("control", "s1")

        assert root.can_nest
        assert first.can_nest
        assert not second.can_nest


class TestSessionState:
    def test_start_copies_context(self, tmp_path: Path) -> None:
        context = SessionContext(
            project_root=tmp_path, role="impl", chain_id="CH-1", nesting_depth=1
        )

        state = SessionState.start(context, START)

        assert state.role == "impl"
        assert state.chain_id == "CH-1"
        assert state.nesting_depth == 1
        assert state.outcome is None

    def test_end_records_outcome(self, tmp_path: Path) -> None:
        state = SessionState.start(SessionContext(project_root=tmp_path, role="impl"), START)

        state.end(SessionOutcome.INTERRUPTED, LoopStopReason.MAX_ITERATIONS, START)

        assert state.outcome is SessionOutcome.INTERRUPTED
        assert state.stop_reason is LoopStopReason.MAX_ITERATIONS
        assert state.ended_at == START

    def test_session_id_format(self) -> None:
        assert re.fullmatch(r"session-20250115-093000-[0-9a-f]{6}", new_session_id(START))

    def test_token_usage_accumulates(self) -> None:
        usage = TokenUsage().add(Usage(10, 5)).add(Usage(1, 2))

        assert (usage.input, usage.output, usage.total) == (11, 7, 18)

    def test_loop_result_summary_is_last_assistant_text(self, tmp_path: Path) -> None:
        state = SessionState.start(SessionContext(project_root=tmp_path, role="impl"), START)
        state.messages.extend(
            [
                Message(ChatRole.ASSISTANT, "first"),
                Message(ChatRole.ASSISTANT, "second"),
                Message(ChatRole.USER, "ignored"),
            ]
        )

        result = LoopResult(True, LoopStopReason.END_TURN, 2, state)

        assert result.summary == "second"


class TestPrompts:
    def test_system_prompt_mentions_stage_and_depth(self, tmp_path: Path) -> None:
        context = SessionContext(
            project_root=tmp_path,
            role="impl",
            stage_type=StageType.IMPLEMENTATION,
            nesting_depth=1,
        )

        prompt = system_prompt_for(context)

        assert "implementation agent" in prompt
        assert "Current workflow stage: implementation" in prompt
        assert "depth 1" in prompt

    def test_override_replaces_role_text(self, tmp_path: Path) -> None:
        context = SessionContext(project_root=tmp_path, role="review")

        prompt = system_prompt_for(context, override="You review SQL migrations.")

        assert "You review SQL migrations." in prompt
        assert "review agent" not in prompt
        assert "DENIED" in prompt

    def test_unknown_role_gets_generic_prompt(self, tmp_path: Path) -> None:
        prompt = system_prompt_for(SessionContext(project_root=tmp_path, role="auditor"))

        assert "You are a auditor agent." in prompt

    def test_initial_message_includes_parent_context(self, tmp_path: Path) -> None:
        context = SessionContext(
            project_root=tmp_path,
            role="impl",
            chain_id="CH-1",
            task_id="T-1",
            parent_context="Keep the API stable.",
        )

        message = build_initial_message(context, "Fix the bug.")

        assert message.splitlines()[:3] == ["Role: impl", "Chain: CH-1", "Task: T-1"]
        assert "Keep the API stable." in message
        assert message.endswith("Fix the bug.")

    def test_initial_message_default_instruction(self, tmp_path: Path) -> None:
        message = build_initial_message(SessionContext(project_root=tmp_path, role="impl"), None)

        assert message.endswith("Begin work.")
