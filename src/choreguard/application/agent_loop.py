"""
Agentic loop.

One session is one conversation with a provider. Each iteration offers the
visible tool set, sends the history, and runs every requested tool call in
order through the gate and then the executor. Denials go back to the model
as tool results, and the loop continues. Nested sessions started by
``spawn_agent`` re-enter this loop synchronously with a deeper context.
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from choreguard.application.governance_gate import ToolCallGate
from choreguard.application.tool_catalog import ToolCatalog
from choreguard.application.tool_executor import ToolExecutor
from choreguard.application.workflow_manager import WorkflowManager
from choreguard.domain.exceptions import WorkflowNotFoundError
from choreguard.domain.interfaces import LLMProviderInterface, SessionStoreInterface
from choreguard.domain.models import ChatRole, Message, StopReason, ToolCall
from choreguard.domain.prompts import build_initial_message, system_prompt_for
from choreguard.domain.session import (
    LoopResult,
    LoopStopReason,
    SessionContext,
    SessionOutcome,
    SessionState,
    ToolCallRecord,
)
from choreguard.domain.workflow import WorkflowStatus

logger = logging.getLogger("choreguard.agent")


class AgentLoop:
    """
    Drive one agent session to completion.

    The loop holds no per-session state; everything about a run lives in the
    SessionContext passed in and the SessionState it returns.
    """

    def __init__(
        self,
        provider: LLMProviderInterface,
        gate: ToolCallGate,
        executor: ToolExecutor,
        session_store: SessionStoreInterface,
        workflows: WorkflowManager | None = None,
        system_prompt: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            provider: Chat backend
            gate: Validates each tool call before execution
            executor: Executes allowed tool calls
            session_store: Persists the session after each tool call and at the end
            workflows: Used to stop sessions whose workflow is paused or cancelled
            system_prompt: Replaces the default role description
            clock: Source of "now" (defaults to datetime.now)
        """
        self._provider = provider
        self._gate = gate
        self._executor = executor
        self._sessions = session_store
        self._workflows = workflows
        self._system_prompt = system_prompt
        self._clock = clock or datetime.now

    def run(self, context: SessionContext, instruction: str | None = None) -> LoopResult:
        """
        Run a session until the model ends its turn or a limit is hit.

        A KeyboardInterrupt (SIGINT, or SIGTERM via the CLI) saves the session as
        interrupted and propagates.

        Args:
            context: Where and as whom the session runs
            instruction: Task text for the first user message

        Returns:
            LoopResult with the persisted session record
        """
        session = SessionState.start(context, self._clock())
        if context.model is None:
            session.model = self._provider.model

        if context.nesting_depth > context.max_nesting_depth:
            return self._finish(
                session,
                0,
                SessionOutcome.FAILURE,
                LoopStopReason.MAX_DEPTH,
                error=(
                    f"Maximum nesting depth exceeded ({context.nesting_depth}/"
                    f"{context.max_nesting_depth})"
                ),
            )

        session.messages.append(
            Message(ChatRole.SYSTEM, system_prompt_for(context, self._system_prompt))
        )
        session.messages.append(
            Message(ChatRole.USER, build_initial_message(context, instruction))
        )
        logger.info(
            "Session %s started (role=%s, depth=%d)",
            session.id,
            context.role,
            context.nesting_depth,
        )

        iterations = 0
        try:
            while iterations < context.max_iterations:
                inactive = self._workflow_inactive(context)
                if inactive is not None:
                    return self._finish(
                        session,
                        iterations,
                        SessionOutcome.INTERRUPTED,
                        LoopStopReason.WORKFLOW_INACTIVE,
                        error=inactive,
                    )

                iterations += 1
                tools = ToolCatalog.to_specs(self._gate.visible_tools(context))
                logger.debug(
                    "Session %s iteration %d with %d tools", session.id, iterations, len(tools)
                )
                try:
                    response = self._provider.chat(session.messages, tools)
                except Exception as e:
                    logger.error("Provider error in session %s: %s", session.id, e)
                    return self._finish(
                        session,
                        iterations,
                        SessionOutcome.FAILURE,
                        LoopStopReason.ERROR,
                        error=str(e),
                    )

                session.token_usage = session.token_usage.add(response.usage)
                session.messages.append(
                    Message(
                        ChatRole.ASSISTANT,
                        response.content,
                        tool_calls=response.tool_calls,
                    )
                )
                for call in response.tool_calls:
                    self._handle_call(call, context, session)
                    self._sessions.save(session)

                if response.stop_reason is StopReason.END_TURN:
                    return self._finish(
                        session, iterations, SessionOutcome.SUCCESS, LoopStopReason.END_TURN
                    )
        except KeyboardInterrupt:
            logger.warning("Session %s interrupted after %d iterations", session.id, iterations)
            self._finish(
                session,
                iterations,
                SessionOutcome.INTERRUPTED,
                LoopStopReason.INTERRUPTED,
                error="Interrupted",
            )
            raise

        logger.warning(
            "Session %s stopped after %d iterations", session.id, context.max_iterations
        )
        return self._finish(
            session, iterations, SessionOutcome.INTERRUPTED, LoopStopReason.MAX_ITERATIONS
        )

    # -------------------------------------------------------------------------

    def _handle_call(
        self, call: ToolCall, context: SessionContext, session: SessionState
    ) -> None:
        verdict = self._gate.validate(call, context)
        payload: dict[str, Any]
        if not verdict.allowed:
            payload = {"error": f"DENIED: {verdict.reason}", "toolName": call.name}
        elif context.dry_run:
            payload = {"dry_run": True}
        else:
            result = self._executor.execute(call, context, session, spawn=self._run_child)
            payload = result.to_dict()

        session.tool_calls.append(
            ToolCallRecord(
                timestamp=self._clock(),
                name=call.name,
                params=dict(call.arguments),
                governance_result=verdict,
                result=payload,
                tool_call_id=call.id,
            )
        )
        session.messages.append(
            Message(
                ChatRole.TOOL,
                json.dumps(payload, default=str),
                tool_call_id=call.id,
                tool_name=call.name,
            )
        )

    def _run_child(self, context: SessionContext, instruction: str) -> LoopResult:
        return self.run(context, instruction)

    def _workflow_inactive(self, context: SessionContext) -> str | None:
        if context.workflow_id is None or self._workflows is None:
            return None
        try:
            workflow = self._workflows.get(context.workflow_id)
        except WorkflowNotFoundError as e:
            return str(e)
        if workflow.status is not WorkflowStatus.ACTIVE:
            return f"Workflow {workflow.id} is {workflow.status.value}"
        return None

    def _finish(
        self,
        session: SessionState,
        iterations: int,
        outcome: SessionOutcome,
        stop_reason: LoopStopReason,
        error: str | None = None,
    ) -> LoopResult:
        session.end(outcome, stop_reason, self._clock(), error)
        self._sessions.save(session)
        logger.info(
            "Session %s ended: %s (%s) after %d iterations, %d tokens",
            session.id,
            outcome.value,
            stop_reason.value,
            iterations,
            session.token_usage.total,
        )
        return LoopResult(
            success=outcome is SessionOutcome.SUCCESS,
            stop_reason=stop_reason,
            iterations=iterations,
            session=session,
            error=error,
        )
