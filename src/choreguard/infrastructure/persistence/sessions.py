"""
Session audit record stores (``.choreguard/sessions/<id>.json``).
"""

import copy
import json
from datetime import datetime
from pathlib import Path
from typing import Any

from choreguard.domain.interfaces import SessionStoreInterface
from choreguard.domain.models import ChatRole, Message, ToolCall
from choreguard.domain.session import (
    GovernanceResult,
    LoopStopReason,
    SessionOutcome,
    SessionState,
    TokenUsage,
    ToolCallRecord,
)
from choreguard.domain.workflow import StageType
from choreguard.infrastructure.persistence.atomic import (
    isoformat,
    read_json,
    write_json_atomic,
)


def _message_to_dict(message: Message) -> dict[str, Any]:
    data: dict[str, Any] = {"role": message.role.value, "content": message.content}
    if message.tool_call_id:
        data["tool_call_id"] = message.tool_call_id
    if message.tool_name:
        data["tool_name"] = message.tool_name
    if message.tool_calls:
        data["tool_calls"] = [
            {"id": c.id, "name": c.name, "arguments": dict(c.arguments)}
            for c in message.tool_calls
        ]
    return data


def _dict_to_message(data: dict[str, Any]) -> Message:
    return Message(
        role=ChatRole(data["role"]),
        content=data["content"],
        tool_call_id=data.get("tool_call_id"),
        tool_name=data.get("tool_name"),
        tool_calls=tuple(
            ToolCall(id=c["id"], name=c["name"], arguments=c.get("arguments") or {})
            for c in data.get("tool_calls") or ()
        ),
    )


def _record_to_dict(record: ToolCallRecord) -> dict[str, Any]:
    return {
        "timestamp": record.timestamp.isoformat(),
        "name": record.name,
        "tool_call_id": record.tool_call_id,
        "params": dict(record.params),
        "governance_result": {
            "allowed": record.governance_result.allowed,
            "reason": record.governance_result.reason,
        },
        # Handler results may hold non-JSON values (paths, datetimes)
        "result": json.loads(json.dumps(record.result, default=str)),
    }


def _dict_to_record(data: dict[str, Any]) -> ToolCallRecord:
    verdict = data["governance_result"]
    return ToolCallRecord(
        timestamp=datetime.fromisoformat(data["timestamp"]),
        name=data["name"],
        params=data.get("params") or {},
        governance_result=GovernanceResult(verdict["allowed"], verdict.get("reason")),
        result=data.get("result"),
        tool_call_id=data.get("tool_call_id"),
    )


def session_to_dict(session: SessionState) -> dict[str, Any]:
    return {
        "id": session.id,
        "role": session.role,
        "model": session.model,
        "stage_type": session.stage_type.value if session.stage_type else None,
        "chain_id": session.chain_id,
        "task_id": session.task_id,
        "workflow_id": session.workflow_id,
        "nesting_depth": session.nesting_depth,
        "parent_session_id": session.parent_session_id,
        "child_session_ids": list(session.child_session_ids),
        "started_at": session.started_at.isoformat(),
        "ended_at": isoformat(session.ended_at),
        "outcome": session.outcome.value if session.outcome else None,
        "stop_reason": session.stop_reason.value if session.stop_reason else None,
        "error": session.error,
        "token_usage": {
            "input": session.token_usage.input,
            "output": session.token_usage.output,
        },
        "messages": [_message_to_dict(m) for m in session.messages],
        "tool_calls": [_record_to_dict(r) for r in session.tool_calls],
    }


def dict_to_session(data: dict[str, Any]) -> SessionState:
    usage = data.get("token_usage") or {}
    return SessionState(
        id=data["id"],
        role=data["role"],
        started_at=datetime.fromisoformat(data["started_at"]),
        model=data.get("model"),
        stage_type=StageType(data["stage_type"]) if data.get("stage_type") else None,
        chain_id=data.get("chain_id"),
        task_id=data.get("task_id"),
        workflow_id=data.get("workflow_id"),
        nesting_depth=data.get("nesting_depth", 0),
        parent_session_id=data.get("parent_session_id"),
        child_session_ids=list(data.get("child_session_ids") or []),
        messages=[_dict_to_message(m) for m in data.get("messages") or []],
        tool_calls=[_dict_to_record(r) for r in data.get("tool_calls") or []],
        token_usage=TokenUsage(usage.get("input", 0), usage.get("output", 0)),
        outcome=SessionOutcome(data["outcome"]) if data.get("outcome") else None,
        stop_reason=LoopStopReason(data["stop_reason"]) if data.get("stop_reason") else None,
        error=data.get("error"),
        ended_at=datetime.fromisoformat(data["ended_at"]) if data.get("ended_at") else None,
    )


class FilesystemSessionStore(SessionStoreInterface):
    """One JSON file per session. Each session has a single writer."""

    def __init__(self, sessions_dir: Path):
        self._dir = sessions_dir

    @classmethod
    def for_project(cls, project_root: Path) -> "FilesystemSessionStore":
        return cls(project_root / ".choreguard" / "sessions")

    def save(self, session: SessionState) -> None:
        write_json_atomic(self._dir / f"{session.id}.json", session_to_dict(session))

    def load(self, session_id: str) -> SessionState | None:
        path = self._dir / f"{session_id}.json"
        if not path.exists():
            return None
        return dict_to_session(read_json(path))


class InMemorySessionStore(SessionStoreInterface):
    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}
        self.save_count = 0

    def save(self, session: SessionState) -> None:
        self._sessions[session.id] = copy.deepcopy(session)
        self.save_count += 1

    def load(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    def list(self) -> list[SessionState]:
        return list(self._sessions.values())
