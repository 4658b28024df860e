"""
Dict conversion for workflow records and templates.

Used for both the JSON workflow files and the YAML template files, so every
value produced here is a plain str/int/bool/list/dict.
"""

from datetime import datetime
from typing import Any

from choreguard.domain.workflow import (
    GateType,
    MessageRole,
    StageGate,
    StageHooks,
    StageStatus,
    StageType,
    TaskTransition,
    TransitionAction,
    TransitionActionType,
    Workflow,
    WorkflowMessage,
    WorkflowStage,
    WorkflowStatus,
    WorkflowTemplate,
    WorkflowTemplateStage,
)
from choreguard.infrastructure.persistence.atomic import isoformat


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# HOOKS
# =============================================================================


def action_to_dict(action: TransitionAction) -> dict[str, Any]:
    data: dict[str, Any] = {"type": action.type.value, "blocking": action.blocking}
    optional = {
        "command": action.command,
        "task_transition": action.task_transition.value if action.task_transition else None,
        "task_id": action.task_id,
        "chain_id": action.chain_id,
        "from": action.from_path,
        "to": action.to_path,
        "handler": action.handler,
    }
    data.update({k: v for k, v in optional.items() if v is not None})
    if action.params:
        data["params"] = dict(action.params)
    return data


def dict_to_action(data: dict[str, Any]) -> TransitionAction:
    transition = data.get("task_transition")
    return TransitionAction(
        type=TransitionActionType(data["type"]),
        blocking=data.get("blocking", True),
        command=data.get("command"),
        task_transition=TaskTransition(transition) if transition else None,
        task_id=data.get("task_id"),
        chain_id=data.get("chain_id"),
        from_path=data.get("from"),
        to_path=data.get("to"),
        handler=data.get("handler"),
        params=dict(data.get("params") or {}),
    )


def hooks_to_dict(hooks: StageHooks) -> dict[str, Any]:
    return {
        "on_enter": [action_to_dict(a) for a in hooks.on_enter],
        "on_exit": [action_to_dict(a) for a in hooks.on_exit],
    }


def dict_to_hooks(data: dict[str, Any] | None) -> StageHooks:
    data = data or {}
    return StageHooks(
        on_enter=tuple(dict_to_action(a) for a in data.get("on_enter") or ()),
        on_exit=tuple(dict_to_action(a) for a in data.get("on_exit") or ()),
    )


# =============================================================================
# WORKFLOWS
# =============================================================================


def _gate_to_dict(gate: StageGate) -> dict[str, Any]:
    return {
        "type": gate.type.value,
        "prompt": gate.prompt,
        "chain_id": gate.chain_id,
        "commands": list(gate.commands),
        "agent_triggered": gate.agent_triggered,
        "satisfied": gate.satisfied,
        "satisfied_by": gate.satisfied_by,
        "satisfied_at": isoformat(gate.satisfied_at),
    }


def _dict_to_gate(data: dict[str, Any]) -> StageGate:
    return StageGate(
        type=GateType(data["type"]),
        prompt=data.get("prompt"),
        chain_id=data.get("chain_id"),
        commands=list(data.get("commands") or []),
        agent_triggered=data.get("agent_triggered", False),
        satisfied=data.get("satisfied", False),
        satisfied_by=data.get("satisfied_by"),
        satisfied_at=_parse_dt(data.get("satisfied_at")),
    )


def _stage_to_dict(stage: WorkflowStage) -> dict[str, Any]:
    return {
        "name": stage.name,
        "type": stage.type.value,
        "status": stage.status.value,
        "gate": _gate_to_dict(stage.gate),
        "role_id": stage.role_id,
        "hooks": hooks_to_dict(stage.hooks),
        "chain_id": stage.chain_id,
        "session_id": stage.session_id,
        "started_at": isoformat(stage.started_at),
        "completed_at": isoformat(stage.completed_at),
    }


def _dict_to_stage(data: dict[str, Any]) -> WorkflowStage:
    return WorkflowStage(
        name=data["name"],
        type=StageType(data["type"]),
        gate=_dict_to_gate(data["gate"]),
        status=StageStatus(data["status"]),
        role_id=data.get("role_id"),
        hooks=dict_to_hooks(data.get("hooks")),
        chain_id=data.get("chain_id"),
        session_id=data.get("session_id"),
        started_at=_parse_dt(data.get("started_at")),
        completed_at=_parse_dt(data.get("completed_at")),
    )


def _message_to_dict(message: WorkflowMessage) -> dict[str, Any]:
    return {
        "id": message.id,
        "role": message.role.value,
        "content": message.content,
        "stage_index": message.stage_index,
        "timestamp": message.timestamp.isoformat(),
        "metadata": dict(message.metadata),
    }


def _dict_to_message(data: dict[str, Any]) -> WorkflowMessage:
    return WorkflowMessage(
        id=data["id"],
        role=MessageRole(data["role"]),
        content=data["content"],
        stage_index=data["stage_index"],
        timestamp=datetime.fromisoformat(data["timestamp"]),
        metadata=data.get("metadata") or {},
    )


def workflow_to_dict(workflow: Workflow) -> dict[str, Any]:
    return {
        "id": workflow.id,
        "request_id": workflow.request_id,
        "template_name": workflow.template_name,
        "current_stage": workflow.current_stage,
        "status": workflow.status.value,
        "version": workflow.version,
        "created_at": workflow.created_at.isoformat(),
        "updated_at": workflow.updated_at.isoformat(),
        "stages": [_stage_to_dict(s) for s in workflow.stages],
        "messages": [_message_to_dict(m) for m in workflow.messages],
    }


def dict_to_workflow(data: dict[str, Any]) -> Workflow:
    return Workflow(
        id=data["id"],
        request_id=data["request_id"],
        template_name=data["template_name"],
        stages=[_dict_to_stage(s) for s in data["stages"]],
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
        current_stage=data.get("current_stage", 0),
        status=WorkflowStatus(data["status"]),
        messages=[_dict_to_message(m) for m in data.get("messages") or []],
        version=data.get("version", 0),
    )


# =============================================================================
# TEMPLATES
# =============================================================================


def template_to_dict(template: WorkflowTemplate) -> dict[str, Any]:
    stages = []
    for stage in template.stages:
        entry: dict[str, Any] = {
            "name": stage.name,
            "type": stage.type.value,
            "gate": {"type": stage.gate_type.value},
        }
        gate_fields = {
            "prompt": stage.gate_prompt,
            "chain_id": stage.gate_chain_id,
            "commands": list(stage.gate_commands) or None,
            "agent_triggered": stage.agent_triggered or None,
        }
        entry["gate"].update({k: v for k, v in gate_fields.items() if v is not None})
        if stage.role_id:
            entry["role_id"] = stage.role_id
        if stage.hooks.on_enter or stage.hooks.on_exit:
            entry["hooks"] = hooks_to_dict(stage.hooks)
        stages.append(entry)

    data: dict[str, Any] = {
        "name": template.name,
        "version": template.version,
        "description": template.description,
        "created_at": isoformat(template.created_at),
        "updated_at": isoformat(template.updated_at),
        "stages": stages,
    }
    return {k: v for k, v in data.items() if v is not None}


def dict_to_template(data: dict[str, Any]) -> WorkflowTemplate:
    stages = []
    for entry in data.get("stages") or []:
        gate = entry.get("gate") or {}
        stages.append(
            WorkflowTemplateStage(
                name=entry["name"],
                type=StageType(entry["type"]),
                gate_type=GateType(gate.get("type", GateType.HUMAN_APPROVAL.value)),
                gate_prompt=gate.get("prompt"),
                gate_chain_id=gate.get("chain_id"),
                gate_commands=tuple(gate.get("commands") or ()),
                agent_triggered=gate.get("agent_triggered", False),
                role_id=entry.get("role_id"),
                hooks=dict_to_hooks(entry.get("hooks")),
            )
        )
    return WorkflowTemplate(
        name=data["name"],
        stages=tuple(stages),
        version=data.get("version", 1),
        description=data.get("description"),
        created_at=_parse_dt(data.get("created_at")),
        updated_at=_parse_dt(data.get("updated_at")),
    )
