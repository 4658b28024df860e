"""
Tool name encoding shared by the SDK adapters.

Provider APIs restrict tool names to ``[a-zA-Z0-9_-]``; catalog names such
as ``task:start`` are sent as ``task__start`` and mapped back on return.
"""

from collections.abc import Iterable

from choreguard.domain.models import ToolSpec

_SEPARATOR = ":"
_WIRE_SEPARATOR = "__"


def encode_tool_name(name: str) -> str:
    return name.replace(_SEPARATOR, _WIRE_SEPARATOR)


def name_table(tools: Iterable[ToolSpec]) -> dict[str, str]:
    """Map wire names back to catalog names for one request."""
    return {encode_tool_name(t.name): t.name for t in tools}


def decode_tool_name(wire_name: str, table: dict[str, str]) -> str:
    return table.get(wire_name, wire_name.replace(_WIRE_SEPARATOR, _SEPARATOR))
