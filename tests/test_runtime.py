"""Tests for the filesystem-backed composition root."""

from pathlib import Path

from choreguard.config import Settings
from choreguard.domain.governance import GovernanceSchema
from choreguard.domain.models import ToolCall
from choreguard.domain.session import SessionContext
from choreguard.runtime import Runtime

GOVERNANCE_YAML = """\
mutations:
  allow:
    - pattern: "src/**"
"""


def _write(path: str) -> ToolCall:
    return ToolCall("c1", "write_file", {"path": path, "content": "x"})


class TestGovernance:
    def test_missing_governance_file_denies_writes(self, tmp_path: Path) -> None:
        runtime = Runtime(tmp_path, Settings())

        result = runtime.gate().validate(_write("secrets.key"), SessionContext(tmp_path, "impl"))

        assert runtime.governance == GovernanceSchema()
        assert not result.allowed

    def test_governance_file_is_applied(self, tmp_path: Path) -> None:
        (tmp_path / "governance.yaml").write_text(GOVERNANCE_YAML)
        gate = Runtime(tmp_path, Settings()).gate()
        context = SessionContext(tmp_path, "impl")

        assert gate.validate(_write("src/app.py"), context).allowed
        assert not gate.validate(_write("secrets.key"), context).allowed
