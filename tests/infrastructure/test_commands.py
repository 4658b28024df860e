"""Tests for SubprocessCommandRunner."""

from pathlib import Path

from choreguard.infrastructure.commands import SubprocessCommandRunner


class TestSubprocessCommandRunner:
    def test_success_captures_stdout(self, tmp_path: Path) -> None:
        result = SubprocessCommandRunner().run("echo hello", tmp_path)

        assert result.success
        assert result.stdout.strip() == "hello"

    def test_runs_in_given_directory(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("")

        result = SubprocessCommandRunner().run("ls", tmp_path)

        assert "marker.txt" in result.stdout

    def test_failure_exit_code(self, tmp_path: Path) -> None:
        result = SubprocessCommandRunner().run("echo broken >&2; exit 3", tmp_path)

        assert not result.success
        assert result.exit_code == 3
        assert result.stderr.strip() == "broken"

    def test_timeout_reports_124(self, tmp_path: Path) -> None:
        result = SubprocessCommandRunner(timeout=0.2).run("sleep 5", tmp_path)

        assert result.exit_code == 124
        assert "Timed out" in result.stderr
