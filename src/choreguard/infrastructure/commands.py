"""
Shell command runner used by hooks and verification gates.
"""

import logging
import subprocess
from pathlib import Path

from choreguard.domain.interfaces import CommandRunnerInterface
from choreguard.domain.models import CommandResult

logger = logging.getLogger("choreguard.commands")


class SubprocessCommandRunner(CommandRunnerInterface):
    """Run commands through the shell and capture their output.

    No timeout is applied unless one is configured.
    """

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout

    def run(self, command: str, cwd: Path) -> CommandResult:
        logger.debug("Running %r in %s", command, cwd)
        try:
            completed = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as e:
            return CommandResult(exit_code=124, stderr=f"Timed out after {e.timeout}s")
        if completed.returncode != 0:
            logger.info("Command %r exited with %d", command, completed.returncode)
        return CommandResult(
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
