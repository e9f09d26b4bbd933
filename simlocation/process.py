"""Single entry point for running external commands such as ``xcrun simctl``.

The device listing and the location setter both go through
:class:`ProcessRunner`, so spawn failures, timeouts and nonzero exits are
reported the same way everywhere: as a :class:`ProcessResult`, never as an
exception.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import List, NamedTuple, Optional, Sequence

from simlocation.config import get_config
from simlocation.logging import get_logger

logger = get_logger(__name__)

# Exit codes used for failures that never reached the command itself
EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


class ProcessResult(NamedTuple):
    """Outcome of one external command."""

    args: List[str]
    returncode: int
    stdout: bytes
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ProcessRunner:
    """Runs an executable with a fixed argument prefix and optional timeout."""

    def __init__(
        self,
        executable: str,
        prefix: Sequence[str] = (),
        timeout: Optional[float] = None,
    ):
        self._executable = executable
        self._prefix = list(prefix)
        self._timeout = timeout

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    def is_available(self) -> bool:
        """Return True if the executable can be found in PATH."""
        return shutil.which(self._executable) is not None

    def command(self, *args: str) -> List[str]:
        return [self._executable, *self._prefix, *args]

    def run(self, *args: str) -> ProcessResult:
        """
        Run the command and wait for it to finish.

        Spawn failures map to exit code 127 and timeouts to 124, so callers
        only ever look at ``returncode``.
        """
        cmd = self.command(*args)
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                check=False,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %ss: %s", self._timeout, " ".join(cmd))
            return ProcessResult(cmd, EXIT_TIMEOUT, b"", "Command timed out")
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Could not run %s: %s", self._executable, e)
            return ProcessResult(cmd, EXIT_NOT_FOUND, b"", str(e))

        stderr = (result.stderr or b"").decode("utf-8", errors="replace").strip()
        if result.returncode != 0:
            logger.debug("Command exited %d: %s", result.returncode, stderr)
        return ProcessResult(cmd, result.returncode, result.stdout or b"", stderr)


class SimctlRunner(ProcessRunner):
    """``xcrun simctl`` bound to the configured launcher and timeout."""

    def __init__(self, executable: Optional[str] = None, timeout: Optional[float] = None):
        if executable is None or timeout is None:
            config = get_config()
            executable = executable or config.simctl_executable
            if timeout is None:
                timeout = config.command_timeout
        super().__init__(executable, prefix=("simctl",), timeout=timeout)
