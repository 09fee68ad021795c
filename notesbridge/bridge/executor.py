"""osascript execution with per-script timeouts and cancellable deadlines."""

import logging
import subprocess
import threading
import time
from typing import Optional, Protocol

from notesbridge.core.errors import ScriptCancelled, ScriptExecutionError

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_TIMEOUT = 10.0
# how often a running script checks for cancellation
POLL_INTERVAL = 0.1


class Deadline:
    """
    point in time by which a call must finish, with an explicit cancel switch.

    A deadline without a timeout never expires but can still be cancelled.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def remaining(self) -> Optional[float]:
        """seconds left, 0.0 once expired, or None for an unbounded deadline."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """cancels the deadline; running scripts are terminated."""
        self._cancelled.set()


class ScriptExecutor(Protocol):  # pylint: disable=too-few-public-methods
    """protocol for running AppleScript source."""

    def execute(
        self,
        script: str,
        deadline: Optional[Deadline] = None,
        *,
        source_output: bool = False,
    ) -> str:
        """runs the script and returns its stdout."""


class OsaScriptExecutor:  # pylint: disable=too-few-public-methods
    """runs AppleScript through the osascript binary, one process per call."""

    def __init__(
        self, timeout: float = DEFAULT_SCRIPT_TIMEOUT, binary: str = "osascript"
    ) -> None:
        """
        Initialize the executor.

        Args:
            timeout: seconds a single script may run; <= 0 uses the default
            binary: osascript executable to invoke
        """
        self.timeout = timeout if timeout > 0 else DEFAULT_SCRIPT_TIMEOUT
        self.binary = binary

    def _budget(self, deadline: Optional[Deadline]) -> float:
        if deadline is None:
            return self.timeout
        remaining = deadline.remaining()
        if remaining is None:
            return self.timeout
        return min(self.timeout, remaining)

    def execute(
        self,
        script: str,
        deadline: Optional[Deadline] = None,
        *,
        source_output: bool = False,
    ) -> str:
        """
        runs the script and returns its stdout.

        stdout and stderr are read from separate pipes; stderr never leaks
        into the returned output.

        Args:
            script: AppleScript source
            deadline: caller deadline; the script is killed when it expires
                or is cancelled
            source_output: print results in recompilable source form
                (``osascript -s s``), used for record-valued scripts

        Returns:
            stdout of the script

        Raises:
            subprocess.CalledProcessError: osascript exited non-zero; stderr
                holds the diagnostics
            subprocess.TimeoutExpired: the time budget ran out
            ScriptCancelled: the deadline was cancelled
            ScriptExecutionError: osascript could not be started
        """
        cmd = [self.binary]
        if source_output:
            cmd += ["-s", "s"]
        cmd += ["-e", script]

        budget = self._budget(deadline)
        if deadline is not None and deadline.cancelled:
            raise ScriptCancelled("deadline cancelled before script started")
        if budget <= 0:
            raise subprocess.TimeoutExpired(cmd, 0)

        logger.debug("running osascript (%d chars, budget %.1fs)", len(script), budget)
        started = time.monotonic()
        try:
            proc = subprocess.Popen(  # pylint: disable=consider-using-with
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise ScriptExecutionError(f"failed to start {self.binary}: {e}") from e

        with proc:
            stdout, stderr = self._wait(proc, cmd, budget, started, deadline)

        elapsed = time.monotonic() - started
        logger.debug("osascript exited %s after %.2fs", proc.returncode, elapsed)
        if proc.returncode != 0:
            raise subprocess.CalledProcessError(
                proc.returncode, cmd, output=stdout, stderr=stderr
            )
        return stdout

    def _wait(
        self,
        proc: "subprocess.Popen[str]",
        cmd: list[str],
        budget: float,
        started: float,
        deadline: Optional[Deadline],
    ) -> tuple[str, str]:
        """waits for the process, killing it on timeout or cancellation."""
        while True:
            if deadline is not None and deadline.cancelled:
                self._kill(proc)
                raise ScriptCancelled("deadline cancelled while script was running")

            remaining = budget - (time.monotonic() - started)
            if remaining <= 0:
                stdout, stderr = self._kill(proc)
                raise subprocess.TimeoutExpired(
                    cmd, budget, output=stdout, stderr=stderr
                )

            try:
                return proc.communicate(timeout=min(remaining, POLL_INTERVAL))
            except subprocess.TimeoutExpired:
                continue

    @staticmethod
    def _kill(proc: "subprocess.Popen[str]") -> tuple[str, str]:
        logger.warning("terminating osascript (pid %s)", proc.pid)
        proc.kill()
        return proc.communicate()
