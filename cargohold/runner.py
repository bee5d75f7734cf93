import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from cargohold import logger as package_logger
from cargohold.errors import EngineCommandCancelled, EngineCommandError, EngineTimeoutError

KILL_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class RunResult:
    """Captured output of one successful engine invocation."""
    args: Tuple[str, ...]
    stdout: str
    stderr: str = ""


class EngineRunner:
    """Runs one engine subcommand per call as an argument vector, never through a shell."""

    def __init__(
        self,
        binary: str = "docker",
        timeout: Optional[float] = 300.0,
        poll_interval: float = 0.1,
        logger: Optional[logging.Logger] = None,
    ):
        self.binary = binary
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.logger = logger or package_logger

    def run(self, args: Sequence[str], cancel_event: Optional[threading.Event] = None) -> RunResult:
        """
        Executes `<binary> <args...>` and waits for it to exit.

        Args:
            args: Subcommand and flags as discrete tokens.
            cancel_event: When set, the process is killed (or never spawned).

        Returns:
            A RunResult holding stdout and stderr.

        Raises:
            EngineCommandError: If the process cannot be spawned or exits non-zero.
            EngineTimeoutError: If the process outlives the configured timeout.
            EngineCommandCancelled: If cancel_event is set before the process exits.
        """
        argv = [self.binary, *[str(a) for a in args]]
        if cancel_event is not None and cancel_event.is_set():
            self.logger.info(f"Skipping cancelled command: {' '.join(argv)}")
            raise EngineCommandCancelled(argv)

        self.logger.debug(f"Running engine command: {argv}")
        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            exit_code = 127 if isinstance(e, FileNotFoundError) else 126
            self.logger.error(f"Failed to spawn {self.binary}: {e}")
            raise EngineCommandError(argv, exit_code=exit_code, stderr=str(e)) from e

        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        while True:
            wait = self.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._kill(proc)
                    self.logger.warning(f"Engine command timed out after {self.timeout}s: {argv}")
                    raise EngineTimeoutError(argv, self.timeout)
                wait = min(wait, remaining)
            try:
                stdout, stderr = proc.communicate(timeout=wait)
                break
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    self._kill(proc)
                    self.logger.info(f"Engine command cancelled: {argv}")
                    raise EngineCommandCancelled(argv)

        if proc.returncode != 0:
            self.logger.warning(f"Engine command exited with {proc.returncode}: {argv}: {(stderr or '').strip()}")
            raise EngineCommandError(argv, exit_code=proc.returncode, stderr=stderr or "")

        return RunResult(args=tuple(argv), stdout=stdout or "", stderr=stderr or "")

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        proc.kill()
        # Reap the child so no zombie or open pipe is left behind.
        try:
            proc.communicate(timeout=KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            # A grandchild still holds the pipes; the engine process itself is dead.
            pass
