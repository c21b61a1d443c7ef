"""Timeout utilities for external programs."""

import logging
import os
import signal
import subprocess
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


def kill_process_group(process: subprocess.Popen) -> bool:
    """Kill ``process`` together with every process it started.

    The process must have been started with ``start_new_session=True`` so it
    leads its own process group. Wrapper scripts often leave the real program
    running as a child holding the pipes; killing only the wrapper would not
    close them.

    Returns:
        False if nothing was left to kill.
    """
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            return False
        return True
    if process.poll() is not None:
        return False
    process.kill()
    return True


class Deadline:
    """Kill a subprocess if it is still running after ``timeout_seconds``.

    Killing the process group closes its pipes, so threads blocked reading or
    writing them return instead of hanging. If 0 or negative, no timeout is
    applied. Once :meth:`cancel` returns, the deadline can no longer fire.
    """

    def __init__(self, process: subprocess.Popen, timeout_seconds: int) -> None:
        self.process = process
        self.timeout_seconds = timeout_seconds
        self._expired = threading.Event()
        self._lock = threading.Lock()
        self._cancelled = False
        self._timer: threading.Timer | None = None

    @property
    def expired(self) -> bool:
        """Whether the process was killed by this deadline."""
        return self._expired.is_set()

    def start(self) -> None:
        if self.timeout_seconds <= 0:
            return
        self._timer = threading.Timer(self.timeout_seconds, self._kill)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _kill(self) -> None:
        with self._lock:
            if self._cancelled or not kill_process_group(self.process):
                return
            self._expired.set()
        logger.warning(
            f"Killed {self.process.args!r} after {self.timeout_seconds} seconds"
        )


@contextmanager
def deadline(process: subprocess.Popen, timeout_seconds: int) -> Iterator[Deadline]:
    """Context manager running a :class:`Deadline` for the enclosed block.

    Example:
        >>> with deadline(proc, 30) as watchdog:
        ...     output = proc.stdout.read()
        >>> watchdog.expired
        False
    """
    watchdog = Deadline(process, timeout_seconds)
    watchdog.start()
    try:
        yield watchdog
    finally:
        watchdog.cancel()
