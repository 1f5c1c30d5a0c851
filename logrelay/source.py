"""Log source: a long-running subprocess whose stdout is read line by line."""

import logging
import subprocess
import threading

from logrelay.errors import SourceError, SourceExitedError

logger = logging.getLogger(__name__)


def strip_terminator(raw: bytes) -> bytes:
    """Drop a trailing ``\\n`` and the ``\\r`` of a CRLF terminator."""
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw


class LogSource:
    """Spawns the log source command and yields its output lines as bytes."""

    def __init__(self, command: tuple[str, ...] | list[str]):
        self._command = list(command)
        self._proc: subprocess.Popen | None = None
        self._lock = threading.Lock()

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    def start(self):
        """Launch the command. Raises SourceError if it cannot be spawned."""
        try:
            self._proc = subprocess.Popen(
                self._command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            raise SourceError(f"failed to start {self._command[0]!r}: {e}") from e
        logger.debug("Started log source %s", self._command)

    def lines(self):
        """Yield lines without their terminators until the output ends.

        Raises SourceError on a read error and SourceExitedError at end of output.
        """
        proc = self._proc
        if proc is None or proc.stdout is None:
            raise SourceError("log source is not running")

        stdout = proc.stdout
        while True:
            try:
                raw = stdout.readline()
            except (OSError, ValueError) as e:
                raise SourceError(f"failed to read log source: {e}") from e
            if not raw:
                break
            yield strip_terminator(raw)

        try:
            returncode = proc.wait(timeout=1.0)
        except subprocess.TimeoutExpired:
            returncode = None
        raise SourceExitedError(returncode)

    def stop(self):
        """Terminate the process if still running and reap it.

        May be called from another thread to unblock a pending read.
        """
        with self._lock:
            proc, self._proc = self._proc, None
        if proc is None:
            return
        if proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=2.0)
            except subprocess.TimeoutExpired:
                logger.warning("Log source pid=%d ignored SIGTERM, killing", proc.pid)
                proc.kill()
                proc.wait()
        if proc.stdout is not None:
            proc.stdout.close()
