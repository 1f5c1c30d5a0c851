"""Capture-and-forward agent: relays a log source's lines to the collector."""

import logging
import threading
from enum import Enum

from logrelay.config import AgentConfig
from logrelay.errors import CaptureError
from logrelay.source import LogSource
from logrelay.transport import Connection, open_connection

logger = logging.getLogger(__name__)


class AgentState(Enum):
    IDLE = "idle"
    SPAWNING_SOURCE = "spawning_source"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    FAILED = "failed"
    STOPPED = "stopped"


class Agent:
    """Supervised capture loop with a fixed retry delay.

    Each iteration spawns a fresh log source, opens a fresh connection and
    forwards lines until something fails. Any failure ends the iteration, is
    logged, and the next iteration starts after ``retry_delay`` seconds.
    Nothing carries over between iterations: lines produced while no
    connection is up are never sent.

    States: IDLE -> SPAWNING_SOURCE -> CONNECTING -> STREAMING -> FAILED ->
    (sleep) -> SPAWNING_SOURCE ..., and STOPPED once the shutdown event ends
    ``run()``.
    """

    def __init__(self, config: AgentConfig, shutdown_event: threading.Event):
        self._config = config
        self._shutdown = shutdown_event
        self._state = AgentState.IDLE
        self._attempts = 0
        self._lines_sent = 0
        self._last_error: CaptureError | None = None
        self._source: LogSource | None = None
        self._conn: Connection | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def lines_sent(self) -> int:
        return self._lines_sent

    @property
    def last_error(self) -> CaptureError | None:
        return self._last_error

    def _set_state(self, state: AgentState):
        if state is not self._state:
            logger.debug("Agent state %s -> %s", self._state.value, state.value)
            self._state = state

    def run(self):
        """Run capture iterations until the shutdown event is set."""
        logger.info("Agent forwarding %s to %s:%d",
                    " ".join(self._config.source_command),
                    self._config.collector_host, self._config.collector_port)

        while not self._shutdown.is_set():
            try:
                self.run_once()
            except CaptureError as e:
                if self._shutdown.is_set():
                    break
                self._last_error = e
                self._set_state(AgentState.FAILED)
                logger.error("Error capturing logs: %s (retrying in %.1fs)",
                             e, self._config.retry_delay)
                self._shutdown.wait(self._config.retry_delay)

        self._set_state(AgentState.STOPPED)
        logger.info("Agent stopped: attempts=%d, lines_sent=%d",
                    self._attempts, self._lines_sent)

    def run_once(self) -> int:
        """Run one iteration: spawn, connect, stream.

        Returns the number of lines forwarded. In practice an iteration only
        ends by raising CaptureError, since the source ending is an error too.
        """
        self._attempts += 1
        sent = 0
        source = LogSource(self._config.source_command)
        conn = None

        try:
            self._set_state(AgentState.SPAWNING_SOURCE)
            source.start()
            self._register(source=source)
            logger.debug("Log source running (pid=%s)", source.pid)

            self._set_state(AgentState.CONNECTING)
            conn = open_connection(
                self._config.collector_host,
                self._config.collector_port,
                connect_timeout=self._config.connect_timeout,
                write_timeout=self._config.write_timeout,
            )
            self._register(conn=conn)
            logger.info("Streaming to %s:%d from %s", self._config.collector_host,
                        self._config.collector_port, conn.local_address)

            self._set_state(AgentState.STREAMING)
            for line in source.lines():
                conn.send_line(line)
                sent += 1
                self._lines_sent += 1
        finally:
            with self._lock:
                self._source = None
                self._conn = None
            if conn is not None:
                logger.debug("Iteration %d forwarded %d lines (%d bytes)",
                             self._attempts, sent, conn.bytes_sent)
                conn.close()
            source.stop()

        return sent

    def _register(self, source: LogSource | None = None, conn: Connection | None = None):
        """Expose the live source/connection to stop(), unless a stop already happened."""
        with self._lock:
            if self._shutdown.is_set():
                raise CaptureError("agent is stopping")
            if source is not None:
                self._source = source
            if conn is not None:
                self._conn = conn

    def stop(self):
        """Set the shutdown event and unblock a pending read or write."""
        self._shutdown.set()
        with self._lock:
            source, conn = self._source, self._conn
        if conn is not None:
            conn.close()
        if source is not None:
            source.stop()
