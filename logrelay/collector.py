"""Collector: TCP accept loop with one thread and one sink file per client."""

import logging
import socket
import threading
import time
from dataclasses import dataclass

from logrelay.config import CollectorConfig
from logrelay.sink import Sink, sink_filename

logger = logging.getLogger(__name__)

# How often blocked accept/recv calls wake up to look at the shutdown event.
POLL_INTERVAL = 1.0


def format_peer(addr: tuple) -> str:
    host, port = addr[0], addr[1]
    if ":" in str(host):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass
class ClientSession:
    """Book-keeping for one accepted connection and its sink."""

    addr: tuple
    session_id: int
    sink_path: str | None = None
    lines: int = 0
    bytes_received: int = 0

    @property
    def peer(self) -> str:
        return format_peer(self.addr)


def handle_client(conn: socket.socket, addr: tuple, session_id: int,
                  config: CollectorConfig, shutdown_event: threading.Event) -> ClientSession:
    """Handle one client connection. Runs in its own thread.

    Opens the peer's sink in append mode, then appends every received line
    until the peer disconnects, a read fails, or shutdown is requested.
    """
    session = ClientSession(addr=tuple(addr[:2]), session_id=session_id)
    logger.info("New connection from %s (session %d)", session.peer, session_id)

    try:
        filename = sink_filename(addr, config.sink_naming, session_id)
        try:
            sink = Sink(config.output_dir, filename)
        except OSError as e:
            logger.error("Failed to open sink %s for %s: %s", filename, session.peer, e)
            return session

        session.sink_path = sink.path
        with sink:
            _receive_lines(conn, sink, session, config, shutdown_event)
    finally:
        conn.close()
        logger.info("Connection from %s closed (session %d, %d lines)",
                    session.peer, session_id, session.lines)
    return session


def _receive_lines(conn: socket.socket, sink: Sink, session: ClientSession,
                   config: CollectorConfig, shutdown_event: threading.Event):
    conn.settimeout(POLL_INTERVAL)
    buffer = bytearray()
    last_data = time.monotonic()
    peer_closed = False

    while not shutdown_event.is_set():
        try:
            data = conn.recv(config.buffer_size)
        except socket.timeout:
            idle = time.monotonic() - last_data
            if config.read_timeout is not None and idle >= config.read_timeout:
                logger.warning("No data from %s for %.1fs, closing", session.peer, idle)
                break
            continue
        except OSError as e:
            logger.warning("Failed to read line from %s: %s", session.peer, e)
            break

        if not data:
            peer_closed = True
            break

        last_data = time.monotonic()
        session.bytes_received += len(data)
        buffer += data
        if b"\n" not in data:
            continue

        start = 0
        end = buffer.find(b"\n", len(buffer) - len(data))
        while end >= 0:
            if not _append(sink, bytes(buffer[start:end]), session):
                return
            start = end + 1
            end = buffer.find(b"\n", start)
        del buffer[:start]

    # A final line without terminator is still a line once the peer is done.
    if peer_closed and buffer:
        _append(sink, bytes(buffer), session)


def _append(sink: Sink, line: bytes, session: ClientSession) -> bool:
    if line.endswith(b"\r"):
        line = line[:-1]
    try:
        sink.write_line(line)
    except OSError as e:
        logger.error("Failed to write to %s for %s: %s", sink.path, session.peer, e)
        return False
    session.lines = sink.lines_written
    return True


class Collector:
    """Multi-threaded TCP collector. Accepts forever, one thread per client."""

    def __init__(self, config: CollectorConfig, shutdown_event: threading.Event):
        self._config = config
        self._shutdown_event = shutdown_event
        self._sock: socket.socket | None = None
        self._server_address = None
        self._active: set[int] = set()
        self._next_session_id = 0
        self._lock = threading.Lock()

    @property
    def server_address(self) -> tuple:
        """Return (host, port) the collector is bound to. Useful when port=0."""
        return self._server_address

    @property
    def active_sessions(self) -> int:
        with self._lock:
            return len(self._active)

    def start(self):
        """Bind, listen, and accept connections until shutdown.

        Raises OSError if the listening socket cannot be bound.
        """
        family = socket.AF_INET6 if ":" in self._config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.settimeout(POLL_INTERVAL)
            sock.bind((self._config.host, self._config.port))
            sock.listen(socket.SOMAXCONN)
        except OSError:
            sock.close()
            raise

        self._sock = sock
        self._server_address = sock.getsockname()[:2]
        logger.info("Collector listening on %s, writing to %s",
                    format_peer(self._server_address), self._config.output_dir)

        while not self._shutdown_event.is_set():
            try:
                conn, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._shutdown_event.is_set():
                    break
                logger.error("Failed to accept connection: %s", e)
                self._shutdown_event.wait(0.1)
                continue

            self._dispatch(conn, addr)

    def _dispatch(self, conn: socket.socket, addr: tuple):
        with self._lock:
            max_clients = self._config.max_clients
            if max_clients and len(self._active) >= max_clients:
                session_id = None
            else:
                self._next_session_id += 1
                session_id = self._next_session_id
                self._active.add(session_id)

        if session_id is None:
            logger.warning("Rejecting %s: %d clients already connected",
                           format_peer(addr), max_clients)
            conn.close()
            return

        t = threading.Thread(
            target=self._run_session,
            args=(conn, addr, session_id),
            name=f"session-{session_id}",
            daemon=True,
        )
        t.start()

    def _run_session(self, conn: socket.socket, addr: tuple, session_id: int):
        try:
            handle_client(conn, addr, session_id, self._config, self._shutdown_event)
        finally:
            with self._lock:
                self._active.discard(session_id)

    def stop(self):
        """Signal shutdown and close the listen socket."""
        logger.info("Collector shutting down...")
        self._shutdown_event.set()
        if self._sock:
            try:
                self._sock.close()
            except OSError:
                pass
