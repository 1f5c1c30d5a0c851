"""Plain TCP transport: newline-delimited lines, no acks, no framing header."""

import logging
import socket

from logrelay.errors import TransportError

logger = logging.getLogger(__name__)


class Connection:
    """One agent-to-collector TCP connection. Never reused after close."""

    def __init__(self, sock: socket.socket, host: str, port: int):
        self._sock = sock
        self._host = host
        self._port = port
        self._bytes_sent = 0

    @property
    def closed(self) -> bool:
        return self._sock is None

    @property
    def bytes_sent(self) -> int:
        return self._bytes_sent

    @property
    def local_address(self) -> tuple | None:
        """The (host, port) this end is bound to, as the collector sees it."""
        sock = self._sock
        if sock is None:
            return None
        try:
            return sock.getsockname()
        except OSError:
            return None

    def send_line(self, line: bytes):
        """Write one line followed by ``\\n``. Raises TransportError on failure."""
        sock = self._sock
        if sock is None:
            raise TransportError("connection is closed")
        data = line + b"\n"
        try:
            sock.sendall(data)
        except socket.timeout as e:
            raise TransportError(f"write to {self._host}:{self._port} timed out") from e
        except OSError as e:
            raise TransportError(f"write to {self._host}:{self._port} failed: {e}") from e
        self._bytes_sent += len(data)

    def close(self):
        """Close the socket. Safe to call from another thread and more than once."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            sock.close()
        except OSError:
            pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def open_connection(host: str, port: int, connect_timeout: float | None = None,
                    write_timeout: float | None = None) -> Connection:
    """Connect to the collector. ``None`` timeouts block indefinitely.

    Raises TransportError if the connection cannot be established.
    """
    try:
        sock = socket.create_connection((host, port), timeout=connect_timeout)
    except (OSError, ValueError) as e:
        # ValueError covers host names the IDNA codec rejects.
        raise TransportError(f"connect to {host}:{port} failed: {e}") from e

    sock.settimeout(write_timeout)
    logger.info("Connected to %s:%d", host, port)
    return Connection(sock, host, port)
