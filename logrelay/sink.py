"""Per-connection sink files: append-only, named from the peer address."""

import os


def sink_filename(addr: tuple, naming: str = "peer", session_id: int | None = None) -> str:
    """Return the sink file name for a peer address.

    ``peer`` -> ``logs_<host>_<port>.txt``, ``host`` -> ``logs_<host>.txt``,
    ``session`` -> ``logs_<host>_<port>_<session_id>.txt``. Colons in IPv6
    hosts become ``-`` so the name stays a single path component.
    """
    host = str(addr[0]).replace(":", "-").replace("%", "-")
    port = addr[1]

    if naming == "peer":
        return f"logs_{host}_{port}.txt"
    if naming == "host":
        return f"logs_{host}.txt"
    if naming == "session":
        if session_id is None:
            raise ValueError("session naming requires a session id")
        return f"logs_{host}_{port}_{session_id}.txt"
    raise ValueError(f"unknown sink naming: {naming!r}")


class Sink:
    """Append-only file opened once and kept open for one client session.

    The file is unbuffered. A line normally goes out in a single ``write``, so
    concurrent sessions appending to the same file interleave whole lines;
    a short write is retried with the remaining bytes.
    """

    def __init__(self, output_dir: str, filename: str):
        os.makedirs(output_dir, exist_ok=True)
        self._path = os.path.join(output_dir, filename)
        self._file = open(self._path, "ab", buffering=0)
        self._lines = 0

    @property
    def path(self) -> str:
        return self._path

    @property
    def lines_written(self) -> int:
        return self._lines

    @property
    def closed(self) -> bool:
        return self._file is None

    def write_line(self, line: bytes) -> bool:
        """Append one line plus a terminator. Returns False if the sink is closed."""
        if self._file is None:
            return False
        data = memoryview(line + b"\n")
        while data:
            written = self._file.write(data)
            data = data[written:]
        self._lines += 1
        return True

    def close(self):
        """Close the file handle. The file itself is kept."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
