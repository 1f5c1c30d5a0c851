"""Exception types shared by the agent, transport and config modules."""


class LogRelayError(Exception):
    """Base class for logrelay errors."""


class ConfigError(LogRelayError):
    """Raised when a configuration value is invalid."""


class CaptureError(LogRelayError):
    """Raised when one agent capture iteration fails."""


class SourceError(CaptureError):
    """Raised when the log source cannot be spawned or read."""


class SourceExitedError(SourceError):
    """Raised when the log source's output ends."""

    def __init__(self, returncode: int | None = None):
        self.returncode = returncode
        if returncode is None:
            super().__init__("log source closed its output")
        else:
            super().__init__(f"log source exited with status {returncode}")


class TransportError(CaptureError):
    """Raised when connecting to or writing to the collector fails."""
