"""logrelay: stream a device's log lines to a central TCP collector."""

__version__ = "0.1.0"
