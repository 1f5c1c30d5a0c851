"""Shared pytest fixtures for the logrelay test suite."""

from __future__ import annotations

import os
import sys
import threading
import time

import pytest

from logrelay.collector import Collector
from logrelay.config import CollectorConfig

AGENT_ENV_VARS = (
    "COLLECTOR_HOST", "COLLECTOR_PORT", "SOURCE_COMMAND", "RETRY_DELAY",
    "CONNECT_TIMEOUT", "WRITE_TIMEOUT", "LOG_LEVEL",
)
COLLECTOR_ENV_VARS = (
    "COLLECTOR_BIND_HOST", "COLLECTOR_PORT", "OUTPUT_DIR", "SINK_NAMING",
    "BUFFER_SIZE", "READ_TIMEOUT", "MAX_CLIENTS", "LOG_LEVEL",
)


def python_command(script: str) -> tuple[str, ...]:
    """Return a log source command that runs *script* with this interpreter."""
    return (sys.executable, "-u", "-c", script)


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll *predicate* until it returns truthy or *timeout* elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def read_bytes(path) -> bytes:
    if not os.path.exists(path):
        return b""
    with open(path, "rb") as f:
        return f.read()


@pytest.fixture()
def clean_env(monkeypatch):
    """Remove every logrelay environment variable for the test."""
    for name in set(AGENT_ENV_VARS) | set(COLLECTOR_ENV_VARS):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def sink_dir(tmp_path) -> str:
    return str(tmp_path / "sinks")


@pytest.fixture()
def start_collector(sink_dir):
    """Start collectors on 127.0.0.1 (port 0 unless given). Stopped at teardown."""
    started = []

    def _start(**overrides) -> Collector:
        defaults = {"host": "127.0.0.1", "port": 0, "output_dir": sink_dir}
        defaults.update(overrides)
        collector = Collector(CollectorConfig(**defaults), threading.Event())
        thread = threading.Thread(target=collector.start, daemon=True)
        thread.start()
        if not wait_for(lambda: collector.server_address is not None):
            raise RuntimeError("Collector failed to bind")
        started.append((collector, thread))
        return collector

    yield _start

    for collector, thread in started:
        collector.stop()
        thread.join(timeout=5)
