"""Configuration module: frozen dataclasses loaded from YAML, env vars and CLI args.

Precedence, lowest to highest: dataclass defaults, the optional YAML file
given with ``--config``, environment variables, command-line flags.
"""

import argparse
import logging
import os
import shlex
from dataclasses import dataclass

import yaml

from logrelay.errors import ConfigError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
SINK_NAMING_MODES = ("peer", "host", "session")


def _parse_timeout(value) -> float | None:
    """Parse a timeout setting. ``None``, ``""``, ``"none"`` and 0 mean no timeout."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value.lower() in ("", "none"):
            return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid timeout: {value!r}") from None
    if seconds < 0:
        raise ConfigError(f"timeout must be >= 0, got {seconds}")
    return seconds or None


def _parse_command(value) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        argv = tuple(str(part) for part in value)
    else:
        argv = tuple(shlex.split(str(value)))
    if not argv:
        raise ConfigError("source command must not be empty")
    return argv


def _to_int(name: str, value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _to_float(name: str, value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def _check_port(port: int):
    if not 0 <= port <= 65535:
        raise ConfigError(f"port must be between 0 and 65535, got {port}")


def _check_log_level(level: str):
    if level not in LOG_LEVELS:
        raise ConfigError(f"unknown log level {level!r}, expected one of {LOG_LEVELS}")


def _check_host(host: str):
    if not host:
        raise ConfigError("collector host must not be empty")
    try:
        host.encode("idna")
    except UnicodeError as e:
        raise ConfigError(f"invalid collector host {host!r}: {e}") from None


@dataclass(frozen=True)
class AgentConfig:
    collector_host: str = "192.168.1.100"
    collector_port: int = 12345
    source_command: tuple[str, ...] = ("logcat",)
    retry_delay: float = 5.0
    connect_timeout: float | None = None
    write_timeout: float | None = None
    log_level: str = "INFO"

    def __post_init__(self):
        _check_host(self.collector_host)
        _check_port(self.collector_port)
        if not self.source_command:
            raise ConfigError("source command must not be empty")
        if self.retry_delay < 0:
            raise ConfigError(f"retry delay must be >= 0, got {self.retry_delay}")
        _check_log_level(self.log_level)


@dataclass(frozen=True)
class CollectorConfig:
    host: str = "0.0.0.0"
    port: int = 12345
    output_dir: str = "."
    sink_naming: str = "peer"
    buffer_size: int = 4096
    read_timeout: float | None = None
    max_clients: int = 0
    log_level: str = "INFO"

    def __post_init__(self):
        _check_port(self.port)
        if self.sink_naming not in SINK_NAMING_MODES:
            raise ConfigError(
                f"unknown sink naming {self.sink_naming!r}, expected one of {SINK_NAMING_MODES}"
            )
        if self.buffer_size <= 0:
            raise ConfigError(f"buffer size must be > 0, got {self.buffer_size}")
        if self.max_clients < 0:
            raise ConfigError(f"max clients must be >= 0, got {self.max_clients}")
        _check_log_level(self.log_level)


def load_yaml_config(path: str | None) -> dict:
    """Load a YAML config file. Returns empty dict if no path or file is missing."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"expected a mapping at the top of {path}")
    logger.info("Loaded YAML config from %s", path)
    return data


def _section(yaml_data: dict, name: str) -> dict:
    section = yaml_data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"config section {name!r} must be a mapping")
    return section


def _pick(cli_value, env_name: str, section: dict, key: str, default):
    """Return the highest-priority value: CLI arg, env var, YAML entry, default."""
    if cli_value is not None:
        return cli_value
    if env_name in os.environ:
        return os.environ[env_name]
    if key in section:
        return section[key]
    return default


def build_agent_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="logrelay agent: forward a log source to a collector")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--collector-host", type=str, default=None)
    parser.add_argument("--collector-port", type=int, default=None)
    parser.add_argument("--source-command", type=str, default=None,
                        help="Command whose stdout is forwarded (default: logcat)")
    parser.add_argument("--retry-delay", type=float, default=None,
                        help="Seconds to wait after a failed iteration (default: 5)")
    parser.add_argument("--connect-timeout", type=str, default=None)
    parser.add_argument("--write-timeout", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None)
    return parser


def build_collector_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="logrelay collector: persist lines from agents")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--output-dir", type=str, default=None)
    parser.add_argument("--sink-naming", choices=SINK_NAMING_MODES, default=None)
    parser.add_argument("--buffer-size", type=int, default=None)
    parser.add_argument("--read-timeout", type=str, default=None)
    parser.add_argument("--max-clients", type=int, default=None)
    parser.add_argument("--log-level", type=str, default=None)
    return parser


def load_agent_config(argv: list[str] | None = None) -> AgentConfig:
    """Build AgentConfig from defaults <- YAML <- env vars <- CLI args."""
    args = build_agent_parser().parse_args(argv)
    section = _section(load_yaml_config(args.config), "agent")
    d = AgentConfig

    return AgentConfig(
        collector_host=str(_pick(args.collector_host, "COLLECTOR_HOST", section,
                                 "collector_host", d.collector_host)),
        collector_port=_to_int("collector_port", _pick(
            args.collector_port, "COLLECTOR_PORT", section, "collector_port", d.collector_port)),
        source_command=_parse_command(_pick(
            args.source_command, "SOURCE_COMMAND", section, "source_command", d.source_command)),
        retry_delay=_to_float("retry_delay", _pick(
            args.retry_delay, "RETRY_DELAY", section, "retry_delay", d.retry_delay)),
        connect_timeout=_parse_timeout(_pick(
            args.connect_timeout, "CONNECT_TIMEOUT", section, "connect_timeout", None)),
        write_timeout=_parse_timeout(_pick(
            args.write_timeout, "WRITE_TIMEOUT", section, "write_timeout", None)),
        log_level=str(_pick(args.log_level, "LOG_LEVEL", section, "log_level", d.log_level)).upper(),
    )


def load_collector_config(argv: list[str] | None = None) -> CollectorConfig:
    """Build CollectorConfig from defaults <- YAML <- env vars <- CLI args."""
    args = build_collector_parser().parse_args(argv)
    section = _section(load_yaml_config(args.config), "collector")
    d = CollectorConfig

    return CollectorConfig(
        host=str(_pick(args.host, "COLLECTOR_BIND_HOST", section, "host", d.host)),
        port=_to_int("port", _pick(args.port, "COLLECTOR_PORT", section, "port", d.port)),
        output_dir=str(_pick(args.output_dir, "OUTPUT_DIR", section, "output_dir", d.output_dir)),
        sink_naming=str(_pick(args.sink_naming, "SINK_NAMING", section,
                              "sink_naming", d.sink_naming)).lower(),
        buffer_size=_to_int("buffer_size", _pick(
            args.buffer_size, "BUFFER_SIZE", section, "buffer_size", d.buffer_size)),
        read_timeout=_parse_timeout(_pick(
            args.read_timeout, "READ_TIMEOUT", section, "read_timeout", None)),
        max_clients=_to_int("max_clients", _pick(
            args.max_clients, "MAX_CLIENTS", section, "max_clients", d.max_clients)),
        log_level=str(_pick(args.log_level, "LOG_LEVEL", section, "log_level", d.log_level)).upper(),
    )
