"""Tests for logrelay/config.py: AgentConfig, CollectorConfig and their loaders."""

import dataclasses

import pytest

from logrelay.config import (
    AgentConfig,
    CollectorConfig,
    _parse_timeout,
    load_agent_config,
    load_collector_config,
    load_yaml_config,
)
from logrelay.errors import ConfigError


# ── _parse_timeout helper ───────────────────────────────────────────

class TestParseTimeout:
    @pytest.mark.parametrize("value", [None, "", "none", "None", " NONE ", 0, "0"])
    def test_no_timeout_values(self, value):
        assert _parse_timeout(value) is None

    def test_numeric_string(self):
        assert _parse_timeout("2.5") == 2.5

    def test_number(self):
        assert _parse_timeout(3) == 3.0

    def test_negative_rejected(self):
        with pytest.raises(ConfigError):
            _parse_timeout("-1")

    def test_garbage_rejected(self):
        with pytest.raises(ConfigError):
            _parse_timeout("soon")


# ── Defaults and validation ─────────────────────────────────────────

class TestAgentConfigDefaults:
    def test_all_defaults(self):
        cfg = AgentConfig()
        assert cfg.collector_host == "192.168.1.100"
        assert cfg.collector_port == 12345
        assert cfg.source_command == ("logcat",)
        assert cfg.retry_delay == 5.0
        assert cfg.connect_timeout is None
        assert cfg.write_timeout is None
        assert cfg.log_level == "INFO"

    def test_frozen(self):
        cfg = AgentConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.retry_delay = 1.0

    def test_rejects_bad_port(self):
        with pytest.raises(ConfigError):
            AgentConfig(collector_port=70000)

    def test_rejects_negative_retry_delay(self):
        with pytest.raises(ConfigError):
            AgentConfig(retry_delay=-0.5)

    def test_rejects_empty_command(self):
        with pytest.raises(ConfigError):
            AgentConfig(source_command=())

    def test_rejects_unknown_log_level(self):
        with pytest.raises(ConfigError):
            AgentConfig(log_level="CHATTY")

    def test_rejects_overlong_host_label(self):
        with pytest.raises(ConfigError):
            AgentConfig(collector_host="a" * 64 + ".example")

    def test_rejects_empty_host(self):
        with pytest.raises(ConfigError):
            AgentConfig(collector_host="")

    @pytest.mark.parametrize("host", ["localhost", "10.0.0.5", "::1", "collector.lan"])
    def test_accepts_usual_hosts(self, host):
        assert AgentConfig(collector_host=host).collector_host == host


class TestCollectorConfigDefaults:
    def test_all_defaults(self):
        cfg = CollectorConfig()
        assert cfg.host == "0.0.0.0"
        assert cfg.port == 12345
        assert cfg.output_dir == "."
        assert cfg.sink_naming == "peer"
        assert cfg.buffer_size == 4096
        assert cfg.read_timeout is None
        assert cfg.max_clients == 0
        assert cfg.log_level == "INFO"

    def test_frozen(self):
        cfg = CollectorConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.port = 9999

    def test_rejects_unknown_sink_naming(self):
        with pytest.raises(ConfigError):
            CollectorConfig(sink_naming="random")

    def test_rejects_zero_buffer(self):
        with pytest.raises(ConfigError):
            CollectorConfig(buffer_size=0)

    def test_rejects_negative_max_clients(self):
        with pytest.raises(ConfigError):
            CollectorConfig(max_clients=-1)


# ── YAML loading ────────────────────────────────────────────────────

class TestLoadYamlConfig:
    def test_no_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "absent.yml")) == {}

    def test_reads_mapping(self, tmp_path):
        path = tmp_path / "logrelay.yml"
        path.write_text("agent:\n  collector_port: 4000\n")
        assert load_yaml_config(str(path)) == {"agent": {"collector_port": 4000}}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_yaml_config(str(path)) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("agent: [unclosed\n")
        with pytest.raises(ConfigError):
            load_yaml_config(str(path))

    def test_top_level_list_rejected(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_yaml_config(str(path))


# ── load_agent_config ───────────────────────────────────────────────

class TestLoadAgentConfig:
    def test_defaults(self, clean_env):
        cfg = load_agent_config([])
        assert cfg == AgentConfig()

    def test_env_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("COLLECTOR_HOST", "10.0.0.5")
        monkeypatch.setenv("COLLECTOR_PORT", "7000")
        monkeypatch.setenv("SOURCE_COMMAND", "tail -F /var/log/syslog")
        monkeypatch.setenv("RETRY_DELAY", "0.5")
        monkeypatch.setenv("CONNECT_TIMEOUT", "3")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        cfg = load_agent_config([])
        assert cfg.collector_host == "10.0.0.5"
        assert cfg.collector_port == 7000
        assert cfg.source_command == ("tail", "-F", "/var/log/syslog")
        assert cfg.retry_delay == 0.5
        assert cfg.connect_timeout == 3.0
        assert cfg.write_timeout is None
        assert cfg.log_level == "DEBUG"

    def test_cli_beats_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("COLLECTOR_PORT", "7000")
        cfg = load_agent_config(["--collector-port", "8000", "--write-timeout", "none"])
        assert cfg.collector_port == 8000
        assert cfg.write_timeout is None

    def test_yaml_section(self, clean_env, tmp_path):
        path = tmp_path / "logrelay.yml"
        path.write_text(
            "agent:\n"
            "  collector_host: 127.0.0.1\n"
            "  collector_port: 4000\n"
            "  source_command: [logcat, -v, time]\n"
            "  retry_delay: 1.5\n"
            "collector:\n"
            "  port: 5000\n"
        )
        cfg = load_agent_config(["--config", str(path)])
        assert cfg.collector_host == "127.0.0.1"
        assert cfg.collector_port == 4000
        assert cfg.source_command == ("logcat", "-v", "time")
        assert cfg.retry_delay == 1.5

    def test_env_beats_yaml(self, clean_env, monkeypatch, tmp_path):
        path = tmp_path / "logrelay.yml"
        path.write_text("agent:\n  collector_port: 4000\n")
        monkeypatch.setenv("COLLECTOR_PORT", "4100")
        cfg = load_agent_config(["--config", str(path)])
        assert cfg.collector_port == 4100

    def test_invalid_env_value(self, clean_env, monkeypatch):
        monkeypatch.setenv("COLLECTOR_PORT", "not-a-port")
        with pytest.raises(ConfigError):
            load_agent_config([])

    def test_invalid_host_from_cli(self, clean_env):
        with pytest.raises(ConfigError):
            load_agent_config(["--collector-host", "b" * 70])

    def test_empty_source_command(self, clean_env):
        with pytest.raises(ConfigError):
            load_agent_config(["--source-command", "   "])


# ── load_collector_config ───────────────────────────────────────────

class TestLoadCollectorConfig:
    def test_defaults(self, clean_env):
        assert load_collector_config([]) == CollectorConfig()

    def test_env_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("COLLECTOR_BIND_HOST", "127.0.0.1")
        monkeypatch.setenv("COLLECTOR_PORT", "6000")
        monkeypatch.setenv("OUTPUT_DIR", "/tmp/sinks")
        monkeypatch.setenv("SINK_NAMING", "HOST")
        monkeypatch.setenv("BUFFER_SIZE", "1024")
        monkeypatch.setenv("READ_TIMEOUT", "30")
        monkeypatch.setenv("MAX_CLIENTS", "8")
        cfg = load_collector_config([])
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 6000
        assert cfg.output_dir == "/tmp/sinks"
        assert cfg.sink_naming == "host"
        assert cfg.buffer_size == 1024
        assert cfg.read_timeout == 30.0
        assert cfg.max_clients == 8

    def test_cli_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("SINK_NAMING", "host")
        cfg = load_collector_config(["--port", "0", "--sink-naming", "session",
                                     "--output-dir", "out"])
        assert cfg.port == 0
        assert cfg.sink_naming == "session"
        assert cfg.output_dir == "out"

    def test_cli_rejects_unknown_naming(self, clean_env):
        with pytest.raises(SystemExit):
            load_collector_config(["--sink-naming", "random"])

    def test_yaml_section(self, clean_env, tmp_path):
        path = tmp_path / "logrelay.yml"
        path.write_text("collector:\n  port: 5000\n  max_clients: 2\n")
        cfg = load_collector_config(["--config", str(path)])
        assert cfg.port == 5000
        assert cfg.max_clients == 2

    def test_yaml_section_must_be_mapping(self, clean_env, tmp_path):
        path = tmp_path / "logrelay.yml"
        path.write_text("collector: 5000\n")
        with pytest.raises(ConfigError):
            load_collector_config(["--config", str(path)])
