"""Tests for configuration management."""

from pathlib import Path

import pytest
import yaml

from fleet_status.server.config import (
    DEFAULT_RECENCY_THRESHOLD_MS,
    Config,
    ServerConfig,
)


class TestConfig:
    def test_default_config(self):
        config = Config()
        assert config.deployment_name == "Fleet Status API"
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 3001
        assert config.probe.timeout_ms == 3000
        assert config.agents.recency_threshold_ms == DEFAULT_RECENCY_THRESHOLD_MS
        assert config.agents.match_strategy == "first"
        assert "anvil" in config.fleet.hosts
        assert set(config.fleet.local.services) == {"dashboard", "prompt_browser", "ollama"}
        assert set(config.fleet.route_buckets) == {"anvil", "local", "cloud", "gpu"}

    def test_from_dict(self):
        data = {
            "deployment": {"name": "Test Fleet"},
            "server": {"host": "0.0.0.0", "port": 9000},
            "probe": {"timeout_ms": 1500},
            "fleet": {
                "local": {"key": "desk", "services": {"web": {"port": 8080, "path": "/health"}}},
                "hosts": {
                    "forge": {"primary": "10.0.0.6", "overlay": "100.64.0.6", "ssh_target": "forge"},
                    "bad": {"name": "No address"},
                },
                "gateway": {"port": 4100, "api_key": "secret"},
                "route_buckets": {"cloud": ["claude/"]},
            },
            "agents": {
                "recency_threshold_ms": 60000,
                "match_strategy": "longest",
                "aliases": {"night-shift": "Watcher"},
                "process_patterns": ["codex"],
            },
            "stores": {"vault_path": "/tmp/vault"},
        }
        config = Config.from_dict(data)

        assert config.deployment_name == "Test Fleet"
        assert config.server == ServerConfig(host="0.0.0.0", port=9000)
        assert config.probe.timeout_ms == 1500
        assert config.probe.grace_ms == 250
        assert config.fleet.local.key == "desk"
        assert config.fleet.local.services["web"].path == "/health"
        assert list(config.fleet.hosts) == ["forge"]
        assert config.fleet.hosts["forge"].name == "forge"
        assert config.fleet.hosts["forge"].port == 11434
        assert config.fleet.gateway.port == 4100
        assert config.fleet.gateway.api_key == "secret"
        assert config.fleet.route_buckets == {"cloud": ["claude/"]}
        assert config.agents.recency_threshold_ms == 60000
        assert config.agents.match_strategy == "longest"
        assert config.agents.aliases == {"night-shift": "Watcher"}
        assert config.agents.process_patterns == ["codex"]
        assert config.vault_path == Path("/tmp/vault")

    def test_empty_hosts_mapping_means_no_hosts(self):
        config = Config.from_dict({"fleet": {"hosts": {}}})
        assert config.fleet.hosts == {}

    def test_invalid_match_strategy(self):
        with pytest.raises(ValueError):
            Config.from_dict({"agents": {"match_strategy": "fuzzy"}})

    def test_gateway_key_from_env(self, monkeypatch):
        monkeypatch.setenv("FLEET_STATUS_GATEWAY_KEY", "from-env")
        assert Config.from_dict({}).fleet.gateway.api_key == "from-env"

    def test_to_dict_omits_gateway_key(self):
        config = Config.from_dict({"fleet": {"gateway": {"api_key": "secret"}}})
        data = config.to_dict()
        assert "secret" not in repr(data)
        assert data["server"]["port"] == 3001

    def test_paths_expand_user(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        config = Config()
        assert config.protocol_path == tmp_path / "agent-protocol.md"
        assert config.session_logs_dir == tmp_path / ".claude" / "session-logs"

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"server": {"port": 3100}}), encoding="utf-8")
        assert Config.from_yaml(path).server.port == 3100

    def test_from_yaml_missing_file(self, tmp_path):
        config = Config.from_yaml(tmp_path / "absent.yaml")
        assert config.server.port == 3001

    def test_load_explicit_path(self, tmp_path):
        path = tmp_path / "explicit.yaml"
        path.write_text("server:\n  port: 3200\n", encoding="utf-8")
        assert Config.load(str(path)).server.port == 3200

    def test_load_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("server:\n  port: 3300\n", encoding="utf-8")
        monkeypatch.setenv("FLEET_STATUS_CONFIG", str(path))
        monkeypatch.chdir(tmp_path)
        assert Config.load().server.port == 3300

    def test_load_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FLEET_STATUS_CONFIG", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)
        assert Config.load().server.port == 3001
