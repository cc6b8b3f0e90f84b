"""Tests for configuration loading and validation."""

import pytest

from node_flow_engine import settings
from node_flow_engine.config import (
    build_runner,
    config_defaults,
    config_schema,
    load_config,
    validate_config_dict,
    validate_config_file,
)


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config == config_defaults()
        assert config["server"]["port"] == settings.server_port

    def test_file_is_deep_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("server:\n  port: 8080\nengine:\n  max_depth: 4\n")
        config = load_config(path)
        assert config["server"] == {"host": settings.server_host, "port": 8080}
        assert config["engine"]["max_depth"] == 4
        assert config["engine"]["history_limit"] == settings.engine_history_limit

    @pytest.mark.parametrize("content", ["server: [unclosed", "- just\n- a list\n"])
    def test_unusable_file_is_ignored(self, tmp_path, content, caplog):
        path = tmp_path / "config.yaml"
        path.write_text(content)
        assert load_config(path) == config_defaults()
        assert "Ignoring" in caplog.text

    def test_defaults_are_copies(self):
        config_defaults()["server"]["port"] = 1
        assert config_defaults()["server"]["port"] == settings.server_port

    def test_schema_lists_sections(self):
        schema = config_schema()
        assert set(schema["properties"]) == {"data_dir", "cache_dir", "flows_dir", "server", "engine"}


class TestValidateConfig:
    def test_defaults_are_valid(self):
        assert validate_config_dict(config_defaults()) == []

    @pytest.mark.parametrize("data,error", [
        ([], "Config must be a mapping/object"),
        ({"colour": "red"}, "Unknown config key: colour"),
        ({"flows_dir": 3}, "flows_dir must be a string"),
        ({"server": "localhost"}, "server must be an object"),
        ({"server": {"tls": True}}, "Unknown server key: tls"),
        ({"server": {"port": 0}}, "server.port must be an integer between 1 and 65535"),
        ({"server": {"port": True}}, "server.port must be an integer between 1 and 65535"),
        ({"engine": {"max_depth": 0}}, "engine.max_depth must be a positive integer"),
        ({"engine": {"history_limit": -1}}, "engine.history_limit must be a non-negative integer"),
    ])
    def test_errors(self, data, error):
        assert error in validate_config_dict(data)

    def test_validate_file(self, tmp_path):
        assert validate_config_file(tmp_path / "absent.yaml") == []

        path = tmp_path / "config.yaml"
        path.write_text("engine:\n  max_depth: many\n")
        assert validate_config_file(path) == ["engine.max_depth must be a positive integer"]


class TestBuildRunner:
    def test_engine_settings_applied(self, registry):
        runner = build_runner({"engine": {"max_depth": 3, "history_limit": 5}})
        assert runner.engine.max_depth == 3
        assert runner.history_limit == 5
        assert runner.registry is registry

    def test_missing_section_uses_settings(self, registry):
        runner = build_runner({})
        assert runner.engine.max_depth == settings.engine_max_depth
        assert runner.history_limit == settings.engine_history_limit
