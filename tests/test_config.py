"""Tests for service configuration."""
import json

import pytest

from claimgraph.config import ConfigValidationError, ServiceConfig


class TestServiceConfig:
    def test_defaults(self):
        config = ServiceConfig()
        assert config.data_file is None
        assert config.log_level == "INFO"
        assert config.cors_origins == ["*"]
        assert config.frontend_url == "http://localhost:3000"
        assert config.slow_query_threshold_seconds == 1.0
        assert config.search_default_limit == 50

    def test_to_dict_round_trip(self):
        config = ServiceConfig(log_level="DEBUG", search_default_limit=10)
        restored = ServiceConfig.from_dict(config.to_dict())
        assert restored == config

    def test_from_dict_normalises_log_level(self):
        assert ServiceConfig.from_dict({"log_level": "warning"}).log_level == "WARNING"

    def test_invalid_log_level(self):
        with pytest.raises(ConfigValidationError, match="log_level"):
            ServiceConfig.from_dict({"log_level": "LOUD"})

    def test_invalid_limits(self):
        with pytest.raises(ConfigValidationError) as exc:
            ServiceConfig.from_dict({"search_default_limit": 0, "slow_query_threshold_seconds": -1})
        assert "search_default_limit" in str(exc.value)
        assert "slow_query_threshold_seconds" in str(exc.value)


class TestFromEnv:
    def test_empty_environment(self):
        assert ServiceConfig.from_env({}) == ServiceConfig()

    def test_reads_prefixed_variables(self):
        config = ServiceConfig.from_env({
            "CLAIMGRAPH_DATA_FILE": "/data/store.json",
            "CLAIMGRAPH_LOG_LEVEL": "debug",
            "CLAIMGRAPH_CORS_ORIGINS": "http://a.example, http://b.example,",
            "CLAIMGRAPH_FRONTEND_URL": "https://ui.example",
            "CLAIMGRAPH_SLOW_QUERY_SECONDS": "0.25",
            "CLAIMGRAPH_SEARCH_LIMIT": "20",
            "UNRELATED": "ignored",
        })
        assert config.data_file == "/data/store.json"
        assert config.log_level == "DEBUG"
        assert config.cors_origins == ["http://a.example", "http://b.example"]
        assert config.frontend_url == "https://ui.example"
        assert config.slow_query_threshold_seconds == 0.25
        assert config.search_default_limit == 20

    def test_bad_number(self):
        with pytest.raises(ConfigValidationError, match="Invalid numeric setting"):
            ServiceConfig.from_env({"CLAIMGRAPH_SEARCH_LIMIT": "many"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("CLAIMGRAPH_FRONTEND_URL", "https://env.example")
        assert ServiceConfig.from_env().frontend_url == "https://env.example"


class TestFilePersistence:
    def test_save_and_load(self, tmp_path):
        path = tmp_path / "conf" / "service.json"
        config = ServiceConfig(frontend_url="https://ui.example", cors_origins=["https://ui.example"])

        config.save(path)

        assert json.loads(path.read_text())["frontend_url"] == "https://ui.example"
        assert ServiceConfig.load(path) == config

    def test_load_missing_file_gives_defaults(self, tmp_path):
        assert ServiceConfig.load(tmp_path / "missing.json") == ServiceConfig()
