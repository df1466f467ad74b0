"""Tests for common utilities."""

import io
import json

import pytest
from prometheus_client import CollectorRegistry

from libs.common.config import BaseConfig, SolrConfig, get_config
from libs.common.logging import configure_logging, get_logger
from libs.common.metrics import SolrMetrics
from libs.solr.transport import PoolConfig


def test_config_loading():
    """Test configuration loading."""
    config = BaseConfig()
    assert config.yz_env == "local"
    assert config.yz_log_level == "INFO"


def test_solr_config_defaults():
    """Test Solr configuration defaults."""
    config = SolrConfig()
    assert config.yz_solr_port == 8093
    assert config.base_url == "http://localhost:8093/internal_solr"
    assert config.pool_config() == PoolConfig(max_sessions=10, max_pipeline_size=10)


def test_solr_config_from_env(monkeypatch):
    """Test environment overrides."""
    monkeypatch.setenv("YZ_SOLR_PORT", "10014")
    monkeypatch.setenv("YZ_SOLR_MAX_SESSIONS", "25")
    config = SolrConfig()
    assert config.base_url == "http://localhost:10014/internal_solr"
    assert config.pool_config().max_sessions == 25


def test_get_config():
    """Test config selection by name."""
    assert isinstance(get_config("solr"), SolrConfig)
    assert type(get_config("unknown")) is BaseConfig


def test_logging_configuration():
    """Test logging configuration."""
    # This should not raise an exception
    configure_logging("test-service", "INFO", "json")
    configure_logging("test-service", "DEBUG", "console", node="dev1@127.0.0.1")


def test_logging_to_stream():
    """Log lines go to the stream they are configured with."""
    stream = io.StringIO()
    configure_logging("test-service", "INFO", "json", stream=stream)
    get_logger("solr.test").info("Core reloaded", core="fruit")

    line = json.loads(stream.getvalue().splitlines()[-1])
    assert line["event"] == "Core reloaded"
    assert line["service"] == "test-service"
    assert line["core"] == "fruit"


def test_metrics_collector():
    """Test metrics collector."""
    metrics = SolrMetrics(registry=CollectorRegistry())
    metrics.record_request("search", "200", 0.1)
    metrics.record_request("search", "error", 0.2)

    text = metrics.get_metrics()
    assert isinstance(text, str)
    assert 'solr_requests_total{operation="search",status="200"} 1.0' in text
    assert 'solr_requests_total{operation="search",status="error"} 1.0' in text
    assert "solr_request_duration_seconds" in text


def test_pool_config_validation():
    """Pool sizes must be positive integers."""
    with pytest.raises(ValueError):
        PoolConfig(max_sessions=0)
    with pytest.raises(ValueError):
        PoolConfig(max_pipeline_size="5")
