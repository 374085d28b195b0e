import pytest

from core.config import Config


def test_defaults_are_valid():
    config = Config()
    config.validate()
    assert config.ws_url == "ws://localhost:8123/api/websocket"


def test_ws_url_for_https():
    config = Config(ha_url="https://ha.example.org/")
    assert config.ws_url == "wss://ha.example.org/api/websocket"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"ha_url": "ftp://ha"},
        {"state_query_timeout": 0},
        {"callback_workers": 0},
        {"intake_queue_size": -1},
        {"service_call_timeout": -5},
        {"shutdown_timeout": 0},
        {"log_format": "xml"},
        {"http_port": 0},
    ],
)
def test_validate_rejects(kwargs):
    with pytest.raises(ValueError):
        Config(**kwargs).validate()


def test_from_env(monkeypatch):
    monkeypatch.setenv("RUNTIME_HA_URL", "http://192.168.1.10:8123")
    monkeypatch.setenv("RUNTIME_HA_TOKEN", "secret")
    monkeypatch.setenv("RUNTIME_STATE_QUERY_TIMEOUT", "2.5")
    monkeypatch.setenv("RUNTIME_CALLBACK_WORKERS", "4")
    monkeypatch.setenv("RUNTIME_SERVICE_CALL_TIMEOUT", "none")
    monkeypatch.setenv("RUNTIME_LOG_FORMAT", "JSON")
    monkeypatch.setenv("RUNTIME_METRICS_ENABLED", "false")

    config = Config.from_env()

    assert config.ha_url == "http://192.168.1.10:8123"
    assert config.ha_token == "secret"
    assert config.state_query_timeout == 2.5
    assert config.callback_workers == 4
    assert config.service_call_timeout is None
    assert config.log_format == "json"
    assert config.metrics_enabled is False


def test_from_env_invalid(monkeypatch):
    monkeypatch.setenv("RUNTIME_HA_URL", "localhost:8123")
    with pytest.raises(ValueError):
        Config.from_env()
