"""Tests for stamp_server.config loading and environment overrides."""

import configparser
import logging

import pytest

from stamp_server import config as config_module
from stamp_server.config import (
    ServerConfig,
    _load_from_ini,
    _parse_list,
    configure_logging,
    get_config_status,
    load_config,
    print_config_summary,
    use_test_store,
)
from stamp_server.services import build_services

ENV_VARS = [
    "STAMP_HOST",
    "STAMP_PORT",
    "STAMP_CORS_ORIGINS",
    "STAMP_STORE_PATH",
    "STAMP_REWARD_THRESHOLD",
    "STAMP_DAILY_CAP",
    "STAMP_LOG_RETENTION",
    "STAMP_API_KEY",
    "STAMP_API_KEYS",
    "STAMP_TOKEN_TTL_MINUTES",
    "STAMP_STATIC_DIR",
    "STAMP_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
def test_defaults():
    cfg = ServerConfig()
    assert cfg.server.port == 3000
    assert cfg.loyalty.reward_threshold == 10
    assert cfg.loyalty.daily_stamp_cap == 3
    assert cfg.loyalty.log_retention == 1000
    assert cfg.auth.api_keys == []
    assert cfg.auth.token_ttl_minutes == 60
    assert cfg.security.cors_origins == ["*"]


@pytest.mark.unit
def test_server_and_store_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("STAMP_HOST", "127.0.0.1")
    monkeypatch.setenv("STAMP_PORT", "8080")
    monkeypatch.setenv("STAMP_STORE_PATH", str(tmp_path / "s.json"))
    monkeypatch.setenv("STAMP_CORS_ORIGINS", "https://a.example, https://b.example")

    cfg = load_config()

    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 8080
    assert cfg.store.absolute_path == tmp_path / "s.json"
    assert cfg.security.cors_origins == ["https://a.example", "https://b.example"]


@pytest.mark.unit
def test_loyalty_env_overrides(monkeypatch):
    monkeypatch.setenv("STAMP_REWARD_THRESHOLD", "8")
    monkeypatch.setenv("STAMP_DAILY_CAP", "5")
    monkeypatch.setenv("STAMP_LOG_RETENTION", "50")

    cfg = load_config()

    assert cfg.loyalty.reward_threshold == 8
    assert cfg.loyalty.daily_stamp_cap == 5
    assert cfg.loyalty.log_retention == 50


@pytest.mark.unit
def test_single_api_key_wins_over_list(monkeypatch):
    monkeypatch.setenv("STAMP_API_KEYS", "one,two")
    assert load_config().auth.api_keys == ["one", "two"]

    monkeypatch.setenv("STAMP_API_KEY", "solo")
    assert load_config().auth.api_keys == ["solo"]


@pytest.mark.unit
def test_auth_and_logging_env_overrides(monkeypatch):
    monkeypatch.setenv("STAMP_TOKEN_TTL_MINUTES", "15")
    monkeypatch.setenv("STAMP_LOG_LEVEL", "debug")
    monkeypatch.setenv("STAMP_STATIC_DIR", "/srv/public")

    cfg = load_config()

    assert cfg.auth.token_ttl_minutes == 15
    assert cfg.logging.level == "DEBUG"
    assert cfg.web.static_dir == "/srv/public"


@pytest.mark.unit
def test_ini_sections():
    """Every section of the INI file maps onto its dataclass."""
    parser = configparser.ConfigParser()
    parser.read_dict(
        {
            "server": {"host": "localhost", "port": "4000"},
            "store": {"path": "/var/lib/stamps.json"},
            "loyalty": {"reward_threshold": "12", "daily_stamp_cap": "2", "top_customers": "3"},
            "auth": {"api_keys": "k1, k2", "token_ttl_minutes": "30"},
            "logging": {"level": "warning", "format": "simple"},
        }
    )

    cfg = ServerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.server.port == 4000
    assert str(cfg.store.absolute_path) == "/var/lib/stamps.json"
    assert cfg.loyalty.reward_threshold == 12
    assert cfg.loyalty.daily_stamp_cap == 2
    assert cfg.loyalty.top_customers == 3
    assert cfg.auth.api_keys == ["k1", "k2"]
    assert cfg.auth.token_ttl_minutes == 30
    assert cfg.logging.level == "WARNING"
    assert cfg.logging.format == "simple"


@pytest.mark.unit
def test_ini_ignores_unknown_log_format():
    parser = configparser.ConfigParser()
    parser.read_dict({"logging": {"format": "json"}})
    cfg = ServerConfig()
    _load_from_ini(parser, cfg)
    assert cfg.logging.format == "detailed"


@pytest.mark.unit
def test_parse_list():
    assert _parse_list("") == []
    assert _parse_list(" a , ,b ") == ["a", "b"]


@pytest.mark.unit
def test_relative_store_path_resolves_under_project_root():
    cfg = ServerConfig()
    assert cfg.store.absolute_path == config_module.PROJECT_ROOT / "data" / "stamps.json"


@pytest.mark.unit
def test_use_test_store_restores_path(tmp_path):
    original = config_module.config.store.path
    with use_test_store(tmp_path / "stamps.json") as path:
        assert config_module.config.store.absolute_path == path
    assert config_module.config.store.path == original


@pytest.mark.unit
def test_services_follow_module_config(tmp_path):
    """Redirecting the singleton is how callers point new services elsewhere."""
    with use_test_store(tmp_path / "stamps.json") as path:
        services = build_services()
    assert services.config is config_module.config
    assert services.store.path == path


@pytest.mark.unit
def test_config_status_hides_key_values(monkeypatch):
    monkeypatch.setattr(config_module.config.auth, "api_keys", ["secret"])
    status = get_config_status()
    assert status["api_keys_count"] == 1
    assert "secret" not in str(status)


@pytest.mark.unit
def test_print_config_summary(capsys):
    print_config_summary()
    out = capsys.readouterr().out
    assert "SERVER CONFIGURATION" in out
    assert "Daily cap:" in out


@pytest.mark.unit
def test_configure_logging(monkeypatch):
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))
    cfg = ServerConfig()
    cfg.logging.level = "DEBUG"
    cfg.logging.format = "simple"

    configure_logging(cfg)

    assert calls["level"] == logging.DEBUG
    assert calls["format"] == "%(levelname)s %(message)s"
