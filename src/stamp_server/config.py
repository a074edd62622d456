"""
Server configuration management.

This module handles loading and accessing server configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The ServerConfig
dataclass provides typed access to all settings.

Usage:
    from stamp_server.config import config

    print(config.server.port)
    print(config.loyalty.reward_threshold)

Environment Variable Mapping:
    STAMP_HOST               -> server.host
    STAMP_PORT               -> server.port
    STAMP_CORS_ORIGINS       -> security.cors_origins
    STAMP_STORE_PATH         -> store.path
    STAMP_REWARD_THRESHOLD   -> loyalty.reward_threshold
    STAMP_DAILY_CAP          -> loyalty.daily_stamp_cap
    STAMP_LOG_RETENTION      -> loyalty.log_retention
    STAMP_API_KEY            -> auth.api_keys (single key)
    STAMP_API_KEYS           -> auth.api_keys (comma-separated)
    STAMP_TOKEN_TTL_MINUTES  -> auth.token_ttl_minutes
    STAMP_STATIC_DIR         -> web.static_dir
    STAMP_LOG_LEVEL          -> logging.level
"""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 3000


@dataclass
class SecuritySettings:
    """CORS configuration for the counter and dashboard frontends."""

    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    cors_allow_credentials: bool = False
    cors_allow_methods: list[str] = field(default_factory=lambda: ["*"])
    cors_allow_headers: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class StoreSettings:
    """Location of the persisted JSON document."""

    path: str = "data/stamps.json"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to the document file."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoyaltySettings:
    """Stamp-card rules."""

    reward_threshold: int = 10
    daily_stamp_cap: int = 3
    log_retention: int = 1000
    top_customers: int = 5


@dataclass
class AuthSettings:
    """Operator authentication configuration."""

    api_keys: list[str] = field(default_factory=list)
    token_ttl_minutes: int = 60


@dataclass
class WebSettings:
    """Static frontend configuration. Empty ``static_dir`` disables the mount."""

    static_dir: str = ""


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed"] = "detailed"


@dataclass
class ServerConfig:
    """
    Complete server configuration.

    This is the main configuration object that aggregates all settings sections.
    Access via the module-level `config` singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    loyalty: LoyaltySettings = field(default_factory=LoyaltySettings)
    auth: AuthSettings = field(default_factory=AuthSettings)
    web: WebSettings = field(default_factory=WebSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string to list, stripping whitespace."""
    if not value or value.strip() == "":
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_from_ini(parser: configparser.ConfigParser, cfg: ServerConfig) -> None:
    """Load configuration from parsed INI file into ServerConfig."""
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    if parser.has_section("security"):
        if parser.has_option("security", "cors_origins"):
            cfg.security.cors_origins = _parse_list(parser.get("security", "cors_origins"))
        if parser.has_option("security", "cors_allow_credentials"):
            cfg.security.cors_allow_credentials = _parse_bool(
                parser.get("security", "cors_allow_credentials")
            )
        if parser.has_option("security", "cors_allow_methods"):
            cfg.security.cors_allow_methods = _parse_list(
                parser.get("security", "cors_allow_methods")
            )
        if parser.has_option("security", "cors_allow_headers"):
            cfg.security.cors_allow_headers = _parse_list(
                parser.get("security", "cors_allow_headers")
            )

    if parser.has_section("store"):
        if parser.has_option("store", "path"):
            cfg.store.path = parser.get("store", "path")

    if parser.has_section("loyalty"):
        if parser.has_option("loyalty", "reward_threshold"):
            cfg.loyalty.reward_threshold = parser.getint("loyalty", "reward_threshold")
        if parser.has_option("loyalty", "daily_stamp_cap"):
            cfg.loyalty.daily_stamp_cap = parser.getint("loyalty", "daily_stamp_cap")
        if parser.has_option("loyalty", "log_retention"):
            cfg.loyalty.log_retention = parser.getint("loyalty", "log_retention")
        if parser.has_option("loyalty", "top_customers"):
            cfg.loyalty.top_customers = parser.getint("loyalty", "top_customers")

    if parser.has_section("auth"):
        if parser.has_option("auth", "api_keys"):
            cfg.auth.api_keys = _parse_list(parser.get("auth", "api_keys"))
        if parser.has_option("auth", "token_ttl_minutes"):
            cfg.auth.token_ttl_minutes = parser.getint("auth", "token_ttl_minutes")

    if parser.has_section("web"):
        if parser.has_option("web", "static_dir"):
            cfg.web.static_dir = parser.get("web", "static_dir")

    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed"):
                cfg.logging.format = val  # type: ignore[assignment]


def _apply_env_overrides(cfg: ServerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_host := os.getenv("STAMP_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("STAMP_PORT"):
        cfg.server.port = int(env_port)

    if env_cors := os.getenv("STAMP_CORS_ORIGINS"):
        cfg.security.cors_origins = _parse_list(env_cors)

    if env_store := os.getenv("STAMP_STORE_PATH"):
        cfg.store.path = env_store

    if env_threshold := os.getenv("STAMP_REWARD_THRESHOLD"):
        cfg.loyalty.reward_threshold = int(env_threshold)
    if env_cap := os.getenv("STAMP_DAILY_CAP"):
        cfg.loyalty.daily_stamp_cap = int(env_cap)
    if env_retention := os.getenv("STAMP_LOG_RETENTION"):
        cfg.loyalty.log_retention = int(env_retention)

    # A single key wins over the list, matching how operators usually deploy.
    if (env_key := os.getenv("STAMP_API_KEY")) and env_key.strip():
        cfg.auth.api_keys = [env_key.strip()]
    elif env_keys := os.getenv("STAMP_API_KEYS"):
        cfg.auth.api_keys = _parse_list(env_keys)
    if env_ttl := os.getenv("STAMP_TOKEN_TTL_MINUTES"):
        cfg.auth.token_ttl_minutes = int(env_ttl)

    if env_static := os.getenv("STAMP_STATIC_DIR"):
        cfg.web.static_dir = env_static

    if env_log := os.getenv("STAMP_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()


def load_config() -> ServerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        ServerConfig: Fully populated configuration object.
    """
    cfg = ServerConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# LOGGING
# =============================================================================

_LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
}


def configure_logging(cfg: ServerConfig | None = None) -> None:
    """Configure the root logger from the ``[logging]`` section."""
    cfg = cfg or config
    logging.basicConfig(
        level=getattr(logging, cfg.logging.level, logging.INFO),
        format=_LOG_FORMATS.get(cfg.logging.format, _LOG_FORMATS["detailed"]),
    )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    API keys are reported as a count, never as values.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "store_path": str(config.store.absolute_path),
        "api_keys_count": len(config.auth.api_keys),
        "reward_threshold": config.loyalty.reward_threshold,
        "daily_stamp_cap": config.loyalty.daily_stamp_cap,
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("SERVER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to server.ini for production)")
    print("-" * 60)
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"Store:       {status['store_path']}")
    print(f"API keys:    {status['api_keys_count']}")
    print(f"Reward at:   {status['reward_threshold']} stamps")
    print(f"Daily cap:   {status['daily_stamp_cap']} stamps")
    print(f"Log level:   {config.logging.level}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_store:
    """
    Context manager for pointing the store at a temporary document file.

    Usage:
        from stamp_server.config import use_test_store

        def test_something(tmp_path):
            with use_test_store(tmp_path / "stamps.json"):
                app = create_app()

    Args:
        store_path: Path to the test document file
    """

    def __init__(self, store_path: Path | str):
        self.store_path = Path(store_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test store path."""
        self.original_path = config.store.path
        config.store.path = str(self.store_path)
        return self.store_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original store path."""
        if self.original_path is not None:
            config.store.path = self.original_path
        return None
