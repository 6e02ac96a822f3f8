"""
YAML configuration loader.

Loads application settings from YAML files with:
- Environment variable substitution
- Typed dataclasses with default values
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog
import yaml

from grant_tracker.adapters.base import AdapterConfig, FeedConfig

logger = structlog.get_logger(__name__)

CONFIG_ENV_VAR = "GRANT_TRACKER_CONFIG"


def substitute_env_vars(text: str) -> str:
    """
    Substitute environment variables in text.

    Supports formats:
    - ${VAR_NAME} - required, warning and empty string if missing
    - ${VAR_NAME:-default} - optional with default

    Args:
        text: Text with env var placeholders

    Returns:
        Text with substituted values
    """
    def replace(match):
        var_expr = match.group(1)
        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return os.getenv(var_name, default)
        else:
            value = os.getenv(var_expr)
            if value is None:
                logger.warning("env_var_not_set", var=var_expr)
                return ""
            return value

    return re.sub(r"\$\{([^}]+)\}", replace, text)


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_dict(cls, data: dict) -> "ServerConfig":
        return cls(
            host=str(data.get("host") or "0.0.0.0"),
            port=int(data.get("port") or 8080),
        )


@dataclass
class StorageConfig:
    backend: str = "memory"  # memory, apify
    store_name: str = "grant-tracker"

    @classmethod
    def from_dict(cls, data: dict) -> "StorageConfig":
        return cls(
            backend=str(data.get("backend") or "memory").lower(),
            store_name=str(data.get("store_name") or "grant-tracker"),
        )


@dataclass
class HttpConfig:
    requests_per_second: float = 2.0
    timeout: float = 10.0
    max_retries: int = 2

    @classmethod
    def from_dict(cls, data: dict) -> "HttpConfig":
        return cls(
            requests_per_second=float(data.get("requests_per_second", 2.0)),
            timeout=float(data.get("timeout", 10.0)),
            max_retries=int(data.get("max_retries", 2)),
        )


@dataclass
class SearchConfig:
    """Cache TTLs (seconds) and result caps per endpoint."""
    basic_ttl: int = 3600
    enhanced_ttl: int = 900
    basic_limit: int = 10
    enhanced_limit: int = 20

    @classmethod
    def from_dict(cls, data: dict) -> "SearchConfig":
        return cls(
            basic_ttl=int(data.get("basic_ttl", 3600)),
            enhanced_ttl=int(data.get("enhanced_ttl", 900)),
            basic_limit=int(data.get("basic_limit", 10)),
            enhanced_limit=int(data.get("enhanced_limit", 20)),
        )


@dataclass
class MonitorConfig:
    """TTLs (seconds) for feed monitor records."""
    grants_ttl: int = 7 * 86400
    status_ttl: int = 30 * 86400

    @classmethod
    def from_dict(cls, data: dict) -> "MonitorConfig":
        return cls(
            grants_ttl=int(data.get("grants_ttl", 7 * 86400)),
            status_ttl=int(data.get("status_ttl", 30 * 86400)),
        )


@dataclass
class AppConfig:
    """Complete application configuration."""
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    adapters: list[AdapterConfig] = field(default_factory=list)
    feeds: list[FeedConfig] = field(default_factory=list)

    def adapters_for(self, endpoint: str) -> list[AdapterConfig]:
        """Enabled adapters serving an endpoint ("basic" or "enhanced"), in declaration order."""
        return [a for a in self.adapters if a.enabled and endpoint in a.endpoints]


class ConfigLoader:
    """
    Configuration loader for application settings.

    Loads YAML config files and builds typed config objects.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_dir: Directory containing config files
                       (defaults to package config directory)
        """
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path(__file__).parent

    def load_file(self, filename: str) -> dict:
        """
        Load YAML config file.

        Args:
            filename: Config file name (relative to config_dir)

        Returns:
            Parsed config dict
        """
        filepath = self.config_dir / filename

        if not filepath.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        logger.info("loading_config", file=str(filepath))

        with open(filepath, "r", encoding="utf-8") as f:
            content = f.read()

        # Substitute environment variables
        content = substitute_env_vars(content)

        config = yaml.safe_load(content)

        return config or {}

    def load_app_config(self, filename: str = "settings.yml") -> AppConfig:
        """
        Load application settings from YAML.

        Invalid adapter or feed entries are logged and skipped.

        Args:
            filename: Settings file name

        Returns:
            AppConfig object
        """
        data = self.load_file(filename)

        adapters = []
        for adapter_data in data.get("adapters", []):
            try:
                adapters.append(AdapterConfig.from_dict(adapter_data))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(
                    "adapter_config_invalid",
                    adapter=adapter_data.get("name", "unknown"),
                    error=str(e),
                )

        feeds = []
        for feed_data in data.get("feeds", []):
            try:
                feeds.append(FeedConfig.from_dict(feed_data))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(
                    "feed_config_invalid",
                    feed=feed_data.get("name", "unknown"),
                    error=str(e),
                )

        return AppConfig(
            server=ServerConfig.from_dict(data.get("server") or {}),
            storage=StorageConfig.from_dict(data.get("storage") or {}),
            http=HttpConfig.from_dict(data.get("http") or {}),
            search=SearchConfig.from_dict(data.get("search") or {}),
            monitor=MonitorConfig.from_dict(data.get("monitor") or {}),
            adapters=adapters,
            feeds=feeds,
        )


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Convenience function to load settings.

    Args:
        config_path: Optional path to a settings YAML file
                     (falls back to $GRANT_TRACKER_CONFIG, then the packaged file)

    Returns:
        AppConfig object
    """
    config_path = config_path or os.getenv(CONFIG_ENV_VAR)
    if config_path:
        loader = ConfigLoader(str(Path(config_path).parent))
        return loader.load_app_config(Path(config_path).name)
    return ConfigLoader().load_app_config()
