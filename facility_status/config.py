"""Configuration management for facility-status using YAML files."""

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger()

CONFIG_ENV_VAR = "FACILITY_STATUS_CONFIG"
DEFAULT_CONFIG_FILE = "facility-status.yaml"

# Keys of the JSON sources, in the order they are loaded.
DATA_KINDS = (
    "facility",
    "locations",
    "sites",
    "resources",
    "incidents",
    "events",
    "capabilities",
    "projects",
    "project_allocations",
    "user_allocations",
)

DEFAULTS: dict[str, Any] = {
    "server.root": "http://localhost:8081",
    "server.host": "127.0.0.1",
    "server.port": 8081,
    "logging.level": "info",
}

KNOWN_KEYS = (*DEFAULTS, "server.proxy", *(f"data.{kind}" for kind in DATA_KINDS))
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class Config:
    """Configuration manager using YAML file storage.

    Keys are flat dotted names such as ``server.root`` or ``data.resources``.
    When reading, values are looked up in the file first, then in the
    built-in defaults.
    """

    def __init__(self, config_file: Path | str | None = None) -> None:
        """Initialize configuration manager.

        Args:
            config_file: Path to the YAML file. Falls back to the
                FACILITY_STATUS_CONFIG environment variable, then to
                facility-status.yaml in the current directory.
        """
        if config_file is None:
            config_file = os.environ.get(CONFIG_ENV_VAR) or Path.cwd() / DEFAULT_CONFIG_FILE
        self.config_file = Path(config_file)
        self.config_dir = self.config_file.parent

        self._config: dict[str, Any] = self._load()

        logger.debug("Config initialized", config_file=str(self.config_file))

    def _load(self) -> dict[str, Any]:
        """Load configuration from YAML file.

        Returns:
            Configuration dictionary
        """
        if not self.config_file.exists():
            logger.debug("Config file does not exist, initializing empty config")
            return {}

        try:
            with open(self.config_file, "r") as f:
                config = yaml.safe_load(f) or {}
                logger.debug("Config loaded successfully", keys=list(config.keys()))
                return config
        except Exception as e:
            logger.error("Failed to load config", error=str(e))
            raise ValueError(f"Failed to load config from {self.config_file}: {e}") from e

    def _save(self) -> None:
        """Save configuration to YAML file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
            logger.debug("Config saved successfully")
        except Exception as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value, falling back to the built-in defaults."""
        if key in self._config:
            logger.debug("Getting config value from file", key=key)
            return self._config[key]

        if key in DEFAULTS:
            logger.debug("Getting config value from defaults", key=key)
            return DEFAULTS[key]

        logger.debug("Config value not found", key=key)
        return default

    def set(self, key: str, value: str) -> None:
        """Set a configuration value and persist the file."""
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        """Remove a configuration value."""
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def is_default(self, key: str) -> bool:
        """Whether the value of ``key`` comes from the built-in defaults."""
        return key not in self._config and key in DEFAULTS

    def list(self) -> dict[str, Any]:
        """List all configuration settings, defaults included."""
        merged = DEFAULTS.copy()
        merged.update(self._config)
        logger.debug("Listing config values", count=len(merged))
        return merged

    @property
    def root(self) -> str:
        return str(self.get("server.root") or "")

    @property
    def proxy(self) -> str | None:
        return self.get("server.proxy")

    @property
    def host(self) -> str:
        return str(self.get("server.host"))

    @property
    def port(self) -> int:
        return int(self.get("server.port"))

    @property
    def log_level(self) -> str:
        return str(self.get("logging.level")).lower()

    def resolve_path(self, value: str) -> Path:
        path = Path(value)
        if not path.is_absolute():
            path = self.config_dir / path
        return path

    def data_sources(self) -> dict[str, Path]:
        """Return the configured JSON source per data kind.

        Relative paths are resolved against the directory of the config file.
        """
        sources: dict[str, Path] = {}
        for kind in DATA_KINDS:
            value = self.get(f"data.{kind}")
            if not value:
                continue
            sources[kind] = self.resolve_path(value)
        return sources


def get_config(config_file: Path | str | None = None) -> Config:
    """Get a configuration instance."""
    return Config(config_file=config_file)
