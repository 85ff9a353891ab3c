"""Configuration commands for the facility status CLI."""

from typing import Any

from cyclopts import App

from facility_status.config import KNOWN_KEYS, LOG_LEVELS, Config, get_config
from facility_status.errors import InvalidArgumentError
from facility_status.url_transform import UrlTransform

config_app = App(name="config", help="Manage configuration")


def validate(key: str, value: str) -> str | None:
    """Return why ``value`` cannot be stored under ``key``, or None if it can."""
    if key not in KNOWN_KEYS:
        return f"Unknown key {key}. Known keys: {', '.join(KNOWN_KEYS)}"
    if key == "server.port" and not value.isdigit():
        return f"server.port must be a number, got {value}"
    if key == "logging.level" and value.lower() not in LOG_LEVELS:
        return f"logging.level must be one of {', '.join(LOG_LEVELS)}"
    if key == "server.proxy":
        try:
            UrlTransform(value)
        except InvalidArgumentError as e:
            return str(e)
    return None


def describe(config: Config, key: str, value: Any) -> str:
    """Format one setting, marking defaults and resolving data paths."""
    line = f"{key} = {value}"
    if config.is_default(key):
        return f"{line} (default)"
    if key.startswith("data.") and value:
        path = config.resolve_path(str(value))
        state = "" if path.exists() else ", missing"
        return f"{line} ({path}{state})"
    return line


@config_app.command
def set(key: str, value: str) -> None:
    """Set a configuration setting.

    Args:
        key: Configuration key, e.g. server.root or data.resources
        value: Configuration value
    """
    problem = validate(key, value)
    if problem:
        print(f"Error: {problem}")
        return

    config = get_config()
    config.set(key, value)
    print(f"Set {key} = {value} ({config.config_file})")


@config_app.command
def unset(key: str) -> None:
    """Unset a configuration setting, reverting it to its default if it has one."""
    config = get_config()
    config.unset(key)
    print(f"Unset {key} ({config.config_file})")


@config_app.command
def get(key: str) -> None:
    """Get the value of a configuration setting."""
    config = get_config()
    value = config.get(key)
    if value is None:
        print(f"{key} is not set")
    else:
        print(describe(config, key, value))


@config_app.command(name="list")
def list_config() -> None:
    """List all configuration settings, defaults included."""
    config = get_config()
    settings = config.list()

    print(f"Configuration settings ({config.config_file}):\n")
    for key, value in sorted(settings.items()):
        print(describe(config, key, value))
