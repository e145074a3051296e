from __future__ import annotations

import copy
import logging
import os
import tomllib
from pathlib import Path

from linewatch.config.defaults import DEFAULT_CONFIG
from linewatch.errors import ConfigurationError

log = logging.getLogger(__name__)


def lookup(config: dict, key_path: str, default: object = None) -> object:
    """Get a nested value by dot path, e.g. ``"input.poll_interval"``."""
    current: object = config
    for key in key_path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default
    return current


class ConfigManager:
    def __init__(self, config_path: str | None = None) -> None:
        self._explicit = config_path is not None
        if config_path is not None:
            self._config_path = Path(config_path).expanduser()
        else:
            xdg = os.environ.get("XDG_CONFIG_HOME", "~/.config")
            self._config_path = Path(xdg).expanduser() / "linewatch" / "config.toml"

    def load(self) -> dict:
        defaults = copy.deepcopy(DEFAULT_CONFIG)
        if not self._config_path.exists():
            if self._explicit:
                raise ConfigurationError(f"{self._config_path}: config file not found")
            log.debug("No config at %s, using defaults", self._config_path)
            return defaults

        try:
            with open(self._config_path, "rb") as f:
                user_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"{self._config_path}: {exc}") from exc

        return self._deep_merge(defaults, user_config)

    def _deep_merge(self, base: dict, override: dict) -> dict:
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
