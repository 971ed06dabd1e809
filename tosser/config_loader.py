"""
Configuration file loading and hot reload.

The YAML file is validated into a Settings object. Reloads are driven by the
file's modification time; a running daemon always holds exactly one Settings
value which is replaced as a whole, never mutated.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .config import Settings
from .core.exceptions import ConfigError, ConfigNotModifiedError

DEFAULT_CONFIG_FILE = "tosser.yaml"


def get_config_path() -> str:
    return os.environ.get("TOSSER_CONFIG", DEFAULT_CONFIG_FILE)


class ConfigLoader:
    def __init__(self, config_path: str):
        self.config_path = Path(config_path)
        self._last_mtime: Optional[float] = None

    def load(self) -> Settings:
        """Parse the configuration file regardless of whether it changed."""
        try:
            mtime = self.config_path.stat().st_mtime
            raw = self.config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(str(self.config_path), f"cannot read file ({e})") from e

        try:
            data = yaml.safe_load(raw) or {}
        except yaml.YAMLError as e:
            raise ConfigError(str(self.config_path), f"invalid YAML ({e})") from e

        if not isinstance(data, dict):
            raise ConfigError(str(self.config_path), "top level must be a mapping")

        try:
            settings = Settings(**data)
        except ValidationError as e:
            raise ConfigError(str(self.config_path), str(e)) from e

        self._last_mtime = mtime
        logging.debug(
            f"Configuration loaded from {self.config_path} "
            f"({len(settings.scan_groups)} scan groups)"
        )
        return settings

    def reload(self) -> Settings:
        """
        Parse the configuration file if it changed since the last successful load.

        Raises:
            ConfigNotModifiedError: file unchanged
            ConfigError: file unreadable or invalid
        """
        try:
            mtime = self.config_path.stat().st_mtime
        except OSError as e:
            raise ConfigError(str(self.config_path), f"cannot stat file ({e})") from e

        if self._last_mtime is not None and mtime == self._last_mtime:
            raise ConfigNotModifiedError(str(self.config_path))

        return self.load()


class ConfigStore:
    """Holds the active Settings; swapped by reference on reload."""

    def __init__(self, settings: Settings, loader: Optional[ConfigLoader] = None):
        self._settings = settings
        self.loader = loader

    @property
    def current(self) -> Settings:
        return self._settings

    def swap(self, settings: Settings) -> None:
        self._settings = settings
        logging.info("Ny konfiguration aktiveret")

    def reload(self) -> Settings:
        """Read a changed configuration file without activating it."""
        if self.loader is None:
            raise ConfigNotModifiedError("no configuration file")
        return self.loader.reload()
