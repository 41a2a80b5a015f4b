"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from asset_refresher.exceptions import ConfigurationError
from asset_refresher.models.config import (
    DEFAULT_CLEANUP_DELAY,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    RefreshConfig,
)

log = logging.getLogger(__name__)

# Values written for keys missing from an existing file
MIGRATION_DEFAULTS: dict[str, str] = {
    "preload_path": "",
    "probe_url": "",
    "poll_interval": str(DEFAULT_POLL_INTERVAL),
    "request_timeout": str(DEFAULT_REQUEST_TIMEOUT),
    "max_attempts": "3",
    "cleanup_delay": str(DEFAULT_CLEANUP_DELAY),
    "log_dir": "",
}


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> RefreshConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated RefreshConfig object.

        Raises:
            ConfigurationError: If the config file is missing, invalid, or validation
            fails.
        """
        if not self.config_file_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found at '{self.config_file_path}'. "
                "Please run 'asset-refresher init' first."
            )

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Error parsing configuration file: {e}") from e

        if self._migrate_if_needed():
            log.info(
                "[yellow]Configuration file was updated with new default values."
                "[/yellow]"
            )

        try:
            config_from_file = self._get_config_as_dict()
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return RefreshConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save. Must at least contain
            'download_url' and 'asset_path'.
        """
        try:
            validated = RefreshConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}
        for key in sorted(RefreshConfig.get_ini_keys()):
            value = getattr(validated, key)
            config["DEFAULT"][key] = "" if value is None else str(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        return {
            "download_url": section.get("download_url", ""),
            "asset_path": section.get("asset_path", ""),
            "preload_path": section.get("preload_path", "") or None,
            "probe_url": section.get("probe_url", "") or None,
            "poll_interval": section.getfloat("poll_interval", DEFAULT_POLL_INTERVAL),
            "request_timeout": section.getfloat(
                "request_timeout", DEFAULT_REQUEST_TIMEOUT
            ),
            "max_attempts": section.getint("max_attempts", 3),
            "cleanup_delay": section.getfloat("cleanup_delay", DEFAULT_CLEANUP_DELAY),
            "log_dir": section.get("log_dir", "") or None,
        }

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        needs_saving = False
        config_section = self._parser["DEFAULT"]

        for key, default_value in MIGRATION_DEFAULTS.items():
            if key not in config_section:
                config_section[key] = default_value
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{default_value}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

    def get_config_as_dict(self) -> dict[str, Any]:
        """Reads the raw configuration for display, without validation."""
        if not self._parser.defaults():
            self._parser.read(self.config_file_path, encoding="utf-8")
        return dict(self._parser["DEFAULT"])
