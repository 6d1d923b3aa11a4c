"""
Manages loading of the optional INI settings file for the session client.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pavlovia_session.exceptions import ConfigurationError
from pavlovia_session.models.settings import ClientSettings

log = logging.getLogger(__name__)


class SettingsManager:
    """Handles the client's INI settings file. A missing file means defaults."""

    def __init__(self, settings_file_path: Path):
        self.settings_file_path = settings_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_settings(self, cli_options: dict[str, Any] | None = None) -> ClientSettings:
        """
        Loads settings from the INI file, applies CLI overrides, and validates them.

        Args:
            cli_options: A dictionary of options provided via the command line.
                Entries set to None are ignored.

        Returns:
            A validated ClientSettings object.

        Raises:
            ConfigurationError: If the file is unreadable or validation fails.
        """
        settings_from_file: dict[str, Any] = {}
        if self.settings_file_path.is_file():
            try:
                self._parser.read(self.settings_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing settings file: {e}") from e
            settings_from_file = self._get_settings_as_dict()
        else:
            log.debug(f"No settings file at '{self.settings_file_path}', using defaults.")

        if cli_options:
            settings_from_file.update(
                {k: v for k, v in cli_options.items() if v is not None}
            )

        try:
            return ClientSettings(
                **settings_from_file, settings_path=str(self.settings_file_path)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Settings validation failed:\n{e}") from e

    def _get_settings_as_dict(self) -> dict[str, Any]:
        """Reads the known keys of the 'DEFAULT' section into a dictionary."""
        section = self._parser["DEFAULT"]
        unknown = set(section) - ClientSettings.get_ini_keys()
        if unknown:
            log.warning(
                f"[yellow]Ignoring unknown settings:[/yellow] {', '.join(sorted(unknown))}"
            )

        settings: dict[str, Any] = {}
        for key in ("config_url", "page_url", "downloads_dir", "log_dir", "user_agent"):
            if key in section:
                settings[key] = section.get(key)
        if "request_timeout" in section:
            try:
                settings["request_timeout"] = section.getfloat("request_timeout")
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid request_timeout in settings file: {e}"
                ) from e
        return settings
