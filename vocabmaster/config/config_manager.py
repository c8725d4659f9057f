"""Persistent settings manager with JSON storage and environment fallback."""

import copy
import json
import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from .settings import Config

logger = logging.getLogger(__name__)


class SettingsManager:
    """
    Manages user settings with JSON persistence.

    Settings are loaded from a JSON file with fallback to environment variables.
    Changes are immediately persisted to disk. One instance is created at
    startup and handed to whoever needs it.

    Usage:
        settings = SettingsManager("data/settings.json")
        provider = settings.get("LLM_PROVIDER")
        settings.set("MIRROR_DIR", "/Users/me/Library/Mobile Documents/vocab")
    """

    DEFAULT_SETTINGS_FILE: str = Config.SETTINGS_FILE

    # Default values for all settings
    # NOTE: the API key should come from the environment, not defaults!
    DEFAULTS: Dict[str, Any] = {
        # LLM fallback
        "LLM_PROVIDER": Config.LLM_PROVIDER,
        "LLM_API_KEY": Config.LLM_API_KEY,
        "LLM_MODEL": Config.LLM_MODEL,
        "LLM_BASE_URL": Config.LLM_BASE_URL,
        "LLM_FALLBACK_ENABLED": True,

        # Lookup
        "TIMEOUT": Config.TIMEOUT,

        # Storage
        "STORE_FILE": Config.STORE_FILE,
        "MIRROR_DIR": Config.MIRROR_DIR,

        # Spaced repetition
        "REVIEW_INTERVAL_DAYS": list(Config.REVIEW_INTERVAL_DAYS),
        "MASTERED_INTERVAL_DAYS": Config.MASTERED_INTERVAL_DAYS,

        # Reminders
        "REMINDER_INTERVAL_MINUTES": 30,
    }

    def __init__(self, settings_file: Optional[str] = None) -> None:
        """
        Initialize the settings manager.

        Args:
            settings_file: Path to the settings JSON file.
                          Defaults to Config.SETTINGS_FILE.
        """
        self._settings_file: Path = Path(settings_file or self.DEFAULT_SETTINGS_FILE)
        self._settings: Dict[str, Any] = {}
        self._file_lock: Lock = Lock()

        self._load_settings()

    def _load_settings(self) -> None:
        """Load settings from JSON file with environment variable fallback."""
        self._settings = copy.deepcopy(self.DEFAULTS)

        if self._settings_file.exists():
            try:
                with open(self._settings_file, "r", encoding="utf-8") as f:
                    self._settings.update(json.load(f))
            except (json.JSONDecodeError, IOError) as e:
                logger.warning("Could not load settings file %s: %s", self._settings_file, e)

        # Environment variables have the highest priority
        for key in self.DEFAULTS:
            env_value = os.environ.get(key)
            if env_value is not None:
                self._settings[key] = self._parse_env_value(env_value, key)

    def _parse_env_value(self, value: str, key: str) -> Any:
        """
        Parse environment variable value to appropriate type.

        Args:
            value: The string value from environment
            key: The setting key (used to infer expected type)

        Returns:
            Parsed value in appropriate type
        """
        default = self.DEFAULTS.get(key)

        if isinstance(default, bool):
            return value.lower() in ("true", "1", "yes", "on")
        elif isinstance(default, int):
            try:
                return int(value)
            except ValueError:
                return default
        elif isinstance(default, list):
            try:
                return [int(part) for part in value.split(",") if part.strip()]
            except ValueError:
                return default
        else:
            return value

    def _save_settings(self) -> None:
        """Save current settings to JSON file."""
        with self._file_lock:
            try:
                self._settings_file.parent.mkdir(parents=True, exist_ok=True)
                with open(self._settings_file, "w", encoding="utf-8") as f:
                    json.dump(self._settings, f, indent=2, ensure_ascii=False)
            except IOError as e:
                logger.warning("Could not save settings file %s: %s", self._settings_file, e)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Mutable values are returned as deep copies.
        """
        value = self._settings.get(key, default)
        if isinstance(value, (dict, list)):
            return copy.deepcopy(value)
        return value

    def set(self, key: str, value: Any, persist: bool = True) -> None:
        """Set a setting value and, by default, persist it immediately."""
        self._settings[key] = value
        if persist:
            self._save_settings()

    def get_all(self) -> Dict[str, Any]:
        """Get a copy of all current settings."""
        return copy.deepcopy(self._settings)

    def reset(self, key: Optional[str] = None) -> None:
        """
        Reset settings to defaults.

        Args:
            key: Specific key to reset. If None, resets all settings.
        """
        if key is not None:
            if key in self.DEFAULTS:
                self._settings[key] = copy.deepcopy(self.DEFAULTS[key])
        else:
            self._settings = copy.deepcopy(self.DEFAULTS)

        self._save_settings()

    def reload(self) -> None:
        """Reload settings from disk."""
        self._load_settings()
