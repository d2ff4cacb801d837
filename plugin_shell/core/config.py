"""Configuration management backed by environment variables and config.toml."""

import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Shell configuration with environment variable support."""

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="", alias="LOG_FILE")

    # Shell
    prompt: str = Field(default=">> ", alias="PROMPT")

    # Plugins
    plugin_dir: str = Field(default="./plugins", alias="PLUGIN_DIR")
    autoload: List[str] = Field(default_factory=list, alias="AUTOLOAD")
    # Fuel granted to each guest call; None disables metering.
    fuel_per_call: Optional[int] = Field(default=None, alias="FUEL_PER_CALL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {value}")
        return value

    @field_validator("fuel_per_call")
    @classmethod
    def _check_fuel(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("fuel_per_call must be a positive integer")
        return value

    @classmethod
    def from_toml(cls, toml_path: Path) -> "Config":
        """Load configuration from a TOML file.

        Sections are flattened to environment-style keys, so
        ``[logging] level = "DEBUG"`` and ``LOG_LEVEL=DEBUG`` are equivalent.
        Values from the file win over the process environment.
        """
        values: Dict[str, Any] = {}
        if toml_path.exists():
            with open(toml_path, "rb") as f:
                data = tomllib.load(f)
            _flatten_toml(data, values, prefix="")
        known = {field.alias for field in cls.model_fields.values() if field.alias}
        return cls(**{key: value for key, value in values.items() if key in known})

    def get_plugin_path(self) -> Path:
        """Get the plugin directory path."""
        return Path(self.plugin_dir).resolve()

    def resolve_plugin(self, path: str) -> Path:
        """Resolve a plugin path, falling back to the plugin directory."""
        candidate = Path(path).expanduser()
        if candidate.exists() or candidate.is_absolute():
            return candidate
        in_plugin_dir = self.get_plugin_path() / candidate
        if in_plugin_dir.exists():
            return in_plugin_dir
        return candidate


def _flatten_toml(data: Dict[str, Any], result: Dict[str, Any], prefix: str = "") -> None:
    """Flatten nested TOML structure to environment variable format."""
    for key, value in data.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            _flatten_toml(value, result, full_key)
            continue

        env_key = full_key.upper().replace("-", "_")

        # [logging].level -> LOG_LEVEL, [logging].file -> LOG_FILE
        if env_key == "LOGGING_LEVEL":
            env_key = "LOG_LEVEL"
        elif env_key == "LOGGING_FILE":
            env_key = "LOG_FILE"
        # [shell].prompt -> PROMPT, [plugins].dir -> PLUGIN_DIR
        elif env_key.startswith("SHELL_"):
            env_key = env_key[len("SHELL_"):]
        elif env_key == "PLUGINS_DIR":
            env_key = "PLUGIN_DIR"
        elif env_key.startswith("PLUGINS_"):
            env_key = env_key[len("PLUGINS_"):]

        result[env_key] = value


class ConfigManager:
    """Holds the configuration loaded from config.toml or the environment."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self._config: Optional[Config] = None
        self._config_path = config_path

    def _toml_file(self) -> Path:
        if self._config_path is not None:
            return self._config_path
        return Path(os.environ.get("PLUGIN_SHELL_CONFIG", "config.toml"))

    def load(self) -> Config:
        """Load configuration from TOML file or environment."""
        toml_file = self._toml_file()
        if toml_file.exists():
            self._config = Config.from_toml(toml_file)
        else:
            self._config = Config()
        return self._config

    def get(self) -> Config:
        """Get the current configuration."""
        if self._config is None:
            self._config = self.load()
        return self._config


# Global config manager instance
_config_manager = ConfigManager()


@lru_cache()
def get_config() -> Config:
    """Get the global configuration instance."""
    return _config_manager.get()


def reload_config() -> Config:
    """Reload the global configuration."""
    get_config.cache_clear()
    return _config_manager.load()
