"""Configuration loader for YAML files.

This module provides configuration loading with support for nested access,
defaults, and validation, plus the typed engine settings derived from it.

Typical usage example:
    from vfrplan.core.config import ConfigLoader, EngineSettings

    config = ConfigLoader.load("config/engine.yaml")
    settings = EngineSettings.from_config(config)
    print(settings.min_zoom, settings.max_zoom)
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration operations fail."""


class ConfigLoader:
    """Configuration loader for YAML files.

    Provides loading, nested access, and default values for configuration.

    Examples:
        >>> config = ConfigLoader.load("config/engine.yaml")
        >>> cell_size = config.get("index.cell_size_deg", default=0.1)
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        """Initialize with configuration data.

        Args:
            data: Configuration dictionary.
        """
        self._data = data if data is not None else {}

    @classmethod
    def load(cls, path: str | Path) -> "ConfigLoader":
        """Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            ConfigLoader instance with loaded data.

        Raises:
            ConfigError: If file cannot be loaded.
        """
        path = Path(path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load configuration: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {path}")

        logger.info("Loaded configuration from: %s", path)
        return cls(data)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value using dot notation.

        Args:
            key: Configuration key (supports dot notation, e.g. "view.min_zoom").
            default: Default value if key not found.

        Returns:
            Configuration value or default.
        """
        keys = key.split(".")
        value = self._data

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation.

        Args:
            key: Configuration key (supports dot notation).
            value: Value to set.
        """
        keys = key.split(".")
        data = self._data

        for k in keys[:-1]:
            if k not in data or not isinstance(data[k], dict):
                data[k] = {}
            data = data[k]

        data[keys[-1]] = value

    def get_section(self, key: str) -> dict[str, Any]:
        """Get an entire configuration section.

        Args:
            key: Section key (supports dot notation).

        Returns:
            Configuration section as dictionary.

        Raises:
            ConfigError: If section not found or not a dict.
        """
        value = self.get(key)

        if value is None:
            raise ConfigError(f"Configuration section not found: {key}")

        if not isinstance(value, dict):
            raise ConfigError(f"Configuration key is not a section: {key}")

        return value

    def save(self, path: str | Path) -> None:
        """Save configuration to a YAML file.

        Args:
            path: Path to save configuration.

        Raises:
            ConfigError: If save fails.
        """
        path = Path(path)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            with path.open("w", encoding="utf-8") as f:
                yaml.safe_dump(self._data, f, default_flow_style=False, sort_keys=False)

        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to save configuration: {e}") from e

        logger.info("Saved configuration to: %s", path)

    def merge(self, other: "ConfigLoader") -> None:
        """Merge another configuration into this one.

        Args:
            other: ConfigLoader to merge from. Its values override existing ones.
        """
        self._data = self._merge_dicts(self._data, other._data)

    def _merge_dicts(self, base: dict, override: dict) -> dict:
        """Recursively merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value

        return result

    def to_dict(self) -> dict[str, Any]:
        """Get the configuration as a dictionary."""
        return self._data.copy()


@dataclass(frozen=True)
class EngineSettings:
    """Typed engine settings.

    Attributes:
        min_zoom: Smallest allowed zoom (screen pixels per chart pixel).
        max_zoom: Largest allowed zoom.
        fill_viewport: Raise the minimum zoom so the chart always fills the viewport.
        cell_size_deg: Spatial index grid cell size in degrees.
        include_private_heliports: Include non-public heliports in searches.
        min_query_chars: Shortest name query that is searched.
        nasr_encoding: Text encoding of NASR CSV members.
    """

    min_zoom: float = 1.0 / 8.0
    max_zoom: float = 1.0
    fill_viewport: bool = False
    cell_size_deg: float = 0.1
    include_private_heliports: bool = False
    min_query_chars: int = 1
    nasr_encoding: str = "utf-8-sig"

    def __post_init__(self) -> None:
        for name in ("min_zoom", "max_zoom", "cell_size_deg"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigError(f"{name} must be a positive number, got {value!r}")

        if self.cell_size_deg > 90.0:
            raise ConfigError(f"cell_size_deg must be at most 90, got {self.cell_size_deg!r}")

        if self.min_zoom > self.max_zoom:
            raise ConfigError(f"min_zoom ({self.min_zoom}) exceeds max_zoom ({self.max_zoom})")

        if self.min_query_chars < 0:
            raise ConfigError(f"min_query_chars must not be negative, got {self.min_query_chars}")

    @classmethod
    def from_config(cls, config: ConfigLoader) -> "EngineSettings":
        """Build settings from a loaded configuration, filling in defaults.

        Raises:
            ConfigError: If a value has the wrong type or is out of range.
        """
        defaults = cls()
        try:
            return cls(
                min_zoom=float(config.get("view.min_zoom", defaults.min_zoom)),
                max_zoom=float(config.get("view.max_zoom", defaults.max_zoom)),
                fill_viewport=bool(config.get("view.fill_viewport", defaults.fill_viewport)),
                cell_size_deg=float(config.get("index.cell_size_deg", defaults.cell_size_deg)),
                include_private_heliports=bool(
                    config.get("search.include_private_heliports", defaults.include_private_heliports)
                ),
                min_query_chars=int(config.get("search.min_query_chars", defaults.min_query_chars)),
                nasr_encoding=str(config.get("nasr.encoding", defaults.nasr_encoding)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid engine setting: {e}") from e

    @classmethod
    def load(cls, path: str | Path | None = None) -> "EngineSettings":
        """Load settings from a YAML file, or return defaults when path is None."""
        if path is None:
            return cls()
        return cls.from_config(ConfigLoader.load(path))
