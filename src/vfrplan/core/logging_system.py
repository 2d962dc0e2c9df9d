"""Logging set-up for the engine and its command-line front end.

This module configures process-wide logging from a YAML file, with
per-component loggers, platform-aware log locations, and startup-based
rotation. Library modules only ever call ``logging.getLogger(__name__)``;
applications call ``initialize_logging`` once.

Platform-specific log locations:
    - macOS: ~/Library/Logs/VFRPlan/vfrplan.log
    - Linux: ~/.vfrplan/logs/vfrplan.log
    - Windows: %AppData%/VFRPlan/Logs/vfrplan.log

Typical usage example:
    from vfrplan.core.logging_system import get_logger, initialize_logging

    initialize_logging("config/logging.yaml")
    log = get_logger("vfrplan.cli")
    log.info("Opened %s", path)
"""

import logging
import logging.handlers
import os
import platform
import time
from pathlib import Path
from typing import Any

import yaml

_logging_config: dict[str, Any] = {}
_loggers_cache: dict[str, logging.Logger] = {}
_initialized = False

DEFAULT_LOG_FILENAME = "vfrplan.log"


class LoggingError(Exception):
    """Raised when logging system operations fail."""


def get_platform_log_dir() -> Path:
    """Get platform-specific log directory.

    Returns:
        Path to the platform-appropriate log directory.
    """
    system = platform.system()

    if system == "Darwin":
        return Path.home() / "Library" / "Logs" / "VFRPlan"
    elif system == "Windows":
        appdata = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return appdata / "VFRPlan" / "Logs"
    else:
        return Path.home() / ".vfrplan" / "logs"


def rotate_logs(log_dir: Path, log_filename: str = DEFAULT_LOG_FILENAME, keep_count: int = 5) -> None:
    """Rotate logs on startup, keeping the last N launches.

    Renames the current log to ``<name>.1``, shifts older logs, and deletes
    logs beyond keep_count.

    Args:
        log_dir: Directory containing log files.
        log_filename: Base name of the log file.
        keep_count: Number of old logs to keep.
    """
    log_file = log_dir / log_filename

    if not log_file.exists():
        return

    oldest_log = log_dir / f"{log_filename}.{keep_count}"
    if oldest_log.exists():
        oldest_log.unlink()

    for i in range(keep_count - 1, 0, -1):
        old_log = log_dir / f"{log_filename}.{i}"
        new_log = log_dir / f"{log_filename}.{i + 1}"
        if old_log.exists():
            old_log.rename(new_log)

    log_file.rename(log_dir / f"{log_filename}.1")


def initialize_logging(config_path: str | Path | None = None, use_platform_dir: bool = True) -> None:
    """Initialize the logging system from YAML configuration.

    Args:
        config_path: Path to logging configuration YAML file.
            If None, uses default configuration.
        use_platform_dir: If True, use platform-specific log directory.
            If False, use directory from config (for development/testing).

    Raises:
        LoggingError: If initialization fails.
    """
    global _logging_config, _initialized

    if config_path:
        config_path = Path(config_path)
        if not config_path.exists():
            raise LoggingError(f"Logging config file not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise LoggingError(f"Failed to load logging config: {e}") from e

        _logging_config = _merge_defaults(loaded)
    else:
        _logging_config = _get_default_config()

    if use_platform_dir:
        _logging_config["log_dir"] = str(get_platform_log_dir())

    file_config = _logging_config["file_log"]
    try:
        if file_config.get("enabled", True):
            log_dir = Path(_logging_config["log_dir"])
            log_dir.mkdir(parents=True, exist_ok=True)
            rotate_logs(
                log_dir,
                file_config.get("filename", DEFAULT_LOG_FILENAME),
                file_config.get("backup_count", 5),
            )
        _configure_root_logger()
    except OSError as e:
        raise LoggingError(f"Failed to set up log files: {e}") from e

    _loggers_cache.clear()
    _initialized = True


def _get_default_config() -> dict[str, Any]:
    """Get default logging configuration."""
    return {
        "version": 1,
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "date_format": "%Y-%m-%d %H:%M:%S",
        "log_dir": "logs",
        "file_log": {
            "enabled": True,
            "filename": DEFAULT_LOG_FILENAME,
            "backup_count": 5,
        },
        "console": {
            "enabled": True,
            "level": "WARNING",
        },
        "components": {},
    }


def _merge_defaults(loaded: dict[str, Any]) -> dict[str, Any]:
    """Overlay a loaded config on the defaults, one level deep."""
    config = _get_default_config()
    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key] = {**config[key], **value}
        else:
            config[key] = value
    return config


def _configure_root_logger() -> None:
    """Configure the root logger with handlers."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_config = _logging_config.get("console", {})
    if console_config.get("enabled", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, console_config.get("level", "INFO")))
        console_handler.setFormatter(_get_formatter())
        root_logger.addHandler(console_handler)

    file_config = _logging_config.get("file_log", {})
    if file_config.get("enabled", True):
        log_file = Path(_logging_config.get("log_dir", "logs")) / file_config.get(
            "filename", DEFAULT_LOG_FILENAME
        )
        # Rotation already happened at startup.
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(getattr(logging, _logging_config.get("level", "INFO")))
        file_handler.setFormatter(_get_formatter())
        root_logger.addHandler(file_handler)


class MillisecondFormatter(logging.Formatter):
    """Formatter that shows milliseconds with a dot separator."""

    def formatTime(self, record, datefmt=None):
        ct = self.converter(record.created)
        s = time.strftime(datefmt or "%Y-%m-%d %H:%M:%S", ct)
        return f"{s}.{int(record.msecs):03d}"


def _get_formatter() -> logging.Formatter:
    fmt = _logging_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    datefmt = _logging_config.get("date_format", "%Y-%m-%d %H:%M:%S")
    return MillisecondFormatter(fmt, datefmt)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a component.

    Loggers are cached and reused. Each logger can have its own level, or a
    dedicated rotating file, under the ``components`` section of the logging
    config.

    Args:
        name: Logger name (typically a dotted component name).

    Returns:
        Configured logger instance.

    Examples:
        >>> log = get_logger("vfrplan.engine")
        >>> log.info("Loaded %d airports", count)
    """
    if name in _loggers_cache:
        return _loggers_cache[name]

    logger = logging.getLogger(name)
    component_config = _logging_config.get("components", {}).get(name, {})

    if component_config.get("enabled", True):
        if "level" in component_config:
            logger.setLevel(getattr(logging, component_config["level"]))

        if component_config.get("dedicated_file", False):
            log_dir = Path(_logging_config.get("log_dir", "logs"))
            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / f"{name}.log",
                maxBytes=component_config.get("max_bytes", 10485760),
                backupCount=component_config.get("backup_count", 5),
                encoding="utf-8",
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(_get_formatter())
            logger.addHandler(file_handler)
    else:
        logger.disabled = True

    _loggers_cache[name] = logger
    return logger


def is_initialized() -> bool:
    """Return True once initialize_logging has run."""
    return _initialized


def shutdown_logging() -> None:
    """Flush all handlers and close log files."""
    global _initialized

    logging.shutdown()
    _loggers_cache.clear()
    _initialized = False


class LoggerMixin:
    """Mixin class to add a component logger to any class as ``self._log``.

    Examples:
        >>> class Engine(LoggerMixin):
        ...     def __init__(self):
        ...         self.attach_logger("vfrplan.engine")
    """

    def attach_logger(self, name: str) -> None:
        """Attach a logger to this instance."""
        self._log = get_logger(name)

    def log_debug(self, message: str, *args: Any) -> None:
        if hasattr(self, "_log"):
            self._log.debug(message, *args)

    def log_info(self, message: str, *args: Any) -> None:
        if hasattr(self, "_log"):
            self._log.info(message, *args)

    def log_warning(self, message: str, *args: Any) -> None:
        if hasattr(self, "_log"):
            self._log.warning(message, *args)

    def log_error(self, message: str, *args: Any, exc_info: bool = False) -> None:
        if hasattr(self, "_log"):
            self._log.error(message, *args, exc_info=exc_info)
