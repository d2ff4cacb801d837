"""Structured logging with console and file output targets."""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional
from datetime import datetime

import structlog

ROOT_LOGGER = "plugin_shell"

LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class SimpleConsoleRenderer:
    """Simple console renderer with minimal formatting."""

    def __call__(self, logger, name, event_dict):
        """Render log event to a simple string."""
        timestamp = datetime.now().strftime("%H:%M:%S")
        level = event_dict.get("level", "info").upper()
        event = event_dict.get("event", "")

        # Format: [HH:MM:SS] LEVEL  message
        output = f"[{timestamp}] {level:<7} {event}"

        skip_keys = {"event", "level", "timestamp", "logger"}
        extras = {k: v for k, v in event_dict.items() if k not in skip_keys}
        if extras:
            extras_str = " ".join(f"{k}={v}" for k, v in extras.items())
            output += f" | {extras_str}"

        return output


_loggers: Dict[str, "Logger"] = {}
_structlog_configured = False


def _configure_structlog() -> None:
    """Install the structlog processor chain once per process."""
    global _structlog_configured
    if _structlog_configured:
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        # Loggers are created at import time; keep them lazy so a later
        # configure() (including structlog.testing.capture_logs) takes effect.
        cache_logger_on_first_use=False,
    )
    _structlog_configured = True


class Logger:
    """Structured logger attached to a stdlib logger hierarchy root."""

    def __init__(self, name: str, level: str = "INFO", log_file: Optional[str] = None):
        self.name = name
        self.level = level
        self.log_file = log_file
        self._logger: Optional[structlog.stdlib.BoundLogger] = None

    def setup(self) -> structlog.stdlib.BoundLogger:
        """Setup handlers for this logger and return the structlog wrapper."""
        if self.log_file:
            log_path = Path(self.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

        _configure_structlog()

        stdlib_logger = logging.getLogger(self.name)
        stdlib_logger.setLevel(getattr(logging, self.level.upper()))
        stdlib_logger.propagate = False

        for handler in list(stdlib_logger.handlers):
            stdlib_logger.removeHandler(handler)
            handler.close()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, self.level.upper()))
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(processor=SimpleConsoleRenderer())
        )
        stdlib_logger.addHandler(console_handler)

        # File handler - only record ERROR and above
        if self.log_file:
            file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
            file_handler.setLevel(logging.ERROR)
            file_handler.setFormatter(
                structlog.stdlib.ProcessorFormatter(
                    processor=structlog.processors.JSONRenderer(),
                )
            )
            stdlib_logger.addHandler(file_handler)

        self._logger = structlog.get_logger(self.name)
        return self._logger

    def get(self) -> structlog.stdlib.BoundLogger:
        """Get the logger instance."""
        if self._logger is None:
            self._logger = self.setup()
        return self._logger


def setup_logger(
    name: str = ROOT_LOGGER,
    level: str = "INFO",
    log_file: Optional[str] = None
) -> structlog.stdlib.BoundLogger:
    """Setup and register a logger.

    Loggers named below ``name`` (``plugin_shell.plugins.host`` under
    ``plugin_shell``) propagate to the handlers installed here.
    """
    if level.upper() not in LEVELS:
        raise ValueError(f"Invalid log level: {level}")
    logger = Logger(name, level, log_file or None)
    _loggers[name] = logger
    return logger.setup()


def get_logger(name: str = ROOT_LOGGER) -> structlog.stdlib.BoundLogger:
    """Get a logger by name.

    Registered loggers are returned as-is; any other name gets a plain
    structlog proxy that routes through the stdlib hierarchy.
    """
    if name in _loggers:
        return _loggers[name].get()
    _configure_structlog()
    return structlog.get_logger(name)


def bind_logger(name: str = ROOT_LOGGER, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger with bound context."""
    return get_logger(name).bind(**kwargs)
