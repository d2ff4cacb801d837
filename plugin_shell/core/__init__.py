"""Core components of the plugin shell."""

from .config import Config, get_config
from .logger import setup_logger, get_logger

__all__ = [
    "Config",
    "get_config",
    "setup_logger",
    "get_logger",
]
