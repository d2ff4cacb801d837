"""Exceptions raised by the plugin subsystem."""

from pathlib import Path
from typing import Optional, Union


class PluginError(Exception):
    """Base class for plugin errors."""


class LoadError(PluginError):
    """A plugin could not be loaded. Registries are left untouched."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


class PluginFileNotFound(LoadError):
    """The plugin file does not exist."""


class CompileError(LoadError):
    """The file is unreadable or not a module matching the interface."""


class LinkError(LoadError):
    """The module imports something the host does not provide."""


class InstantiationError(LoadError):
    """The module failed to instantiate (start function trapped, ...)."""


class InitError(LoadError):
    """``init`` trapped, returned malformed data, or was called twice."""


class PluginConflictError(LoadError):
    """A plugin with the same name is already loaded."""

    def __init__(self, name: str, path: Optional[Union[str, Path]] = None):
        super().__init__(f"a plugin named {name!r} is already loaded", path)
        self.name = name


class AbiError(PluginError):
    """The guest handed back data that violates the wire format."""


class CommandExecutionError(PluginError):
    """A plugin command trapped or could not be called."""

    def __init__(self, plugin: str, command: str, reason: str):
        super().__init__(f"plugin {plugin!r} failed to run {command!r}: {reason}")
        self.plugin = plugin
        self.command = command
        self.reason = reason
