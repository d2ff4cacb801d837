"""Sandboxed WebAssembly plugin system."""

from .interface import CommandDecl, Level, PluginInfo
from .errors import (
    AbiError,
    CommandExecutionError,
    CompileError,
    InitError,
    InstantiationError,
    LinkError,
    LoadError,
    PluginConflictError,
    PluginError,
    PluginFileNotFound,
)
from .capabilities import HostCapabilities
from .runtime import SandboxRuntime
from .host import PluginHost
from .manager import Plugin, PluginRegistry

__all__ = [
    "CommandDecl",
    "Level",
    "PluginInfo",
    "AbiError",
    "CommandExecutionError",
    "CompileError",
    "InitError",
    "InstantiationError",
    "LinkError",
    "LoadError",
    "PluginConflictError",
    "PluginError",
    "PluginFileNotFound",
    "HostCapabilities",
    "SandboxRuntime",
    "PluginHost",
    "Plugin",
    "PluginRegistry",
]
