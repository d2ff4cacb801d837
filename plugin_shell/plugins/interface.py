"""Host/guest interface definition.

A plugin is a WebAssembly core module. The names below are the complete
contract between the shell and a guest: the guest exports ``memory``,
``cabi_realloc``, ``init`` and ``run-command``; the host provides ``log``
and ``define-cmd`` under the ``plugin-app:core/host-app`` import module.
Nothing else is linked into the sandbox.
"""

from dataclasses import dataclass, field
from typing import Tuple
from enum import IntEnum


# Import module of the host capability functions
HOST_MODULE = "plugin-app:core/host-app"
HOST_LOG = "log"
HOST_DEFINE_CMD = "define-cmd"

# Guest exports
GUEST_MEMORY = "memory"
GUEST_REALLOC = "cabi_realloc"
GUEST_INIT = "init"
GUEST_RUN_COMMAND = "run-command"

REQUIRED_EXPORTS = (GUEST_MEMORY, GUEST_REALLOC, GUEST_INIT, GUEST_RUN_COMMAND)


class Level(IntEnum):
    """Log levels a guest can use, in their wire encoding."""
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3

    def __str__(self) -> str:
        return self.name

    @property
    def method(self) -> str:
        """Name of the structlog method for this level."""
        return "warning" if self is Level.WARN else self.name.lower()


@dataclass(frozen=True)
class CommandDecl:
    """A command declared by a plugin."""

    name: str
    usage: str
    description: str


@dataclass(frozen=True)
class PluginInfo:
    """Plugin metadata returned by ``init``."""

    name: str
    description: str
    version: str
    commands: Tuple[CommandDecl, ...] = field(default_factory=tuple)
