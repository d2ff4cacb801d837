"""Shared mutable state of a shell session."""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from rich.console import Console
from rich.text import Text

from ..plugins.capabilities import LogSink
from ..plugins.interface import CommandDecl
from ..plugins.manager import Plugin, PluginRegistry
from ..plugins.runtime import SandboxRuntime
from .commands import Cmd, CommandError, CommandRegistry, Runner
from .config import Config, get_config
from .logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PendingCommands:
    """Commands declared by a freshly loaded plugin, not yet registered."""

    plugin: str
    commands: Tuple[CommandDecl, ...]


class ExecutionContext:
    """Everything a command can read or change.

    Mutations (register, load, commit, stop) each run under ``lock`` so no
    lookup observes a table halfway through an update.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        console: Optional[Console] = None,
        runtime: Optional[SandboxRuntime] = None,
        sink: Optional[LogSink] = None,
    ):
        self.config = config or get_config()
        self.console = console or Console()
        self.runtime = runtime or SandboxRuntime(fuel_per_call=self.config.fuel_per_call)
        self.commands = CommandRegistry()
        self.plugins = PluginRegistry(self.runtime, sink)
        self.pending: Optional[PendingCommands] = None
        self.running = True
        self.lock = threading.RLock()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def echo(self, text: str = "") -> None:
        """Write one line to the console."""
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def error(self, message: str) -> None:
        """Report a recoverable error to the console."""
        self.console.print(Text(f"ERR: {message}", style="bold red"), highlight=False, soft_wrap=True)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def define_builtin(self, name: str, usage: str, description: str, handler) -> None:
        """Register a built-in command. Errors propagate: they are bugs."""
        with self.lock:
            self.commands.register(name, Cmd(usage, description), Runner.builtin(handler))

    def load_plugin(self, path: Union[str, Path]) -> Plugin:
        """Load a plugin and stage its commands for the next commit.

        Raises:
            LoadError: The plugin was not loaded; nothing changed.
        """
        with self.lock:
            plugin = self.plugins.load(self.config.resolve_plugin(str(path)))
            self.stage_commands(plugin.name, plugin.info.commands)
            return plugin

    def stage_commands(self, plugin: str, commands: Tuple[CommandDecl, ...]) -> None:
        with self.lock:
            if self.pending is not None:
                raise RuntimeError(
                    f"commands of plugin {self.pending.plugin!r} are still pending"
                )
            self.pending = PendingCommands(plugin=plugin, commands=tuple(commands))

    def commit_pending(self) -> List[Tuple[CommandDecl, CommandError]]:
        """Register staged plugin commands.

        Each command is registered on its own: an invalid or already used
        name is rejected without affecting the others.

        Returns:
            The rejected commands with the reason.
        """
        with self.lock:
            pending, self.pending = self.pending, None
            if pending is None:
                return []

            rejected: List[Tuple[CommandDecl, CommandError]] = []
            for decl in pending.commands:
                try:
                    self.commands.register(
                        decl.name,
                        Cmd(decl.usage, decl.description, provider=pending.plugin),
                        Runner.forward(pending.plugin),
                    )
                except CommandError as e:
                    logger.debug(
                        "Plugin command rejected",
                        plugin=pending.plugin,
                        command=decl.name,
                        reason=str(e)
                    )
                    rejected.append((decl, e))
            return rejected

    def stop(self) -> None:
        with self.lock:
            self.running = False
