"""Read-dispatch loop of the shell."""

import sys
from typing import Iterable, List, Optional, TextIO

from ..plugins.errors import CommandExecutionError, LoadError
from .builtins import register_builtins
from .commands import CommandError, Runner, RunnerKind
from .context import ExecutionContext
from .logger import get_logger

logger = get_logger(__name__)

WELCOME_MSG = """Welcome to this app, in this app you can load plugins at runtime.
Type "help" to get some help."""


def parse_cmd(line: str) -> List[str]:
    """Split an input line on whitespace."""
    return line.split()


class Shell:
    """Interactive shell dispatching built-in and plugin commands."""

    def __init__(self, ctx: Optional[ExecutionContext] = None, stdin: Optional[TextIO] = None):
        self.ctx = ctx or ExecutionContext()
        self.stdin = stdin or sys.stdin
        register_builtins(self.ctx)

    @property
    def running(self) -> bool:
        return self.ctx.running

    def autoload(self, paths: Iterable[str]) -> None:
        """Load plugins before the first prompt. Failures are reported."""
        for path in paths:
            try:
                plugin = self.ctx.load_plugin(path)
            except LoadError as e:
                self.ctx.error(f"failed to load plugin: {e}")
                continue
            self.ctx.echo(f"Plugin {plugin.name!r} loaded successfully!")
            self.commit_pending()

    def read_line(self) -> Optional[str]:
        """Prompt and read one line. ``None`` at end of input.

        Raises:
            OSError: The console can't be read or written.
            UnicodeDecodeError: The input is not in the console encoding.
        """
        console = self.ctx.console
        console.print(self.ctx.config.prompt, end="", markup=False, highlight=False)
        console.file.flush()

        line = self.stdin.readline()
        if not line:
            return None
        return line.rstrip("\r\n")

    def run(self) -> None:
        """Loop until ``quit`` or end of input."""
        while self.ctx.running:
            line = self.read_line()
            if line is None:
                logger.debug("End of input, stopping")
                self.ctx.echo()
                self.ctx.stop()
                break
            self.execute_line(line)

    def execute_line(self, line: str) -> None:
        """Run one input line and commit commands staged by it."""
        args = parse_cmd(line)
        if not args:
            return

        name, rest = args[0], args[1:]
        with self.ctx.lock:
            runner = self.ctx.commands.get_runner(name)

        if runner is None:
            self.ctx.error(f"unknown command {name!r}, type \"help\" to see all commands.")
            return

        try:
            self.dispatch(runner, name, rest)
        except (CommandError, CommandExecutionError) as e:
            self.ctx.error(str(e))
        finally:
            self.commit_pending()

    def dispatch(self, runner: Runner, name: str, args: List[str]) -> None:
        """Execute a resolved runner. Blocks until it returns."""
        if runner.kind is RunnerKind.BUILTIN:
            runner.handler(self.ctx, name, args)
        elif runner.kind is RunnerKind.FORWARD:
            # A forward always targets a loaded plugin: plugins are never removed
            host = self.ctx.plugins.get_host(runner.plugin)
            host.call_run_command(name, list(args))
        else:
            raise AssertionError(f"unhandled runner kind {runner.kind!r}")

    def commit_pending(self) -> None:
        """Register commands of a just loaded plugin, reporting rejections."""
        for decl, error in self.ctx.commit_pending():
            self.ctx.error(f"command {decl.name!r} was not registered: {error}")
