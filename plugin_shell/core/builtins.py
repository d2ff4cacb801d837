"""Built-in shell commands."""

from typing import List

from ..plugins.errors import LoadError
from .commands import CommandError
from .context import ExecutionContext


def quit_exec(ctx: ExecutionContext, name: str, args: List[str]) -> None:
    ctx.stop()


def help_exec(ctx: ExecutionContext, name: str, args: List[str]) -> None:
    """Print every command, or the help of the commands given as arguments."""
    if args:
        for arg in args:
            cmd = ctx.commands.get(arg)
            if cmd is None:
                ctx.error(f"unknown command {arg!r}")
                continue
            ctx.echo(f"usage: {cmd.usage}")
            ctx.echo(f"  {cmd.description}")
            if cmd.provider is not None:
                ctx.echo(f"  (from plugin {cmd.provider})")
        return

    ctx.echo("All commands:")
    for _, cmd in ctx.commands.all():
        ctx.echo(f" {cmd.usage:16} - {cmd.description}")


def list_plugins_exec(ctx: ExecutionContext, name: str, args: List[str]) -> None:
    plugins = ctx.plugins.list()
    if not plugins:
        ctx.echo("There is currently no plugins loaded!")
        return

    ctx.echo("All loaded plugins:")
    for plugin in plugins:
        info = plugin.info
        ctx.echo(f"  {info.name:16} - {info.description} (v{info.version})")


def load_exec(ctx: ExecutionContext, name: str, args: List[str]) -> None:
    if not args:
        raise CommandError("you must give the path to a WASM file to load.")
    if len(args) > 1:
        raise CommandError("load expects exactly one path.")

    try:
        plugin = ctx.load_plugin(args[0])
    except LoadError as e:
        raise CommandError(f"failed to load plugin: {e}") from e

    ctx.echo(f"Plugin {plugin.name!r} loaded successfully!")


BUILTINS = [
    ("quit", "quit", "Quit the shell.", quit_exec),
    (
        "help",
        "help [cmd..]",
        "Print all commands to the screen or an helpful message if a command is passed as argument",
        help_exec,
    ),
    ("list-plugins", "list-plugins", "Print all the plugins currently loaded", list_plugins_exec),
    ("load", "load <path>", "Loads a new plugin.", load_exec),
]


def register_builtins(ctx: ExecutionContext) -> None:
    """Register every built-in command. Invalid definitions raise."""
    for name, usage, description, handler in BUILTINS:
        ctx.define_builtin(name, usage, description, handler)
