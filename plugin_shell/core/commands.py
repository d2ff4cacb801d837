"""Command table shared by built-in and plugin commands."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from .logger import get_logger

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = get_logger(__name__)

MAX_COMMAND_NAME_LENGTH = 16

NAME_SEPARATORS = frozenset("-_")


class CommandError(Exception):
    """A command failed in a way that is reported to the user."""


class InvalidCommandName(CommandError):
    """A command name does not satisfy the naming rules."""


class CommandConflictError(CommandError):
    """A command with the same name is already registered."""

    def __init__(self, name: str, owner: Optional[str] = None):
        where = f"plugin {owner!r}" if owner else "a built-in"
        super().__init__(f"command {name!r} is already defined by {where}")
        self.name = name
        self.owner = owner


def validate_command_name(name: str) -> None:
    """Check a command name.

    A name is rejected when it is empty, when it has 16 characters or more,
    when it contains whitespace, or when it contains anything other than
    alphanumerics and the ``-``/``_`` separators. The separators are allowed
    because the built-in ``list-plugins`` needs them.

    Raises:
        InvalidCommandName: The name breaks one of the rules.
    """
    if not name:
        raise InvalidCommandName("command name must not be empty")
    if len(name) >= MAX_COMMAND_NAME_LENGTH:
        raise InvalidCommandName(
            f"{name!r} is not a correct command name, it must be shorter than "
            f"{MAX_COMMAND_NAME_LENGTH} characters"
        )
    if any(ch.isspace() for ch in name):
        raise InvalidCommandName(f"{name!r} is not a correct command name, it contains whitespace")
    if not all(ch.isalnum() or ch in NAME_SEPARATORS for ch in name):
        raise InvalidCommandName(f"{name!r} is not a correct command name, it must be alphanumeric")


@dataclass(frozen=True)
class Cmd:
    """Help entry of a command."""

    usage: str
    description: str
    # Name of the plugin defining the command, None for built-ins
    provider: Optional[str] = None


BuiltinFn = Callable[["ExecutionContext", str, List[str]], None]


class RunnerKind(str, Enum):
    """How a command is executed."""
    BUILTIN = "builtin"
    FORWARD = "forward"


@dataclass(frozen=True)
class Runner:
    """Action bound to a command name.

    ``BUILTIN`` runners carry the function to call, ``FORWARD`` runners the
    name of the plugin the command is forwarded to.
    """

    kind: RunnerKind
    handler: Optional[BuiltinFn] = None
    plugin: Optional[str] = None

    @classmethod
    def builtin(cls, handler: BuiltinFn) -> "Runner":
        return cls(kind=RunnerKind.BUILTIN, handler=handler)

    @classmethod
    def forward(cls, plugin: str) -> "Runner":
        return cls(kind=RunnerKind.FORWARD, plugin=plugin)


class CommandRegistry:
    """Command name to descriptor and runner. First writer wins."""

    def __init__(self):
        self._commands: Dict[str, Cmd] = {}
        self._runners: Dict[str, Runner] = {}
        self._providers: Dict[str, List[str]] = {}  # plugin name -> command names

    def register(self, name: str, cmd: Cmd, runner: Runner) -> None:
        """
        Register a command.

        Args:
            name: Command name, the first token of an input line
            cmd: Help entry
            runner: How to execute the command

        Raises:
            InvalidCommandName: ``name`` breaks the naming rules.
            CommandConflictError: ``name`` is already registered. The
                existing entry is left unchanged.
        """
        validate_command_name(name)

        if name in self._commands:
            raise CommandConflictError(name, self._commands[name].provider)

        self._commands[name] = cmd
        self._runners[name] = runner
        if cmd.provider is not None:
            self._providers.setdefault(cmd.provider, []).append(name)

        logger.debug(
            "Command registered",
            command=name,
            kind=runner.kind.value,
            provider=cmd.provider
        )

    def get(self, name: str) -> Optional[Cmd]:
        """Get the help entry of a command."""
        return self._commands.get(name)

    def get_runner(self, name: str) -> Optional[Runner]:
        """Get the runner of a command."""
        return self._runners.get(name)

    def all(self) -> List[Tuple[str, Cmd]]:
        """Every command sorted ascending by usage string."""
        return sorted(self._commands.items(), key=lambda item: (item[1].usage, item[0]))

    def names(self) -> List[str]:
        return sorted(self._commands)

    def by_provider(self, plugin: str) -> List[str]:
        """Names of the commands a plugin registered."""
        return list(self._providers.get(plugin, []))

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)
