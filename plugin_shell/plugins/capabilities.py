"""Host capability functions exposed to plugins.

Each plugin gets its own ``HostCapabilities``. It is the only host object a
guest can reach, and it holds no reference to the shell: log lines go to the
logging stack and declared commands are collected for the loader to read.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

import wasmtime

from ..core.logger import bind_logger, get_logger
from .abi import GuestMemory
from .errors import AbiError
from .interface import (
    GUEST_MEMORY,
    HOST_DEFINE_CMD,
    HOST_LOG,
    CommandDecl,
    Level,
)

logger = get_logger(__name__)

GUEST_LOGGER = "plugin_shell.guest"

LogSink = Callable[[str, Level, str], None]


def render_guest_log(plugin: str, level: Level, message: str) -> None:
    """Default sink: route a guest log line through structlog."""
    guest_logger = bind_logger(GUEST_LOGGER, plugin=plugin)
    getattr(guest_logger, level.method)(message)


@dataclass
class Capability:
    """A host function importable by the guest."""

    name: str
    type: wasmtime.FuncType
    handler: Callable


class HostCapabilities:
    """The narrow host interface handed to one plugin instance."""

    def __init__(self, label: str, sink: Optional[LogSink] = None):
        """
        Args:
            label: Name used to tag this plugin's log lines. The file stem
                until ``init`` reveals the real plugin name.
            sink: Receives ``(plugin, level, message)`` for every guest log.
        """
        self.label = label
        self._sink = sink or render_guest_log
        self._declared: List[CommandDecl] = []
        self._in_init = False

    def log(self, level: Level, message: str) -> None:
        """Render a guest message tagged with its level."""
        self._sink(self.label, level, message)

    def define_cmd(self, name: str, usage: str, description: str) -> None:
        """Legacy imperative declaration, only honoured while ``init`` runs."""
        if not self._in_init:
            logger.warning(
                "define-cmd called outside init, ignoring",
                plugin=self.label,
                command=name
            )
            return
        self._declared.append(CommandDecl(name=name, usage=usage, description=description))

    @contextmanager
    def init_phase(self) -> Iterator[None]:
        """Open the window during which ``define-cmd`` is accepted."""
        self._declared.clear()
        self._in_init = True
        try:
            yield
        finally:
            self._in_init = False

    def take_declared(self) -> Tuple[CommandDecl, ...]:
        """Return and forget the commands declared through ``define-cmd``."""
        declared = tuple(self._declared)
        self._declared.clear()
        return declared

    # ------------------------------------------------------------------
    # Raw wasm adapters
    # ------------------------------------------------------------------

    def _memory(self, caller: wasmtime.Caller) -> GuestMemory:
        memory = caller.get(GUEST_MEMORY)
        if not isinstance(memory, wasmtime.Memory):
            raise AbiError("guest does not export its memory")
        return GuestMemory(caller, memory)

    def _host_log(self, caller: wasmtime.Caller, level: int, ptr: int, length: int) -> None:
        try:
            message = self._memory(caller).read_string(ptr, length)
        except AbiError as e:
            logger.warning("Rejected guest log call", plugin=self.label, error=str(e))
            return

        try:
            lvl = Level(level)
        except ValueError:
            logger.warning("Guest used an unknown log level", plugin=self.label, level=level)
            lvl = Level.INFO
        self.log(lvl, message)

    def _host_define_cmd(
        self,
        caller: wasmtime.Caller,
        name_ptr: int,
        name_len: int,
        usage_ptr: int,
        usage_len: int,
        desc_ptr: int,
        desc_len: int,
    ) -> None:
        try:
            memory = self._memory(caller)
            name = memory.read_string(name_ptr, name_len)
            usage = memory.read_string(usage_ptr, usage_len)
            description = memory.read_string(desc_ptr, desc_len)
        except AbiError as e:
            logger.warning("Rejected guest define-cmd call", plugin=self.label, error=str(e))
            return
        self.define_cmd(name, usage, description)

    def capabilities(self) -> List[Capability]:
        """Every host function a guest may import."""
        i32 = wasmtime.ValType.i32()
        return [
            Capability(
                name=HOST_LOG,
                type=wasmtime.FuncType([i32, i32, i32], []),
                handler=self._host_log,
            ),
            Capability(
                name=HOST_DEFINE_CMD,
                type=wasmtime.FuncType([i32] * 6, []),
                handler=self._host_define_cmd,
            ),
        ]
