"""Owner of one instantiated plugin sandbox."""

import dataclasses
from pathlib import Path
from typing import Optional, Sequence, Union

import wasmtime

from ..core.logger import get_logger
from .abi import GuestMemory
from .capabilities import HostCapabilities, LogSink
from .errors import AbiError, CommandExecutionError, InitError, LoadError
from .interface import (
    GUEST_INIT,
    GUEST_MEMORY,
    GUEST_REALLOC,
    GUEST_RUN_COMMAND,
    PluginInfo,
)
from .runtime import SandboxRuntime

logger = get_logger(__name__)


def _describe(error: Exception) -> str:
    """First line of a wasmtime error, without the wasm backtrace."""
    text = str(error).strip()
    return text.splitlines()[0] if text else error.__class__.__name__


class PluginHost:
    """One module instance and its store.

    The store lives as long as the host, so guest state survives between
    commands. Calls into the guest are synchronous and never concurrent.
    """

    def __init__(
        self,
        runtime: SandboxRuntime,
        path: Union[str, Path],
        sink: Optional[LogSink] = None,
    ):
        """Compile, link and instantiate the plugin at ``path``.

        Raises:
            LoadError: Any of its subclasses, with ``path`` attached.
        """
        self.path = Path(path)
        self.runtime = runtime
        self.capabilities = HostCapabilities(self.path.stem, sink)
        self.info: Optional[PluginInfo] = None

        try:
            module = runtime.compile(self.path)
            linker = runtime.link(self.capabilities)
            self.store, self.instance = runtime.instantiate(linker, module)
        except LoadError as e:
            if e.path is None:
                e.path = str(self.path)
            raise

        exports = self.instance.exports(self.store)
        self._memory = exports[GUEST_MEMORY]
        self._realloc = exports[GUEST_REALLOC]
        self._init = exports[GUEST_INIT]
        self._run_command = exports[GUEST_RUN_COMMAND]
        self._init_called = False

    @classmethod
    def new(
        cls,
        runtime: SandboxRuntime,
        path: Union[str, Path],
        sink: Optional[LogSink] = None,
    ) -> "PluginHost":
        return cls(runtime, path, sink)

    @property
    def label(self) -> str:
        """Plugin name once initialized, the file stem before."""
        return self.info.name if self.info is not None else self.path.stem

    def _guest_memory(self) -> GuestMemory:
        return GuestMemory(self.store, self._memory, self._realloc)

    def call_init(self) -> PluginInfo:
        """Call the guest's ``init`` export. Must be the first and only call.

        Commands declared through ``define-cmd`` are appended after the ones
        listed in the returned record.

        Raises:
            InitError: ``init`` was already called, trapped, or returned a
                malformed record.
        """
        if self._init_called:
            raise InitError(f"init was already called on {self.label!r}", self.path)
        self._init_called = True

        try:
            with self.capabilities.init_phase():
                self.runtime.refuel(self.store)
                ptr = self._init(self.store)
            info = self._guest_memory().read_plugin_info(ptr)
        except (wasmtime.Trap, wasmtime.WasmtimeError) as e:
            raise InitError(f"plugin init trapped: {_describe(e)}", self.path) from e
        except AbiError as e:
            raise InitError(f"plugin init returned malformed info: {e}", self.path) from e

        declared = self.capabilities.take_declared()
        if declared:
            info = dataclasses.replace(info, commands=info.commands + declared)

        self.info = info
        self.capabilities.label = info.name
        logger.debug(
            "Plugin initialized",
            plugin=info.name,
            version=info.version,
            commands=len(info.commands)
        )
        return info

    def call_run_command(self, name: str, args: Sequence[str]) -> None:
        """Run one command inside the guest.

        Argument buffers are allocated with the guest's ``cabi_realloc`` and
        belong to the guest afterwards.

        Raises:
            CommandExecutionError: The guest trapped or the call could not be
                marshalled. The instance stays usable.
        """
        memory = self._guest_memory()
        try:
            self.runtime.refuel(self.store)
            name_ptr, name_len = memory.write_string(name)
            args_ptr, args_len = memory.write_string_list(list(args))
            self._run_command(self.store, name_ptr, name_len, args_ptr, args_len)
        except (wasmtime.Trap, wasmtime.WasmtimeError, AbiError) as e:
            reason = _describe(e)
            logger.debug(
                "Plugin command failed",
                plugin=self.label,
                command=name,
                error=reason
            )
            raise CommandExecutionError(self.label, name, reason) from e
