"""WebAssembly sandbox runtime.

One engine is shared by every plugin; each instantiation gets its own
``wasmtime.Store`` so plugins never see each other's memory.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import wasmtime

from ..core.logger import get_logger
from .capabilities import HostCapabilities
from .errors import CompileError, InstantiationError, LinkError, PluginFileNotFound
from .interface import (
    GUEST_INIT,
    GUEST_MEMORY,
    GUEST_REALLOC,
    GUEST_RUN_COMMAND,
    HOST_DEFINE_CMD,
    HOST_LOG,
    HOST_MODULE,
    REQUIRED_EXPORTS,
)

logger = get_logger(__name__)

# Expected (params, results) of each exported guest function
_EXPORT_SIGNATURES: Dict[str, Tuple[List[str], List[str]]] = {
    GUEST_REALLOC: (["i32"] * 4, ["i32"]),
    GUEST_INIT: ([], ["i32"]),
    GUEST_RUN_COMMAND: (["i32"] * 4, []),
}

_HOST_SIGNATURES: Dict[str, Tuple[List[str], List[str]]] = {
    HOST_LOG: (["i32"] * 3, []),
    HOST_DEFINE_CMD: (["i32"] * 6, []),
}


def _signature(func_type: wasmtime.FuncType) -> Tuple[List[str], List[str]]:
    return (
        [str(p) for p in func_type.params],
        [str(r) for r in func_type.results],
    )


class SandboxRuntime:
    """Compiles, links and instantiates plugin modules."""

    def __init__(self, fuel_per_call: Optional[int] = None):
        """
        Args:
            fuel_per_call: When set, every guest call runs with this much
                fuel and traps once it is spent. ``None`` disables metering.
        """
        config = wasmtime.Config()
        if fuel_per_call is not None:
            config.consume_fuel = True
        self.engine = wasmtime.Engine(config)
        self.fuel_per_call = fuel_per_call

    def compile(self, path: Union[str, Path]) -> wasmtime.Module:
        """Compile a plugin file into a module.

        ``.wat`` files are accepted and translated to binary first.

        Raises:
            PluginFileNotFound: ``path`` is not an existing file.
            CompileError: The file is unreadable, invalid, or does not export
                the plugin interface.
        """
        path = Path(path)
        if not path.is_file():
            raise PluginFileNotFound(f"plugin file {str(path)!r} not found", path)

        try:
            data = path.read_bytes()
        except OSError as e:
            raise CompileError(f"cannot read {str(path)!r}: {e}", path) from e

        try:
            if path.suffix == ".wat":
                data = wasmtime.wat2wasm(data.decode("utf-8"))
            module = wasmtime.Module(self.engine, data)
        except (wasmtime.WasmtimeError, UnicodeDecodeError) as e:
            raise CompileError(f"{str(path)!r} is not a valid WebAssembly module: {e}", path) from e

        self._check_exports(module, path)
        logger.debug("Module compiled", path=str(path))
        return module

    def _check_exports(self, module: wasmtime.Module, path: Path) -> None:
        exports = {export.name: export.type for export in module.exports}

        missing = [name for name in REQUIRED_EXPORTS if name not in exports]
        if missing:
            raise CompileError(
                f"{str(path)!r} does not implement the plugin interface, missing exports: "
                + ", ".join(missing),
                path
            )

        if not isinstance(exports[GUEST_MEMORY], wasmtime.MemoryType):
            raise CompileError(f"{str(path)!r} export {GUEST_MEMORY!r} is not a memory", path)

        for name, expected in _EXPORT_SIGNATURES.items():
            export_type = exports[name]
            if not isinstance(export_type, wasmtime.FuncType) or _signature(export_type) != expected:
                raise CompileError(
                    f"{str(path)!r} export {name!r} has the wrong signature",
                    path
                )

    def link(self, capabilities: HostCapabilities) -> wasmtime.Linker:
        """Build a linker providing every host capability function."""
        linker = wasmtime.Linker(self.engine)
        for capability in capabilities.capabilities():
            linker.define_func(
                HOST_MODULE,
                capability.name,
                capability.type,
                capability.handler,
                access_caller=True,
            )
        return linker

    def instantiate(
        self,
        linker: wasmtime.Linker,
        module: wasmtime.Module,
    ) -> Tuple[wasmtime.Store, wasmtime.Instance]:
        """Instantiate ``module`` in a fresh store.

        Raises:
            LinkError: The module imports something the host does not provide.
            InstantiationError: Instantiation failed or the start function
                trapped.
        """
        unresolved = []
        for imp in module.imports:
            expected = _HOST_SIGNATURES.get(imp.name) if imp.module == HOST_MODULE else None
            if (
                expected is None
                or not isinstance(imp.type, wasmtime.FuncType)
                or _signature(imp.type) != expected
            ):
                unresolved.append(f"{imp.module}::{imp.name}")
        if unresolved:
            raise LinkError("unresolved imports: " + ", ".join(unresolved))

        store = wasmtime.Store(self.engine)
        self.refuel(store)
        try:
            instance = linker.instantiate(store, module)
        except (wasmtime.Trap, wasmtime.WasmtimeError) as e:
            raise InstantiationError(f"failed to instantiate plugin: {e}") from e
        return store, instance

    def refuel(self, store: wasmtime.Store) -> None:
        """Reset the store's fuel to the per-call budget."""
        if self.fuel_per_call is not None:
            store.set_fuel(self.fuel_per_call)
