import io
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pytest
import wasmtime
from rich.console import Console

from plugin_shell.core.config import Config
from plugin_shell.core.context import ExecutionContext
from plugin_shell.core.shell import Shell
from plugin_shell.plugins.interface import Level
from plugin_shell.plugins.runtime import SandboxRuntime

from wasm_guest import build_plugin_wat


class LogRecorder:
    """Log sink collecting ``(plugin, level, message)`` tuples."""

    def __init__(self):
        self.records: List[Tuple[str, Level, str]] = []

    def __call__(self, plugin: str, level: Level, message: str) -> None:
        self.records.append((plugin, level, message))

    def messages(self, plugin: Optional[str] = None) -> List[str]:
        return [m for p, _, m in self.records if plugin is None or p == plugin]


@pytest.fixture
def runtime() -> SandboxRuntime:
    return SandboxRuntime()


@pytest.fixture
def recorder() -> LogRecorder:
    return LogRecorder()


@pytest.fixture
def make_plugin(tmp_path: Path) -> Callable[..., Path]:
    """Write a compiled test guest to ``tmp_path`` and return its path."""
    counter = {"n": 0}

    def _make(name: str, *args, filename: Optional[str] = None, **kwargs) -> Path:
        counter["n"] += 1
        path = tmp_path / (filename or f"{name}-{counter['n']}.wasm")
        path.write_bytes(bytes(wasmtime.wat2wasm(build_plugin_wat(name, *args, **kwargs))))
        return path

    return _make


@pytest.fixture
def write_wat(tmp_path: Path) -> Callable[[str, str], Path]:
    """Compile arbitrary WAT into ``tmp_path``."""

    def _write(filename: str, source: str) -> Path:
        path = tmp_path / filename
        path.write_bytes(bytes(wasmtime.wat2wasm(source)))
        return path

    return _write


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None, force_terminal=False)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(PLUGIN_DIR=str(tmp_path), LOG_LEVEL="DEBUG")


@pytest.fixture
def ctx(config: Config, console: Console, runtime: SandboxRuntime, recorder: LogRecorder) -> ExecutionContext:
    return ExecutionContext(config=config, console=console, runtime=runtime, sink=recorder)


@pytest.fixture
def shell(ctx: ExecutionContext) -> Shell:
    return Shell(ctx, stdin=io.StringIO(""))
