"""Interactive shell extensible with sandboxed WebAssembly plugins."""

__version__ = "0.1.0"

from .core.context import ExecutionContext
from .core.shell import Shell

__all__ = ["ExecutionContext", "Shell", "__version__"]
