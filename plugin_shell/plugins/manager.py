"""Registry of loaded plugins."""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.logger import get_logger
from .capabilities import LogSink
from .errors import PluginConflictError
from .host import PluginHost
from .interface import PluginInfo
from .runtime import SandboxRuntime

logger = get_logger(__name__)


@dataclass
class Plugin:
    """A loaded plugin: its metadata and the host that runs it."""

    info: PluginInfo
    host: PluginHost
    path: Path

    @property
    def name(self) -> str:
        return self.info.name


class PluginRegistry:
    """Loaded plugins keyed by name. Each entry owns its ``PluginHost``.

    Plugins stay loaded until the process exits.
    """

    def __init__(self, runtime: SandboxRuntime, sink: Optional[LogSink] = None):
        """
        Args:
            runtime: Sandbox runtime shared by every plugin.
            sink: Log sink handed to each plugin's capabilities.
        """
        self.runtime = runtime
        self._sink = sink
        self._plugins: Dict[str, Plugin] = {}

    def load(self, path: Union[str, Path]) -> Plugin:
        """
        Load a plugin: compile, link, instantiate, ``init``, register.

        Args:
            path: Path to the plugin module

        Returns:
            The registered plugin

        Raises:
            LoadError: The plugin could not be loaded, or its name is taken.
                Nothing is registered in that case and an already loaded
                plugin with the same name keeps running.
        """
        path = Path(path)
        host = PluginHost.new(self.runtime, path, self._sink)
        info = host.call_init()

        if info.name in self._plugins:
            logger.debug(
                "Plugin name already taken, discarding new instance",
                plugin=info.name,
                path=str(path)
            )
            raise PluginConflictError(info.name, path)

        plugin = Plugin(info=info, host=host, path=path)
        self._plugins[info.name] = plugin

        logger.debug(
            "Plugin registered",
            plugin=info.name,
            version=info.version,
            path=str(path),
            commands=[command.name for command in info.commands]
        )
        return plugin

    def get(self, name: str) -> Optional[Plugin]:
        """Get a loaded plugin by name."""
        return self._plugins.get(name)

    def get_host(self, name: str) -> PluginHost:
        """Get the host of a loaded plugin.

        Raises:
            KeyError: No plugin with that name is loaded.
        """
        return self._plugins[name].host

    def list(self) -> List[Plugin]:
        """All loaded plugins sorted by name."""
        return [self._plugins[name] for name in sorted(self._plugins)]

    def names(self) -> List[str]:
        return sorted(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)
