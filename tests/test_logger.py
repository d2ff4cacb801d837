import pytest
from structlog.testing import capture_logs

from plugin_shell.core.logger import SimpleConsoleRenderer, setup_logger
from plugin_shell.plugins.capabilities import HostCapabilities, render_guest_log
from plugin_shell.plugins.interface import Level


def test_setup_logger_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        setup_logger("plugin_shell.test", "LOUD")


@pytest.mark.parametrize(
    "level, expected",
    [
        (Level.DEBUG, "debug"),
        (Level.INFO, "info"),
        (Level.WARN, "warning"),
        (Level.ERROR, "error"),
    ],
)
def test_guest_logs_are_tagged_with_plugin_and_level(level: Level, expected: str) -> None:
    with capture_logs() as logs:
        render_guest_log("plugin-ie", level, "Hello!")

    assert len(logs) == 1
    assert logs[0]["event"] == "Hello!"
    assert logs[0]["plugin"] == "plugin-ie"
    assert logs[0]["log_level"] == expected


def test_capabilities_default_to_structlog() -> None:
    capabilities = HostCapabilities("demo")
    with capture_logs() as logs:
        capabilities.log(Level.WARN, "careful")

    assert logs[0]["plugin"] == "demo"
    assert logs[0]["log_level"] == "warning"


def test_console_renderer() -> None:
    line = SimpleConsoleRenderer()(None, "info", {"event": "Plugin registered", "level": "info", "plugin": "demo"})
    assert line.endswith("INFO    Plugin registered | plugin=demo")
