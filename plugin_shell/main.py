"""Main application entry point."""

import sys
from typing import Optional

from rich.console import Console

from .core.config import get_config, reload_config
from .core.context import ExecutionContext
from .core.logger import ROOT_LOGGER, get_logger, setup_logger
from .core.shell import WELCOME_MSG, Shell

logger = get_logger(__name__)


def main(console: Optional[Console] = None) -> int:
    """Run the shell until ``quit``. Returns the process exit status."""
    reload_config()
    config = get_config()

    setup_logger(
        name=ROOT_LOGGER,
        level=config.log_level,
        log_file=config.log_file or None
    )

    console = console or Console()
    ctx = ExecutionContext(config=config, console=console)
    shell = Shell(ctx)

    try:
        ctx.echo(WELCOME_MSG)
        shell.autoload(config.autoload)
        shell.run()
    except (OSError, UnicodeDecodeError) as e:
        logger.critical("Console I/O failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        ctx.echo()
        return 130

    logger.debug("Shell stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
