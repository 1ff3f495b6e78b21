"""Enhanced logging configuration with Rich formatting.

All log output goes to stderr. Stdout is reserved for values another
program may capture, such as the model name chosen by ``locman select``.
"""

import logging
import sys
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

_PACKAGE = "locman"


def configure_module_logger(
    module_name: str,
    level: int = logging.INFO,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure a module-specific logger writing to stderr.

    Args:
        module_name: Module name (typically __name__).
        level: Logging level.
        use_colors: Enable Rich output (default: True).

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(module_name)
    logger.setLevel(level)
    logger.handlers.clear()

    handler: Union[RichHandler, logging.Handler]
    if use_colors:
        console = Console(stderr=True, legacy_windows=False)
        handler = RichHandler(
            console=console,
            show_path=False,
            show_time=True,
            rich_tracebacks=True,
            markup=True,
            show_level=True,
            level=logging.NOTSET,  # Allow logger to control filtering
            omit_repeated_times=False,
            keywords=["pull", "delete", "retry", "HTTP"],
        )
        handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def set_verbosity(verbose: bool) -> None:
    """Switch every ``locman`` logger between INFO and DEBUG."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.getLogger(_PACKAGE).setLevel(level)
    for name in list(logging.Logger.manager.loggerDict):
        if name == _PACKAGE or name.startswith(f"{_PACKAGE}."):
            logging.getLogger(name).setLevel(level)
