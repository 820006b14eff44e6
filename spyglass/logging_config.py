"""Logging setup shared by the spyglass modules.

Every module asks for its logger with ``get_logger(__name__)``; the CLI calls
``setup_logging`` once to attach a rich console handler.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "spyglass"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a logger placed under the ``spyglass`` namespace."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(level: int | str = logging.WARNING, use_rich: bool = True) -> None:
    """Configure the package logger.

    Args:
        level: Logging level for the ``spyglass`` logger.
        use_rich: Render records through rich instead of a plain stream handler.
    """
    global _configured

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    if _configured:
        return

    if use_rich:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(levelname)s %(name)s: %(message)s")
        )

    logger.addHandler(handler)
    _configured = True
