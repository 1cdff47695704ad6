"""Logging setup for CLI entry points and the face worker process."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from photo_curator.config import LOG_LEVEL


def parse_level(level: str) -> int:
    """Translate a level name such as ``"info"`` into a logging constant."""
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logging(level: str | None = None) -> None:
    """Route the root logger through a RichHandler on stderr.

    stdout is left alone: the worker process owns it for protocol messages
    and the CLI prints results there.
    """
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(parse_level(level or LOG_LEVEL))

    logging.getLogger("onnxruntime").setLevel(logging.WARNING)
