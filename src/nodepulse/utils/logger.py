"""Logging configuration."""

import logging
from pathlib import Path
from typing import Optional, Union
from rich.logging import RichHandler

from ..config import settings

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _console_handler() -> RichHandler:
    handler = RichHandler(
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _file_handler(log_file: Union[str, Path]) -> logging.FileHandler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with its own rich console handler and, when
    ``settings.log_file`` is set, a file handler.

    Handlers are attached on the first call only; the logger does not
    propagate to the root logger so records are not printed twice.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
        logger.addHandler(_console_handler())

        if settings.log_file:
            logger.addHandler(_file_handler(settings.log_file))

        logger.propagate = False

    return logger


def setup_logging(level: str = "INFO", log_file: Optional[Union[str, Path]] = None) -> None:
    """Configure the root logger: rich console output plus an optional file."""
    handlers: list[logging.Handler] = [_console_handler()]

    if log_file:
        handlers.append(_file_handler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )
