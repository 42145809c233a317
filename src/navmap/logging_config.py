"""Logging configuration for navmap runs."""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from navmap.config import settings

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Browser and HTTP internals log every request at DEBUG
NOISY_LOGGERS = ('urllib3', 'asyncio', 'playwright')


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Configure the root logger for a discovery run.

    Args:
        level: Log level name; defaults to NAVMAP_LOG_LEVEL
        log_file: Optional log file path; defaults to NAVMAP_LOG_FILE
        format_string: Optional custom format string
        quiet: Third-party loggers capped at WARNING

    Returns:
        The ``navmap`` package logger
    """
    level = level or settings.LOG_LEVEL
    log_file = log_file or settings.LOG_FILE
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger('navmap')


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the navmap namespace.

    Args:
        name: Logger name (usually __name__)
    """
    if name != 'navmap' and not name.startswith('navmap.'):
        name = f'navmap.{name}'
    return logging.getLogger(name)
