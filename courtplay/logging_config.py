"""Centralized logging configuration for courtplay.

Library modules log under ``courtplay.<module>`` and never configure
handlers themselves; entry points (the CLI, an embedding app) call
``setup_logging`` once.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER = 'courtplay'

# Timeline building and state transitions log at DEBUG here
PLAYBACK_LOGGERS = ('courtplay.flattener', 'courtplay.playback')


def setup_logging(
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = True,
    trace_playback: bool = False,
) -> logging.Logger:
    """
    Configure the ``courtplay`` logger hierarchy.

    Args:
        log_dir: Directory for log files (default: ./logs)
        level: Level for every courtplay logger (default: INFO)
        log_to_file: Write a timestamped ``courtplay_<stamp>.log`` (default: True)
        log_to_console: Echo to stdout (default: True)
        trace_playback: Log playback state transitions at DEBUG regardless of ``level``

    Returns:
        The configured ``courtplay`` logger

    Example:
        from courtplay.logging_config import setup_logging
        setup_logging(log_to_file=False, trace_playback=True)
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if trace_playback else level)
    logger.handlers = []

    for name in PLAYBACK_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if trace_playback else logging.NOTSET)
    if trace_playback:
        # Everything else keeps the requested level
        for name, other in logging.root.manager.loggerDict.items():
            if (
                isinstance(other, logging.Logger)
                and name.startswith(f'{ROOT_LOGGER}.')
                and name not in PLAYBACK_LOGGERS
            ):
                other.setLevel(level)

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )
    console_formatter = logging.Formatter('%(levelname)s [%(name)s]: %(message)s')

    if log_to_file:
        log_dir = log_dir or Path('logs')
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f'courtplay_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(module: str = '') -> logging.Logger:
    """Logger for ``courtplay.<module>`` (the root courtplay logger when empty)."""
    return logging.getLogger(f'{ROOT_LOGGER}.{module}' if module else ROOT_LOGGER)
