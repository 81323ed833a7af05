"""Logging utilities."""

import logging
import sys
from pathlib import Path
from typing import Optional

import mne


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    name: str = "eegclean",
    mne_level: str = "WARNING",
) -> logging.Logger:
    """
    Set up logging for eegclean.

    Args:
        level: Logging level
        log_file: Optional file to log to
        name: Logger name
        mne_level: Verbosity passed to ``mne.set_log_level``

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Repeated calls (e.g. one per CLI invocation in tests) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_format = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_format = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    mne.set_log_level(mne_level)

    return logger
