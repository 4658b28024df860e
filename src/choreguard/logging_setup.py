"""Logging configuration for the choreguard CLI."""

from __future__ import annotations

import logging
import os

ROOT_LOGGER = "choreguard"
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "urllib3", "filelock")


def setup_logging(verbose: bool = False, log_file: str | None = None) -> logging.Logger:
    """
    Configure dual-handler logging (console + file) on the package logger.

    Args:
        verbose: Enable DEBUG level on console (default INFO)
        log_file: Path to log file (None for no file logging)

    Returns:
        The configured ``choreguard`` logger
    """
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(
        logging.Formatter("%(levelname)-8s | %(name)s | %(message)s")
    )

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
