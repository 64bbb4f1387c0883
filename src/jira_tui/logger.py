"""Logging configuration for jira-tui."""

import logging
from pathlib import Path


def setup_logger(log_file: Path, name: str = "jira_tui", level: int = logging.INFO) -> logging.Logger:
    """Set up and return the package logger.

    Logs go to a file because the terminal is owned by the UI.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    return logger
