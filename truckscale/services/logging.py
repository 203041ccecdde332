"""Centralised logging setup for the truck load monitor.

Rotating file log under ``~/.truckscale/logs`` (``/tmp`` fallback when the
home directory is not writable) plus a stderr handler.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "truckscale"


def _resolve_log_file() -> Optional[Path]:
    for directory in (Path.home() / ".truckscale" / "logs", Path("/tmp") / "truckscale_logs"):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            continue
        return directory / "truckscale.log"
    return None


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the package logger once and return it.

    - file: 1 MB per file, 3 rotated backups
    - console: stderr, always available
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicated handlers when called more than once
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    target = log_file or _resolve_log_file()
    if target is not None:
        try:
            file_handler = RotatingFileHandler(target, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as exc:
            print(f"Warning: cannot write log file {target}: {exc}", file=sys.stderr)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.info("Logging initialised")
    return logger


__all__ = ["LOGGER_NAME", "setup_logging"]
