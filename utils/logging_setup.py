"""
Centralized logging setup for the rental forecaster.

Configures:
- UTC timestamps on all log formatters
- Size-based rotation (10MB, 5 backups) for the forecast log
- Console output for interactive runs

Usage:
    from utils.logging_setup import configure_logging
    configure_logging()  # Call once at startup
"""

from __future__ import annotations

import logging
import logging.handlers
import time
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[1]
LOGS_ROOT = PROJECT_ROOT / "logs"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s - %(message)s"


class _UTCFormatter(logging.Formatter):
    """Formatter that always uses UTC timestamps."""
    converter = time.gmtime


def build_formatter() -> logging.Formatter:
    return _UTCFormatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%SZ")


def configure_logging(
    *,
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    enable_rotation: bool = True,
    enable_console: bool = True,
) -> None:
    """Configure centralized logging with UTC timestamps and rotation."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear existing rotating handlers to prevent duplicates on re-init
    for h in list(root_logger.handlers):
        if isinstance(h, logging.handlers.RotatingFileHandler):
            root_logger.removeHandler(h)
            h.close()

    fmt = build_formatter()

    if enable_console and not any(isinstance(h, logging.StreamHandler) and
                                   not isinstance(h, logging.FileHandler)
                                   for h in root_logger.handlers):
        ch = logging.StreamHandler()
        ch.setFormatter(fmt)
        root_logger.addHandler(ch)

    if enable_rotation:
        log_root = Path(log_dir) if log_dir else LOGS_ROOT
        log_root.mkdir(parents=True, exist_ok=True)
        rh = logging.handlers.RotatingFileHandler(
            str(log_root / "forecast.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        rh.setFormatter(fmt)
        root_logger.addHandler(rh)
