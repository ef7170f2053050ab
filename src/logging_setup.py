"""Root logger setup: console plus an optional rotating file in LOG_DIR."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s:%(name)s:%(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = "/var/log/ecobot"
DEFAULT_LOG_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 5


def _env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().strip('"').strip("'") or default


def _env_int(name: str, default: int) -> int:
    try:
        return int(_env(name, str(default)))
    except ValueError:
        return default


def configure_logging(service_name: str) -> Path | None:
    """Configure the root logger; returns the log file path when file logging is on."""
    level = getattr(logging, _env("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(), logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root_logger.addHandler(console)

    log_dir = Path(_env("LOG_DIR", DEFAULT_LOG_DIR))
    file_path = log_dir / _env("LOG_FILE_NAME", f"{service_name}.log")
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=_env_int("LOG_MAX_BYTES", DEFAULT_LOG_MAX_BYTES),
            backupCount=_env_int("LOG_BACKUP_COUNT", DEFAULT_LOG_BACKUP_COUNT),
            encoding="utf-8",
        )
    except OSError as error:
        # Console output is enough when the volume is not mounted.
        logging.getLogger(__name__).warning(
            "File logging disabled: failed to initialize %s (%s)", log_dir, error
        )
        return None

    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    logging.getLogger(__name__).info(
        "=== %s starting at %s ===", service_name.upper(), datetime.now().isoformat(sep=" ")
    )
    return file_path
