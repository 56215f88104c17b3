"""Runtime logging configuration with bounded retention."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from manuscript_engine.adapters.engine_settings import int_env

_CONFIGURED = False
DEFAULT_LOG_PATH = "work/logs/manuscript_engine.log"


def configure_runtime_logging() -> None:
    """Configure console + rotating file logs once per process."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    level_name = (
        os.environ.get("MANUSCRIPT_ENGINE_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    )
    level = getattr(logging, level_name, logging.INFO)
    log_path = Path(
        os.environ.get("MANUSCRIPT_ENGINE_LOG_PATH", DEFAULT_LOG_PATH).strip() or DEFAULT_LOG_PATH
    )
    max_bytes = int_env(
        "MANUSCRIPT_ENGINE_LOG_MAX_BYTES",
        5 * 1024 * 1024,
        minimum=64 * 1024,
        maximum=100 * 1024 * 1024,
    )
    backup_count = int_env("MANUSCRIPT_ENGINE_LOG_BACKUP_COUNT", 10, minimum=1, maximum=120)

    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        filename=log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(stream_handler)
    root.addHandler(file_handler)
    logging.getLogger(__name__).debug(
        "logging.configured path=%s max_bytes=%s backups=%s", log_path, max_bytes, backup_count
    )

    _CONFIGURED = True
