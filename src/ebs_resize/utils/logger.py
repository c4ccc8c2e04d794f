# utils/logger.py
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

from ebs_resize.core.constants import LOG_BACKUP_COUNT, LOG_DIR, LOG_ROTATION_MAX_BYTES


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: Optional[str] = None,
    enable_rotation: bool = True,
    max_bytes: int = LOG_ROTATION_MAX_BYTES,
    backup_count: int = LOG_BACKUP_COUNT,
) -> logging.Logger:
    """Setup logger writing to stdout and, optionally, a rotating file under logs/.

    The level falls back to the LOG_LEVEL environment variable, then INFO.
    """
    logger = logging.getLogger(name)
    level = level or os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Prevent duplicate handlers
    if not logger.handlers:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(logging.INFO)
        logger.addHandler(stream_handler)

        if log_file:
            logs_dir = Path(os.getenv("LOG_PATH", LOG_DIR))
            log_path = logs_dir / log_file

            try:
                logs_dir.mkdir(parents=True, exist_ok=True)
                if enable_rotation:
                    file_handler = logging.handlers.RotatingFileHandler(
                        log_path,
                        maxBytes=max_bytes,
                        backupCount=backup_count,
                        encoding="utf-8",
                    )
                else:
                    file_handler = logging.FileHandler(log_path, encoding="utf-8")

                file_handler.setFormatter(formatter)
                file_handler.setLevel(logging.DEBUG)
                logger.addHandler(file_handler)

            except (OSError, PermissionError) as e:
                logger.warning(
                    f"Failed to create log file {log_path}: {e}. Logging to console only."
                )

        logger.propagate = False

    return logger


def set_console_level(logger: logging.Logger, level: str) -> None:
    """Raise or lower the console threshold of an already configured logger."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric)
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(
            handler, logging.FileHandler
        ):
            handler.setLevel(numeric)
