"""
Logging configuration

- logs/foodcourt.log with rotation when the directory is writable
- falls back to console only when it is not (e.g. read-only bind mount)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from foodcourt.core.config import Config


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None, logs_dir: str | None = None) -> int:
    """
    Configure the root logger

    Args:
        level: Level name (Config.LOG_LEVEL by default)
        logs_dir: Log directory (Config.LOGS_DIR by default)

    Returns:
        Effective numeric log level
    """
    log_formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_formatter)

    handlers: list[logging.Handler] = [console_handler]

    log_file_path = Path(logs_dir or Config.LOGS_DIR) / "foodcourt.log"
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            str(log_file_path),
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(log_formatter)
        handlers.insert(0, file_handler)
    except (PermissionError, OSError) as e:
        sys.stderr.write(f"[logging] WARNING: cannot use file logging at {log_file_path}: {e}\n")

    log_level = getattr(logging, (level or Config.LOG_LEVEL).upper(), logging.INFO)
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("foodcourt").setLevel(log_level)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    if log_level == logging.DEBUG:
        logging.getLogger("apscheduler").setLevel(logging.INFO)
    else:
        logging.getLogger("apscheduler").setLevel(logging.WARNING)

    return log_level
