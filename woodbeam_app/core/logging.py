from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from .paths import logs_dir

LOG_FILE_NAME = "woodbeam.log"


def configure_logging(level: str = "INFO", *, console: bool = True, log_file: Optional[str] = None) -> None:
    """Install the application sinks: a rotating file under the user data dir plus the console."""
    logger.remove()
    log_path = logs_dir() / (log_file or LOG_FILE_NAME)
    logger.add(str(log_path), level="DEBUG", rotation="5 MB", retention=10, enqueue=True, backtrace=False, diagnose=False)
    if console:
        logger.add(sys.stderr, level=level)
