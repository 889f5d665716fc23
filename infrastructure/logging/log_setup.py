# infrastructure/logging/log_setup.py
from typing import Optional

from loguru import logger


def setup_console_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=level)
    if log_file:
        logger.add(log_file, level=level, enqueue=True)
