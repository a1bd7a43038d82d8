# src/common/logger_config.py
"""Application-wide logging configuration."""

import logging
import os
from typing import Optional

from rich.logging import RichHandler

from src.common.config.settings import settings  # Import settings for log level


def setup_logging(log_file: Optional[str] = None) -> None:
    """Configures Rich console logging and, optionally, a plain file log."""
    log_level_str = settings.LOG_LEVEL.upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        markup=True,
        tracebacks_word_wrap=True,
        tracebacks_suppress=[
            logging,
        ],
    )
    handlers: list[logging.Handler] = [rich_handler]

    log_file = log_file or settings.LOG_FILE
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        handlers.append(file_handler)

    root_logger.handlers = handlers

    # Suppress verbose logging from libraries
    logging.getLogger("mysql.connector").setLevel(logging.WARNING)
