"""
Logging setup for the CLI and the API. The extraction engine only creates
module loggers and never configures handlers itself.
"""

import logging
import sys
from typing import Optional
from config import config


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        log_level: Level name, defaults to LOG_LEVEL
        log_file: Optional file name inside LOG_DIR
        console_output: Log to stderr; stdout carries the CLI's JSON

    Returns:
        The root logger
    """
    level = getattr(logging, (log_level or config.LOG_LEVEL).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(fmt=config.LOG_FORMAT, datefmt=config.LOG_DATE_FORMAT)

    handlers = []
    if console_output:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        handlers.append(logging.FileHandler(config.get_log_path(log_file), mode='a', encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # PyMuPDF, upload parsing and per-request access lines are noise at INFO
    for name in ('fitz', 'multipart', 'uvicorn.access'):
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
