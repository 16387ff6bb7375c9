"""
Logging setup and configuration utilities.

Modules log through the standard library; this module routes those records,
including paramiko's, into loguru sinks.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as loguru_logger

from ..config.models import LoggingConfig


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage())


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Setup application logging with the given configuration.

    Args:
        config: Logging configuration, defaults when omitted
    """
    config = config or LoggingConfig()

    loguru_logger.remove()

    if config.console_enabled:
        loguru_logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
                   "<level>{level: <8}</level> | "
                   "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                   "<level>{message}</level>",
            level=config.level,
            colorize=True,
            backtrace=False,
            diagnose=False
        )

    if config.file_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)
        loguru_logger.add(
            log_dir / "lattice-ssh.log",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
                   "{name}:{function}:{line} - {message}",
            level=config.level,
            rotation=config.max_file_size,
            retention=config.backup_count,
            compression="zip",
            backtrace=False,
            diagnose=False
        )

    # diagnose stays off so local variables such as passwords never reach a sink
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # paramiko's transport logs every packet at DEBUG
    paramiko_level = logging.DEBUG if config.level in ("TRACE", "DEBUG") else logging.WARNING
    logging.getLogger("paramiko").setLevel(paramiko_level)
