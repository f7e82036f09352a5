# ABOUTME: File-only logging setup for the BTHome exporter service
# ABOUTME: Configures TimedRotatingFileHandler with daily rotation and structured log format
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from bthome_sniffer.config import AppConfig


LOGGER_NAME = 'bthome_sniffer'


def get_logger(app_config: AppConfig) -> logging.Logger:
    """
    Create and configure logger for the exporter service.

    Args:
        app_config: Application configuration containing log file path and level

    Returns:
        Configured logger instance with file handler
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Avoid adding duplicate handlers if get_logger is called multiple times
    if logger.handlers:
        return logger

    logger.setLevel(app_config.log_level)

    log_path = Path(app_config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Rotate daily at midnight, keep 30 days
    handler = TimedRotatingFileHandler(
        app_config.log_file,
        when='midnight',
        interval=1,
        backupCount=30
    )

    formatter = logging.Formatter(
        '%(asctime)s %(levelname)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)
    handler.setLevel(app_config.log_level)

    logger.addHandler(handler)

    return logger
