"""
Logging setup shared by the desktop client, the web server and the
diagnostic script.
"""
import logging
import logging.handlers
import os
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None,
                  log_format: str = DEFAULT_FORMAT) -> None:
    """
    Configures the root logger with a console handler and, when `log_file`
    is given, a rotating file handler (1MB, 5 backups).
    """
    logger = logging.getLogger()
    logger.setLevel(level.upper())

    # Clear existing handlers to avoid duplication
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1024 * 1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logging.debug("Log level set to %s.", level.upper())
