import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..config.config import settings


def setup_logging():
    """
    Configures the root logger used across the application.

    Logs go both to the console (for development) and to a file that is
    rotated once it reaches a fixed size (for production, where the log
    directory is mounted as a volume).
    """
    log_format = "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s"

    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    # Drop handlers installed by uvicorn and friends so every line has our format.
    if logger.hasHandlers():
        logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(stdout_handler)

    # app.log rolls over to app.log.1 ... app.log.5 past 5 MB
    file_handler = RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=5*1024*1024,
        backupCount=5
    )
    file_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(file_handler)
