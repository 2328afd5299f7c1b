"""
Logging configuration.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from routefuzz.core.config import settings


def setup_logging():
    """Configure application logging."""
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            RotatingFileHandler(
                log_dir / "routefuzz.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5
            ),
            logging.StreamHandler(sys.stdout)
        ]
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    # generator debug output is one line per record
    if not settings.DEBUG:
        logging.getLogger("routefuzz.services").setLevel(logging.INFO)
