"""Logging setup for applications embedding threadloop."""

import logging
import sys
from typing import Optional

from .config import config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure logging based on ``level`` or the LOG_LEVEL environment variable."""
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # Set level for our modules
    logging.getLogger("threadloop").setLevel(log_level)
