import logging
from typing import Optional

from edurecords.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Install the application-wide log format. Safe to call more than once."""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)


def get_logger(name: str = "edurecords") -> logging.Logger:
    return logging.getLogger(name)
