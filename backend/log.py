import logging
import logging.config
import os
from typing import Optional

LOGGING_CONF = os.path.join(os.path.dirname(os.path.abspath(__file__)), "logging.conf")


def setup_logging(level: Optional[str] = None) -> None:
    """Load logging.conf and optionally override the root level."""
    logging.config.fileConfig(LOGGING_CONF, disable_existing_loggers=False)
    if level:
        logging.getLogger().setLevel(level.upper())


logger = logging.getLogger("aypa")
