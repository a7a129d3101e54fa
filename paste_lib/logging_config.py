from __future__ import annotations
import logging
from typing import Optional


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure root logging for the application.

    `level` is a level name such as "INFO"; unknown or missing names fall
    back to WARNING. Returns a module logger for the caller.
    """
    log_level = logging.WARNING
    if level:
        resolved = logging.getLevelName(str(level).upper())
        if isinstance(resolved, int):
            log_level = resolved

    # Reconfigure root handlers to use the selected level and format
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=log_level, format='%(asctime)s %(levelname)s [%(name)s]: %(message)s')
    logger = logging.getLogger(__name__)

    # Keep known noisy libraries quiet by default
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logger.debug("Log level set to %s", logging.getLevelName(log_level))

    return logger
