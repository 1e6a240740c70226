"""Console logging setup shared by the engine and the visualizers."""

import logging

_FORMAT = "[%(levelname)s][%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Installs a single console handler on the package logger.

    Calling it again only changes the level, so entry points can call it freely.
    """
    logger = logging.getLogger("reactive_led")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    level_name = (level or "INFO").upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
