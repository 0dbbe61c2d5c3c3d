"""Logging configuration helpers."""

import logging


def configure_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the ``editor_sync`` logger.

    Repeated calls only adjust the level.
    """
    logger = logging.getLogger("editor_sync")
    logger.setLevel(level.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
