"""Logging setup for the CLI. The library itself never configures logging."""

import logging


def configure_logging(level: str = "info") -> None:
    """Attach a stderr handler to the ``switchyard`` logger at *level*."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        msg = f"Unknown log level: {level!r}"
        raise ValueError(msg)

    logger = logging.getLogger("switchyard")
    logger.setLevel(numeric)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
