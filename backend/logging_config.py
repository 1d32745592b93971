"""Centralized logging configuration."""

import logging

from config import settings

# Per-request and per-statement chatter; warnings still get through
NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "uvicorn.access",
)

# Chain clients live under this package
CHAIN_LOGGER = "integrations"


def setup_logging() -> None:
    """Configure logging for the application.

    The root level comes from settings.LOG_LEVEL. Chain client logs
    (transfers, RPC failures) follow settings.CHAIN_LOG_LEVEL. Noisy
    library loggers are held at WARNING.
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, settings.LOG_LEVEL),
        force=True,
    )

    logging.getLogger(CHAIN_LOGGER).setLevel(getattr(logging, settings.CHAIN_LOG_LEVEL))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
