import logging

from .config import settings


def configure_logging():
    """Configure basic structured logging for the application.

    Uses a simple format including level, module, and message. Ledger debits,
    refusals and status transitions all log through here, so keep the level at
    INFO or lower if you need an audit trail in the process logs.
    """
    if logging.getLogger().handlers:
        # Already configured (avoid duplicate handlers in reload / dev)
        return
    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=fmt)


def get_logger(name: str):
    configure_logging()
    return logging.getLogger(name)
