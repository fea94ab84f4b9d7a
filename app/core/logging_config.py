"""Stdout logging for the search API. Modules use ``logging.getLogger(__name__)``."""

import logging
import sys

NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "httpx", "httpcore", "redis")


def setup_logging(log_level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger at ``log_level``."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Reloads call this again
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("app").setLevel(level)

    logging.getLogger(__name__).info(f"Logging configured at {logging.getLevelName(level)}")
