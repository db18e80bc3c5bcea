"""Logging setup."""
import logging

from portor.config import config


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=(level or config.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
