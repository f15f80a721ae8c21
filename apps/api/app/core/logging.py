import logging
import os

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging once per process (API and Celery worker both call this).
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    lvl = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, lvl, logging.INFO), format=LOG_FORMAT)

    # httpx logs every request at INFO; caption fetches would flood the log
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _CONFIGURED = True
