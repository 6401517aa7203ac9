import logging
import os
from logging.config import dictConfig
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
SYNC_LOGGERS = ("progress_sync.sync", "progress_sync.remote", "progress_sync.identity")


def configure_logging(level: Optional[str] = None) -> None:
    """Set up process logging for the tracker and the reference remote store.

    ``PROGRESS_SYNC_LOG_LEVEL`` drives the package loggers; third-party HTTP
    chatter stays at WARNING unless ``PROGRESS_SYNC_DEBUG_HTTP=1``. Sync loggers
    can be raised on their own with ``PROGRESS_SYNC_SYNC_LOG_LEVEL`` when
    chasing a merge or push problem.
    """
    package_level = (level or os.getenv("PROGRESS_SYNC_LOG_LEVEL", "INFO")).upper()
    sync_level = os.getenv("PROGRESS_SYNC_SYNC_LOG_LEVEL", package_level).upper()
    http_level = "DEBUG" if os.getenv("PROGRESS_SYNC_DEBUG_HTTP", "0") == "1" else "WARNING"

    loggers = {
        "progress_sync": {"level": package_level},
        "httpx": {"level": http_level},
        "httpcore": {"level": http_level},
        "uvicorn.access": {"level": "DEBUG" if http_level == "DEBUG" else "INFO"},
    }
    for name in SYNC_LOGGERS:
        loggers[name] = {"level": sync_level}

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": DEFAULT_LOG_FORMAT,
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": loggers,
            "root": {
                "handlers": ["default"],
                "level": "WARNING",
            },
        }
    )
    logging.getLogger(__name__).debug(
        "Logging configured (package=%s, sync=%s, http=%s)", package_level, sync_level, http_level
    )
