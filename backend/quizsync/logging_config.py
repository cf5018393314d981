import logging
import os
from logging.config import dictConfig
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process logging; ``level`` overrides QUIZSYNC_LOG_LEVEL."""
    root_level = (level or os.getenv("QUIZSYNC_LOG_LEVEL", "INFO")).upper()
    telemetry_level = os.getenv("QUIZSYNC_TELEMETRY_LOG_LEVEL", root_level).upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": DEFAULT_LOG_FORMAT},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": {
                "quizsync.telemetry": {"level": telemetry_level},
            },
            "root": {
                "handlers": ["default"],
                "level": root_level,
            },
        }
    )

    # Remote-store request tracing.
    if os.getenv("QUIZSYNC_DEBUG_HTTP", "0") == "1":
        logging.getLogger("httpx").setLevel(logging.DEBUG)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
