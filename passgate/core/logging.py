# passgate/core/logging.py
import logging.config

from passgate.core.config import settings

_CONFIGURED = False

def setup_logging(level: str | None = None) -> None:
    """Console logging for the whole process; safe to call more than once."""
    global _CONFIGURED
    if _CONFIGURED:
        return
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "loggers": {
            "passgate": {"handlers": ["console"], "level": (level or settings.LOG_LEVEL).upper(), "propagate": False},
        },
    })
    _CONFIGURED = True
