from __future__ import annotations

from logging.config import dictConfig

from broadcast_api.core.config import settings

_configured = False


def _default_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Configure process-wide logging once."""
    global _configured
    if _configured:
        return
    dictConfig(_default_config((level or settings.log_level).upper()))
    _configured = True
