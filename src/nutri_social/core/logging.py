"""Logging configuration shared by the API process and tooling scripts."""

from __future__ import annotations

import logging.config

from nutri_social.core.settings import settings


def configure_logging(level: str | None = None) -> None:
    """Install a single console handler on the root logger."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": settings.log_format},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": (level or settings.log_level).upper(),
            },
            "loggers": {
                "sqlalchemy.engine": {
                    "level": "INFO" if settings.sql_debug else "WARNING",
                },
            },
        }
    )
