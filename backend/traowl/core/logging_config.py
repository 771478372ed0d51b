"""Logging setup shared by the API process and the migration script."""

import logging
import logging.config

from traowl.core.config import Settings


def build_logging_config(settings: Settings) -> dict:
    formatter = "json" if settings.log_format.lower() == "json" else "detailed"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            },
            "json": {
                "()": "traowl.core.monitoring.JSONFormatter",
            },
        },
        "handlers": {
            "default": {
                "formatter": formatter,
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "traowl": {"handlers": ["default"], "level": settings.log_level, "propagate": False},
            "uvicorn": {"handlers": ["default"], "level": "INFO"},
            "sqlalchemy": {"handlers": ["default"], "level": "WARNING"},
        },
    }


def configure_logging(settings: Settings) -> None:
    logging.config.dictConfig(build_logging_config(settings))
