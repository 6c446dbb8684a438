"""Logging setup for the CLI and library callers."""

import logging
import logging.config
import os
import sys
from typing import Optional

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def build_logging_config(level: str = LOG_LEVEL) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": sys.stderr,
            },
        },
        "loggers": {
            "batchdrop": {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
            # Chain clients are chatty at INFO
            "bittensor": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
            "websockets": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
        "root": {
            "level": "WARNING",
            "handlers": ["console"],
        },
    }


def setup_logging(level: Optional[str] = None):
    """Apply the logging configuration."""
    logging.config.dictConfig(build_logging_config((level or LOG_LEVEL).upper()))
