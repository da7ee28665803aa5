import logging
import logging.config
from typing import Dict, Optional
from functools import lru_cache

from kolagent.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def build_logging_config(level: str) -> Dict:
    """dictConfig shared by the web app and the CLI; LOG_LEVEL governs the kolagent loggers."""
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": LOG_FORMAT
            },
            "detailed": {
                "format": DETAILED_FORMAT
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stdout"
            }
        },
        "root": {
            "level": level,
            "handlers": ["console"]
        },
        "loggers": {
            "kolagent": {
                "level": level,
                "handlers": ["console"],
                "propagate": False
            },
            # httpx logs every request at INFO
            "httpx": {
                "level": "WARNING"
            }
        }
    }


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Apply the logging config. Without an explicit level, LOG_LEVEL from settings is used."""
    logging.config.dictConfig(build_logging_config(level or get_settings().log_level))
    return logging.getLogger("kolagent")


@lru_cache()
def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance for a module."""
    if name is None:
        name = __name__
    return logging.getLogger(name)
