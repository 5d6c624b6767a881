import logging
import logging.config

from app.core.config import settings


def configure_logging(level: str = None) -> None:
    """Console logging for the application and the audit stream."""
    level = (level or settings.LOG_LEVEL).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s",
                },
                "audit": {"format": "%(asctime)s AUDIT %(message)s"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
                "audit": {
                    "class": "logging.StreamHandler",
                    "formatter": "audit",
                },
            },
            "loggers": {
                settings.AUDIT_LOGGER_NAME: {
                    "handlers": ["audit"],
                    "level": "INFO",
                    "propagate": False,
                },
                "sqlalchemy.engine": {"level": "WARNING"},
            },
            "root": {"handlers": ["console"], "level": level},
        }
    )
