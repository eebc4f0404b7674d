import json
import logging
from datetime import datetime, timezone
from logging.config import dictConfig

STARTUP_LOGGER = "upload_broker.startup"


def setup_logging(level: str = "INFO") -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": JsonFormatter,
                },
                "plain": {
                    "format": "%(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
                "startup_console": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                },
            },
            "root": {
                "level": level,
                "handlers": ["console"],
            },
            "loggers": {
                STARTUP_LOGGER: {
                    "handlers": ["startup_console"],
                    "level": "INFO",
                    "propagate": False,
                },
                # botocore logs every credential lookup at INFO
                "botocore": {"level": "WARNING"},
            },
        }
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
