import json
import logging
import re
from logging.config import dictConfig
from typing import Any, Mapping

SENSITIVE_KEYS = {
    "authorization",
    "secret",
    "secret_key",
    "s3_secret_access_key",
    "x-amz-security-token",
}

_AUTH_PATTERN = re.compile(r"(?i)(AWS\s+[^:\s]+:)[A-Za-z0-9+/=]+")


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
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
                    "formatter": "json" if json_output else "plain",
                },
            },
            "root": {
                "level": "WARNING",
                "handlers": ["console"],
            },
            "loggers": {
                "bucketkit": {
                    "level": level,
                    "handlers": ["console"],
                    "propagate": False,
                }
            },
        }
    )


def mask_headers(headers: Mapping[str, Any]) -> dict[str, Any]:
    masked: dict[str, Any] = {}
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() in SENSITIVE_KEYS:
            masked[key] = "***"
        else:
            masked[key] = value
    return masked


def mask_text(text: str) -> str:
    # "AWS AKID:signature" keeps the key id, hides the signature
    return _AUTH_PATTERN.sub(lambda m: m.group(1) + "***", text)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "logger": record.name,
            "message": mask_text(record.getMessage()),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(mask_headers(record.extra))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
