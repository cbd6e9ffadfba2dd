"""
Structured Logging Setup

Every component logs through a `shared_config.<component>` logger wrapped
in a ServiceLoggerAdapter. Records are JSON by default (one object per
line, `extra=` fields merged in) or one-line text.

Loggers are configured from the environment when modules are imported.
A host process with its own settings calls configure_logging() to apply
them to every component:

    settings = load_settings()
    configure_logging(settings.log_level, settings.log_format)
"""

import logging
import sys
import os
from datetime import datetime, timezone
from typing import Iterable
import json

# LogRecord attributes that are not user-supplied extras
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "service", "taskName"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service", "unknown"),
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        )
        return json.dumps(log_data, default=str)


class ServiceLoggerAdapter(logging.LoggerAdapter):
    """Stamps the component name on every record"""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(kwargs.get("extra") or {})
        extra["service"] = self.extra.get("service", "unknown")
        kwargs["extra"] = extra
        return msg, kwargs


LOGGER_PREFIX = "shared_config"

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Set by configure_logging(); wins over the environment for loggers
# created afterwards
_overrides: dict[str, str] = {}


def _build_handler(numeric_level: int, json_format: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    service_name: str,
    log_level: str = "INFO",
    json_format: bool = True,
) -> logging.Logger:
    """
    Set up structured logging for one component logger.

    Args:
        service_name: Component name (e.g., "config.store", "storage.file")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON records when True, one-line text otherwise

    Returns:
        The `shared_config.<service_name>` logger, with its handlers replaced
    """
    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)

    logger = logging.getLogger(f"{LOGGER_PREFIX}.{service_name}")
    logger.setLevel(numeric_level)
    logger.handlers.clear()
    logger.addHandler(_build_handler(numeric_level, json_format))

    # Don't propagate to root logger
    logger.propagate = False

    return logger


def configure_logging(log_level: str, log_format: str) -> list[str]:
    """
    Apply deployment logging settings to every shared_config logger.

    Module loggers are created at import time from the environment; this
    re-applies level and format to all of them and to any created later.

    Returns:
        Names of the loggers that were reconfigured
    """
    _overrides["level"] = log_level
    _overrides["format"] = log_format
    json_format = log_format.lower() == "json"

    prefix = f"{LOGGER_PREFIX}."
    names = sorted(
        name for name, logger in logging.Logger.manager.loggerDict.items()
        if name.startswith(prefix) and isinstance(logger, logging.Logger)
    )
    for name in names:
        setup_logging(name[len(prefix):], log_level, json_format)

    return names


def get_service_logger(service_name: str) -> ServiceLoggerAdapter:
    """
    Get a logger adapter with service context.

    Level and format come from configure_logging() when it has run,
    otherwise from SHARED_CONFIG_LOG_LEVEL / SHARED_CONFIG_LOG_FORMAT.
    """
    log_level = _overrides.get("level") or os.environ.get("SHARED_CONFIG_LOG_LEVEL", "INFO")
    log_format = _overrides.get("format") or os.environ.get("SHARED_CONFIG_LOG_FORMAT", "json")

    logger = setup_logging(service_name, log_level, log_format.lower() == "json")
    return ServiceLoggerAdapter(logger, {"service": service_name})




def log_change_batch(
    logger: logging.LoggerAdapter,
    source: str,
    changed: Iterable[str],
) -> None:
    """Log the outcome of a sync cycle"""
    keys = sorted(changed)
    if keys:
        logger.debug(
            f"{source}: {len(keys)} key(s) changed: {', '.join(keys)}",
            extra={"source": source, "changed_keys": keys},
        )
    else:
        logger.debug(f"{source}: no changes", extra={"source": source})
