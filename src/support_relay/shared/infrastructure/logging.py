"""
Structured Logging
==================

One JSON object per log line on stdout.

Every record carries a UTC timestamp and the environment name, plus the
request's correlation id when one is known. Values under secret-looking keys
(api keys, passwords, tokens) are masked before they leave the process.

Usage:
    from support_relay.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ticket message", extra={"ticket_id": 42})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from pythonjsonlogger.json import JsonFormatter

REDACTED = "***REDACTED***"
_SENSITIVE_KEYS = ("password", "api_key", "apikey", "secret")

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "openai")


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    if any(marker in lowered for marker in _SENSITIVE_KEYS):
        return True
    # prompt_tokens / completion_tokens are counters, not credentials
    return "token" in lowered and "tokens" not in lowered


def redact(log_data: dict[str, Any]) -> None:
    """Mask string values stored under sensitive keys, in place."""
    for key, value in log_data.items():
        if isinstance(value, str) and _is_sensitive(key):
            log_data[key] = REDACTED


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter stamping timestamp, environment and correlation id."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(
        self,
        log_data: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_data, record, message_dict)

        log_data.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_data["environment"] = getattr(record, "environment", self.environment)

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id is not None:
            log_data["correlation_id"] = correlation_id

        redact(log_data)


def build_handler(level: int, environment: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        CustomJsonFormatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S", environment=environment)
    )
    return handler


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Route all logging through a single JSON stdout handler.

    Replaces any handlers already on the root logger, so calling it again
    (for example on app restart in tests) does not duplicate output.

    Args:
        level: Root level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Stamped on every record as ``environment``
    """
    numeric_level = logging.getLevelName(level.upper())

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(build_handler(numeric_level, environment))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Adds the bound context to each record without dropping per-call ``extra``."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_context_logger(name: str, correlation_id: str | None = None) -> logging.Logger | logging.LoggerAdapter:
    """
    Logger bound to a request.

    With a correlation id, returns an adapter that stamps it on every record;
    without one, the plain module logger.
    """
    logger = get_logger(name)
    if correlation_id:
        return ContextLoggerAdapter(logger, {"correlation_id": correlation_id})
    return logger


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log how long the wrapped block took, even when it raises.

    A clean exit is logged at INFO with ``outcome="ok"``. An exception
    (timeouts and cancellation included) is logged at WARNING as
    "<operation> failed" with ``outcome="error"`` and re-raised.

    Usage:
        with log_latency(logger, "knowledge_answer", user_id=user_id):
            response = await client.chat_completion(messages)
    """
    started = time.perf_counter()

    def fields(outcome: str) -> dict[str, Any]:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        return {"operation": operation, "outcome": outcome, "latency_ms": elapsed_ms, **extra_context}

    try:
        yield
    except BaseException as e:
        logger.warning(
            f"{operation} failed",
            extra={**fields("error"), "error_type": type(e).__name__},
        )
        raise
    logger.info(f"{operation} completed", extra=fields("ok"))
