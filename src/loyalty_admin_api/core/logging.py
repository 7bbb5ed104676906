"""Structured JSON logging for the loyalty admin API."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Mapping

from loguru import logger
from opentelemetry import trace


SENSITIVE_FIELDS = frozenset({"password", "token", "secret", "apiKey", "api_key", "creditCard"})
REDACTED = "[REDACTED]"

_NOISY_LOGGERS = ("uvicorn.access", "aiosqlite", "sqlalchemy.engine.Engine")


def redact(data: Any) -> Any:
    """Mask sensitive keys of a mapping. Non-mappings are returned as-is."""
    if not isinstance(data, Mapping):
        return data
    return {key: REDACTED if key in SENSITIVE_FIELDS and value else value for key, value in data.items()}


class InterceptHandler(logging.Handler):
    """Forward stdlib records (uvicorn, SQLAlchemy, alembic) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _trace_fields() -> dict[str, str]:
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return {}
    return {"trace_id": f"{context.trace_id:032x}", "span_id": f"{context.span_id:016x}"}


def _json_sink(service: Mapping[str, str]):
    def sink(message: Any) -> None:
        record = message.record
        payload: dict[str, Any] = {
            "timestamp": record["time"].isoformat(),
            "level": record["level"].name.lower(),
            "message": record["message"],
            "logger": record["name"],
            **service,
            **_trace_fields(),
        }
        payload.update(redact(record["extra"]))

        exception = record["exception"]
        if exception is not None and exception.type is not None:
            payload["exception"] = {"type": exception.type.__name__, "message": str(exception.value)}

        sys.stdout.write(json.dumps(payload, default=str) + "\n")

    return sink


def configure_logging(*, service_name: str, environment: str, version: str, level: str = "INFO") -> None:
    """Replace loguru's default sink with a JSON sink and capture stdlib logging."""

    logger.remove()
    logger.add(
        _json_sink({"service": service_name, "environment": environment, "version": version}),
        level=level.upper(),
        backtrace=False,
        diagnose=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["InterceptHandler", "REDACTED", "SENSITIVE_FIELDS", "configure_logging", "redact"]
