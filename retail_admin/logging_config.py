"""
Structured logging configuration.

Every record is rendered as a single JSON object so diagnostic-only
failures (mirror writes, stock adjustments, sweep errors) can be found
by field rather than by grepping free text.
"""

import json
import logging
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_service_name = "retail-admin"


class StructuredFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "@timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": _service_name,
        }

        request_id = request_id_var.get()
        if request_id:
            log_obj["trace"] = {"request_id": request_id}

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
            "module": record.module,
        }

        if record.exc_info:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        if hasattr(record, "extra_fields"):
            log_obj["custom"] = record.extra_fields

        if hasattr(record, "duration_ms"):
            log_obj["performance"] = {"duration_ms": record.duration_ms}

        return json.dumps(log_obj, default=str, ensure_ascii=False)


def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """
    Configure the root logger once for the process.

    Args:
        service_name: Name stamped on every JSON record
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit JSON records instead of plain text
    """
    global _service_name
    _service_name = service_name

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        ))
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={"extra_fields": {"service": service_name, "level": level}},
    )


def get_logger(name: str) -> logging.LoggerAdapter:
    """Get a logger that carries the current request id."""
    return RequestContextAdapter(logging.getLogger(name), {})


class RequestContextAdapter(logging.LoggerAdapter):
    """Adds the active request id to ``extra_fields``."""

    def process(self, msg, kwargs):
        request_id = request_id_var.get()
        if request_id:
            extra = kwargs.setdefault("extra", {})
            fields = dict(extra.get("extra_fields", {}))
            fields.setdefault("request_id", request_id)
            extra["extra_fields"] = fields
        return msg, kwargs


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with its duration and propagate X-Request-ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        logger = get_logger(__name__)
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={"extra_fields": {
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": (time.time() - start_time) * 1000,
                }},
            )
            raise
        finally:
            request_id_var.reset(token)

        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={"extra_fields": {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": (time.time() - start_time) * 1000,
                "request_id": request_id,
            }},
        )
        response.headers["X-Request-ID"] = request_id
        return response
