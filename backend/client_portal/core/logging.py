"""JSON logging for the portal API.

Request lines carry whatever the route recorded on ``request.state`` through
``bind_request_context``: the signed-in contact and, for downloads, the
export kind and size.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

CONTEXT_FIELDS = ("contact_id", "client_id", "export_kind", "invoice_count")
RECORD_FIELDS = ("request_id", "path", "method", "status_code", "latency_ms") + CONTEXT_FIELDS


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({key: getattr(record, key) for key in RECORD_FIELDS if getattr(record, key, None) is not None})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


def bind_request_context(request: Request, **values: Any) -> None:
    for key, value in values.items():
        if key not in CONTEXT_FIELDS:
            raise KeyError(f"unknown request log field: {key}")
        setattr(request.state, key, value)


def request_context(request: Request) -> dict[str, Any]:
    return {key: getattr(request.state, key, None) for key in CONTEXT_FIELDS}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, logger_name: str = "request") -> None:
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        def fields(**extra: Any) -> dict[str, Any]:
            return {
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                **request_context(request),
                **extra,
            }

        try:
            response = await call_next(request)
        except Exception:
            self.logger.exception("unhandled_exception", extra=fields())
            raise

        self.logger.info("request", extra=fields(status_code=response.status_code))
        # Portal contacts hitting a disabled module end up in the security trail.
        if response.status_code == 403:
            logging.getLogger("security").info("forbidden", extra=fields(status_code=403))

        response.headers["X-Request-Id"] = request_id
        return response
