"""
Logging configuration with request_id correlation.
Structured logging for Cloud Logging compatibility.

Never log field values, signature images or document bytes. Digests are
logged as short prefixes, client addresses as fingerprints.
"""
import hashlib
import json
import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from fieldsign.utils.datetime_utils import utc_now


def fingerprint(value: Optional[str], prefix: str = "") -> str:
    """
    Create a safe fingerprint for logging sensitive values.

    Example:
        fingerprint("203.0.113.7", "ip_") -> "ip_a1b2c3d4"
    """
    if not value:
        return f"{prefix}none" if prefix else "none"
    fp = hashlib.sha256(value.encode()).hexdigest()[:8]
    return f"{prefix}{fp}" if prefix else fp


def short_digest(digest: Optional[str]) -> str:
    """First 12 hex chars of a digest, for log lines."""
    return digest[:12] if digest else "none"


# Context variables for request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
document_id_var: ContextVar[Optional[str]] = ContextVar("document_id", default=None)
field_id_var: ContextVar[Optional[str]] = ContextVar("field_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_context(
    document_id: Optional[str] = None,
    field_id: Optional[str] = None,
) -> None:
    """Set logging context variables."""
    if document_id:
        document_id_var.set(document_id)
    if field_id:
        field_id_var.set(field_id)


def clear_context() -> None:
    """Clear all context variables."""
    request_id_var.set(None)
    document_id_var.set(None)
    field_id_var.set(None)


class CloudLoggingFormatter(logging.Formatter):
    """
    Formatter for Google Cloud Logging structured logs.
    Outputs JSON format compatible with Cloud Logging.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": utc_now().isoformat().replace("+00:00", "Z"),
            "logger": record.name,
            "logging.googleapis.com/sourceLocation": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        request_id = request_id_var.get()
        if request_id:
            log_entry["logging.googleapis.com/trace"] = request_id
            log_entry["request_id"] = request_id

        document_id = document_id_var.get()
        if document_id:
            log_entry["document_id"] = document_id

        field_id = field_id_var.get()
        if field_id:
            log_entry["field_id"] = field_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_entry["data"] = record.extra_data

        return json.dumps(log_entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for local development."""

    def format(self, record: logging.LogRecord) -> str:
        request_id = request_id_var.get()
        document_id = document_id_var.get()
        field_id = field_id_var.get()

        prefix = f"[{record.levelname}] [{request_id[:8] if request_id else '-'}]"
        if document_id:
            prefix += f" [doc:{document_id[:8]}]"
        if field_id:
            prefix += f" [field:{field_id[:8]}]"

        message = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(environment: str = "development", level: int = logging.INFO) -> None:
    """
    Configure logging based on environment.
    - production: JSON structured logs for Cloud Logging
    - development: Human-readable format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if environment == "production":
        handler.setFormatter(CloudLoggingFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that assigns a unique request_id to each request.
    Also extracts document_id / field_id from the path if present.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_id(request_id)

        path_parts = request.url.path.split("/")
        for i, part in enumerate(path_parts):
            if i + 1 >= len(path_parts) or not path_parts[i + 1]:
                continue
            if part == "documents":
                document_id_var.set(path_parts[i + 1])
            elif part == "fields":
                field_id_var.set(path_parts[i + 1])

        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)
