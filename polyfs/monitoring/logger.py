"""
Structured JSON logger for the polyfs file access layer.
"""
import logging
import json
from datetime import datetime, timezone

from polyfs.config import settings


def get_request_context():
    # Import lazily to avoid import cycles
    from polyfs.monitoring.context import get_request_context as _g
    return _g()

class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "component": getattr(record, "component", record.module),
            "request_id": getattr(record, "request_id", None),
            "provider_id": str(getattr(record, "provider_id", None)) if getattr(record, "provider_id", None) is not None else None,
            "operation": getattr(record, "operation", None),
        }
        return json.dumps(log_record)

logger = logging.getLogger("polyfs")
logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
handler = logging.StreamHandler()
handler.setFormatter(JsonFormatter())
logger.handlers = [handler]

# Helper to log with context
def log(level: str, message: str, component: str = None, request_id: str = None, provider_id: str = None, operation: str = None, **kwargs):
    # Map legacy 'module' kwarg to 'component' to avoid LogRecord collision
    if "module" in kwargs and not component:
        component = kwargs.pop("module")
    # Fill missing fields from contextvars
    ctx = get_request_context()
    if request_id is None:
        request_id = ctx.get("request_id")
    if provider_id is None:
        provider_id = ctx.get("provider_id")
    if operation is None:
        operation = ctx.get("operation")

    extra = {
        "request_id": request_id,
        "provider_id": provider_id,
        "operation": operation,
        "component": component,
        **kwargs
    }
    logger.log(getattr(logging, level.upper(), logging.INFO), message, extra=extra)
