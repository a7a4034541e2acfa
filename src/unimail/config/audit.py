"""Audit trail of session and API activity.

Events go to the ``unimail.audit`` logger, which stays silent until
``enable_audit_logging`` attaches a rotating JSON-lines file handler.
Event details carry fingerprints and endpoints only, never tokens.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

audit_logger = logging.getLogger("unimail.audit")
audit_logger.setLevel(logging.INFO)
audit_logger.propagate = False

AUDIT_MAX_BYTES = 10 * 1024 * 1024
AUDIT_BACKUP_COUNT = 5


class AuditEvent:
    """Audit event names."""

    SESSION_CREATE = "session.create"
    SESSION_CREATE_FAILED = "session.create.failed"
    SESSION_CACHE_HIT = "session.cache.hit"
    SESSION_OVERRIDE = "session.override"
    SESSION_EXPIRED = "session.expired"

    API_SUCCESS = "api.success"
    API_ERROR = "api.error"


class JsonLineFormatter(logging.Formatter):
    """One JSON object per audit record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "event": getattr(record, "event", None),
            "message": record.getMessage(),
            "success": getattr(record, "success", True),
            "pid": record.process,
        }
        details = getattr(record, "details", None)
        if details:
            entry["details"] = details
        return json.dumps(entry)


class PrivateRotatingFileHandler(RotatingFileHandler):
    """Rotating handler whose files are readable by the owner only."""

    def _open(self):
        stream = super()._open()
        os.chmod(self.baseFilename, 0o600)
        return stream


def default_audit_log_path(config_dir: Path) -> Path:
    """Audit log location next to the config file."""
    return config_dir / "audit.log"


def enable_audit_logging(
    log_path: Path,
    max_bytes: int = AUDIT_MAX_BYTES,
    backup_count: int = AUDIT_BACKUP_COUNT,
) -> logging.Handler:
    """Send audit events to ``log_path``, replacing any earlier destination.

    Returns the attached handler so callers can detach it.
    """
    log_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

    for old in list(audit_logger.handlers):
        audit_logger.removeHandler(old)
        old.close()

    handler = PrivateRotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(JsonLineFormatter())
    audit_logger.addHandler(handler)
    return handler


def _emit(event: str, message: str, details: dict, success: bool) -> None:
    audit_logger.info(message, extra={"event": event, "details": details, "success": success})


def log_session_event(event_type: str, fingerprint: str | None = None, error: str | None = None) -> None:
    """Record a session lifecycle event.

    Args:
        event_type: One of the ``AuditEvent.SESSION_*`` names.
        fingerprint: Credential fingerprint the session belongs to.
        error: Failure message, when the event is a failure.
    """
    details = {k: v for k, v in (("fingerprint", fingerprint), ("error", error)) if v}
    label = event_type.split(".", 1)[1].replace(".", " ")
    _emit(event_type, f"Session {label}", details, success=error is None)


def log_api_request(
    endpoint: str,
    method: str = "GET",
    success: bool = True,
    status_code: int | None = None,
    error: str | None = None,
) -> None:
    """Record one API exchange. ``endpoint`` must not carry a query string."""
    details: dict = {"endpoint": endpoint, "method": method}
    if status_code:
        details["status_code"] = status_code
    if error:
        details["error"] = error
    event = AuditEvent.API_SUCCESS if success else AuditEvent.API_ERROR
    _emit(event, f"API {method} {endpoint}", details, success)


__all__ = [
    "AuditEvent",
    "audit_logger",
    "default_audit_log_path",
    "enable_audit_logging",
    "log_session_event",
    "log_api_request",
]
