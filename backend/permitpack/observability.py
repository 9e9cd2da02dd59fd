from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
import json
import logging
import re
from typing import Any, Iterator, Mapping
from uuid import uuid4

REQUEST_ID_CONTEXT: ContextVar[str] = ContextVar("request_id", default="-")
EXPORT_ID_CONTEXT: ContextVar[str] = ContextVar("export_id", default="-")
_CONTEXT_FIELDS: dict[str, ContextVar[str]] = {
    "request_id": REQUEST_ID_CONTEXT,
    "export_id": EXPORT_ID_CONTEXT,
}
REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")
_HANDLER_MARKER = "_permitpack_handler"

# Project contacts and credentials are blanked by key; document bodies are
# reduced to their size so plans and cover letters never reach the log stream.
_SENSITIVE_KEY_PATTERN = re.compile(
    r"(^|_)(authorization|cookie|set_cookie|email|phone)$|password|secret|token|api_?key|access_key"
)
CONTENT_KEY_NAMES = frozenset({"content", "content_base64", "data", "narrative"})
_STRING_REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?i)\bBearer\s+[A-Za-z0-9\-._~+/]+=*"), "Bearer [REDACTED]"),
    (re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"), "[REDACTED_AWS_ACCESS_KEY]"),
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[REDACTED_EMAIL]"),
    (re.compile(r"(?:\+?1[-.\s]?)?(?:\(\d{3}\)\s?|\b\d{3}[-.\s])\d{3}[-.\s]?\d{4}\b"), "[REDACTED_PHONE]"),
)


def normalize_request_id(candidate: str | None) -> str:
    trimmed = (candidate or "").strip()
    return trimmed if REQUEST_ID_PATTERN.fullmatch(trimmed) else str(uuid4())


def set_request_id(request_id: str) -> Token[str]:
    return REQUEST_ID_CONTEXT.set(request_id)


def reset_request_id(token: Token[str]) -> None:
    REQUEST_ID_CONTEXT.reset(token)


def get_request_id() -> str:
    return REQUEST_ID_CONTEXT.get()


def new_export_id() -> str:
    return f"exp-{uuid4().hex[:12]}"


def bind_export_id(export_id: str) -> Token[str]:
    return EXPORT_ID_CONTEXT.set(export_id)


def reset_export_id(token: Token[str]) -> None:
    EXPORT_ID_CONTEXT.reset(token)


def get_export_id() -> str:
    return EXPORT_ID_CONTEXT.get()


@contextmanager
def export_scope(export_id: str | None = None) -> Iterator[str]:
    """Tag every log record emitted inside the block with one export id."""
    current = export_id or new_export_id()
    token = bind_export_id(current)
    try:
        yield current
    finally:
        reset_export_id(token)


def _is_sensitive_key(key: str) -> bool:
    return bool(_SENSITIVE_KEY_PATTERN.search(key.strip().lower().replace("-", "_")))


def _summarise_content(value: str | bytes | bytearray) -> str:
    unit = "chars" if isinstance(value, str) else "bytes"
    return f"[{len(value)} {unit}]"


def _redact_string(value: str, *, max_length: int) -> str:
    for pattern, replacement in _STRING_REDACTIONS:
        value = pattern.sub(replacement, value)
    if len(value) > max_length:
        return f"{value[:max_length]}...[truncated]"
    return value


def sanitize_for_logging(value: Any, *, max_string_length: int = 240) -> Any:
    """Redact contact details and secrets from a log payload."""
    if isinstance(value, Mapping):
        sanitized: dict[str, Any] = {}
        for key, item in value.items():
            name = str(key)
            if _is_sensitive_key(name):
                sanitized[name] = "[REDACTED]"
            elif name.lower() in CONTENT_KEY_NAMES and isinstance(item, (str, bytes, bytearray)):
                sanitized[name] = _summarise_content(item)
            else:
                sanitized[name] = sanitize_for_logging(item, max_string_length=max_string_length)
        return sanitized
    if isinstance(value, (bytes, bytearray)):
        return _summarise_content(value)
    if isinstance(value, str):
        return _redact_string(value, max_length=max_string_length)
    if isinstance(value, list):
        return [sanitize_for_logging(item, max_string_length=max_string_length) for item in value]
    if isinstance(value, (tuple, set, frozenset)):
        return tuple(sanitize_for_logging(item, max_string_length=max_string_length) for item in value)
    return value


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for name, variable in _CONTEXT_FIELDS.items():
            if not hasattr(record, name):
                setattr(record, name, variable.get())
        return True


class JsonFormatter(logging.Formatter):
    _RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name, variable in _CONTEXT_FIELDS.items():
            payload[name] = getattr(record, name, variable.get())

        extras = {key: value for key, value in vars(record).items() if key not in self._RESERVED and key not in payload}
        payload.update(sanitize_for_logging(extras))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(level_name: str) -> None:
    """Route permitpack logs to stderr as one JSON object per line.

    Safe to call more than once (app startup and CLI runs); later calls only
    adjust the level.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    if any(getattr(handler, _HANDLER_MARKER, False) for handler in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(ContextFilter())
    setattr(handler, _HANDLER_MARKER, True)
    root.addHandler(handler)
