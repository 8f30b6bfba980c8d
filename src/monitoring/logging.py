"""
Structured logging for the issuance controller.

Core modules log through ``logging.getLogger(__name__)`` and attach their
structured fields with ``extra={...}`` (issuer, block, minted, code, ...).
This module renders those records:

- JSONFormatter for log aggregation (LOG_FORMAT=json, and always for files)
- ConsoleFormatter for development
- Per-request context (request_id, method, path) set by the Flask middleware

Issuer and account identities are public and are logged verbatim; only
credentials (the API key header, bearer tokens) are masked.
"""

import json
import logging
import os
import re
import sys
import threading
from datetime import UTC, datetime
from typing import Any

REDACTED = "[REDACTED]"

# Credential-bearing keys, compared after lower-casing and "-" -> "_"
CREDENTIAL_FIELDS = frozenset({
    "api_key",
    "x_api_key",
    "authorization",
    "password",
    "secret",
    "token",
})

CREDENTIAL_PATTERNS = (
    (re.compile(r"((?:x[_-])?api[_-]?key|token|secret|password)(\s*[:=]\s*[\"']?)([^\s\"',}]+)", re.IGNORECASE), rf"\1\2{REDACTED}"),
    (re.compile(r"(Bearer\s+)(\S+)", re.IGNORECASE), rf"\1{REDACTED}"),
)

# Attributes every LogRecord carries; anything else came in through ``extra``
_STANDARD_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime"}


def _is_credential_key(key: Any) -> bool:
    return str(key).lower().replace("-", "_") in CREDENTIAL_FIELDS


def redact_text(text: str) -> str:
    """Mask credentials embedded in free text."""
    for pattern, replacement in CREDENTIAL_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def redact_sensitive_data(data: Any) -> Any:
    """Mask credential fields in nested dicts/lists and credentials in strings."""
    if isinstance(data, dict):
        return {
            key: REDACTED if _is_credential_key(key) else redact_sensitive_data(value)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    if isinstance(data, str):
        return redact_text(data)
    return data


# ============================================================
# Request Context
# ============================================================

_local = threading.local()


def set_request_context(**kwargs) -> None:
    context = getattr(_local, "context", None)
    if context is None:
        context = _local.context = {}
    context.update(kwargs)


def clear_request_context() -> None:
    _local.context = {}


def get_request_context() -> dict[str, Any]:
    return getattr(_local, "context", {})


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed through ``extra=``, in insertion order."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_RECORD_ATTRS
    }


# ============================================================
# Formatters
# ============================================================

class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Example:
        {"timestamp": "...", "level": "INFO", "logger": "issuer_registry",
         "message": "Issuer authorized", "issuer": "0xabc", "position": 3,
         "expiration_block": 864042}

    WARNING and above also carry the source location; request context goes
    under "context".
    """

    def __init__(self, redact: bool = True):
        super().__init__()
        self.redact = redact

    def format(self, record: logging.LogRecord) -> str:
        fields = record_fields(record)
        context = get_request_context()
        message = record.getMessage()
        if self.redact:
            message = redact_text(message)
            fields = redact_sensitive_data(fields)
            context = redact_sensitive_data(context)

        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        if record.levelno >= logging.WARNING:
            entry["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if context:
            entry["context"] = context
        entry.update(fields)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """``HH:MM:SS.mmm L [logger] message (context) [key=value, ...]`` with ANSI colors."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        parts = [f"{color}{clock} {record.levelname[0]} [{record.name}]{self.RESET} {redact_text(record.getMessage())}"]

        context = get_request_context()
        if context:
            parts.append(f"{color}({' '.join(f'{k}={v}' for k, v in context.items())}){self.RESET}")

        fields = redact_sensitive_data(record_fields(record))
        if fields:
            parts.append("[" + ", ".join(f"{k}={v}" for k, v in fields.items()) + "]")

        text = " ".join(parts)
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


# ============================================================
# Setup
# ============================================================

def configure_logging(
    level: str = "INFO",
    json_output: bool | None = None,
    log_file: str | None = None,
) -> None:
    """
    Install handlers on the root logger.

    Args:
        level: Level name (LOG_LEVEL)
        json_output: JSON on stdout; defaults to LOG_FORMAT == "json"
        log_file: Also append JSON lines to this file
    """
    if json_output is None:
        json_output = os.getenv("LOG_FORMAT", "").lower() == "json"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(JSONFormatter() if json_output else ConsoleFormatter())
    root.addHandler(stdout_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    # werkzeug logs every request at INFO; the middleware already does
    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggingContext:
    """
    Temporarily add fields to the request context.

    Usage:
        with LoggingContext(operation="sweep", caller="0xabc"):
            controller.deauthorize_all_expired_issuers("0xabc")
    """

    def __init__(self, **fields):
        self.fields = fields
        self._saved: dict[str, Any] = {}

    def __enter__(self):
        self._saved = dict(get_request_context())
        set_request_context(**self.fields)
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb):
        clear_request_context()
        set_request_context(**self._saved)
        return False
