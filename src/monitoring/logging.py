"""
Structured logging for DropMint.

Two formatters share one view of a log record:
- JSONFormatter: one JSON object per line for log aggregation
- ConsoleFormatter: coloured single-line output for development

Both append the per-call context set through LoggingContext (or the HTTP
middleware) and any `extra=` fields passed by the caller. Before anything is
written, API keys and private keys are masked and wallet addresses are
shortened to their first and last four hex digits.
"""

import json
import logging
import os
import re
import sys
import threading
from datetime import UTC, datetime
from typing import Any

# ============================================================
# Redaction
# ============================================================

_SECRET_ASSIGNMENT = re.compile(
    r"(api[_-]?key|x-api-key|secret|password|private[_-]?key)([\"']?\s*[:=]\s*[\"']?)([^\s\"',}{]+)",
    re.IGNORECASE,
)
_BEARER = re.compile(r"(Bearer\s+)(\S+)", re.IGNORECASE)
_PRIVATE_KEY = re.compile(r"\b0x[a-fA-F0-9]{64}\b")
_ADDRESS = re.compile(r"\b0x([a-fA-F0-9]{4})[a-fA-F0-9]{32}([a-fA-F0-9]{4})\b")

# Keys whose values are never logged, compared lowercase with "-" as "_"
REDACTED_FIELDS = frozenset({
    "api_key",
    "apikey",
    "x_api_key",
    "authorization",
    "password",
    "secret",
    "private_key",
})

_MAX_DEPTH = 10

# Attributes every LogRecord carries; anything else came from `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def redact_string(text: str) -> str:
    """Mask secrets in free text and shorten any wallet address in it."""
    if not isinstance(text, str):
        return text
    text = _SECRET_ASSIGNMENT.sub(r"\1\2[REDACTED]", text)
    text = _BEARER.sub(r"\1[REDACTED]", text)
    # Private keys first: a 64-digit key must not be shortened as an address
    text = _PRIVATE_KEY.sub("[REDACTED_PRIVATE_KEY]", text)
    return _ADDRESS.sub(r"0x\1...\2", text)


def redact_sensitive_data(data: Any, depth: int = 0) -> Any:
    """Apply redaction through nested dicts and lists."""
    if depth > _MAX_DEPTH:
        return "[MAX_DEPTH_EXCEEDED]"
    if isinstance(data, dict):
        return {
            key: "[REDACTED]"
            if str(key).lower().replace("-", "_") in REDACTED_FIELDS
            else redact_sensitive_data(value, depth + 1)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item, depth + 1) for item in data]
    if isinstance(data, str):
        return redact_string(data)
    return data


# ============================================================
# Per-call Context
# ============================================================

_request_context = threading.local()


def set_request_context(**kwargs) -> None:
    """Add fields to the current thread's log context."""
    if not hasattr(_request_context, "data"):
        _request_context.data = {}
    _request_context.data.update(kwargs)


def clear_request_context() -> None:
    _request_context.data = {}


def get_request_context() -> dict[str, Any]:
    return getattr(_request_context, "data", {})


class LoggingContext:
    """
    Temporarily add fields to every log line in a block.

    Usage:
        with LoggingContext(collection=collection.address, caller=sender):
            logger.info("Minting")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self.previous_context: dict[str, Any] = {}

    def __enter__(self):
        self.previous_context = dict(get_request_context())
        set_request_context(**self.context)
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb):
        clear_request_context()
        set_request_context(**self.previous_context)
        return False


# ============================================================
# Formatters
# ============================================================

def _extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed through `extra=` on the logging call."""
    return {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record:

    {"timestamp": "...", "level": "INFO", "logger": "collection",
     "message": "Minted 3 unit(s) across 1 token id(s) on genesis",
     "collection": "0x1a2b...9f0e", "amount_paid": 3000}

    Records at WARNING and above also carry their source location.
    """

    def __init__(self, include_stack_info: bool = True, redact_sensitive: bool = True):
        super().__init__()
        self.include_stack_info = include_stack_info
        self.redact_sensitive = redact_sensitive

    def _clean(self, value: Any) -> Any:
        return redact_sensitive_data(value) if self.redact_sensitive else value

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._clean(record.getMessage()),
        }
        if record.levelno >= logging.WARNING:
            entry["location"] = {"file": record.pathname, "line": record.lineno, "function": record.funcName}
        if record.exc_info and self.include_stack_info:
            entry["exception"] = self.formatException(record.exc_info)

        context = get_request_context()
        if context:
            entry["context"] = self._clean(context)
        for key, value in _extras(record).items():
            entry[key] = self._clean(value)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured `HH:MM:SS.mmm L [logger] message (context) [extras]` lines."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        parts = [f"{color}{timestamp} {record.levelname[0]} [{record.name}]{self.RESET} {record.getMessage()}"]

        context = get_request_context()
        if context:
            parts.append(f"{color}({' '.join(f'{k}={v}' for k, v in context.items())}){self.RESET}")
        extras = _extras(record)
        if extras:
            parts.append(f"[{', '.join(f'{k}={v}' for k, v in extras.items())}]")

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ============================================================
# Configuration
# ============================================================

def configure_logging(
    level: str = "INFO",
    json_output: bool | None = None,
    log_file: str | None = None,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_output: JSON lines on stdout; defaults to LOG_FORMAT=json
        log_file: Additional file that always receives JSON lines
    """
    if json_output is None:
        json_output = os.getenv("LOG_FORMAT", "").lower() == "json"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    stdout = logging.StreamHandler(sys.stdout)
    stdout.setFormatter(JSONFormatter() if json_output else ConsoleFormatter())
    root.addHandler(stdout)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
