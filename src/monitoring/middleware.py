"""
Flask request hooks for DropMint.

Each request gets an id (taken from X-Request-ID or generated), which is put
in the log context and echoed in the response. On completion the request is
counted and timed under a normalized path, so token ids and collection
addresses do not explode label cardinality, and logged at a level matching
its status code.
"""

import logging
import re
import time
import uuid

from flask import Flask, Response, g, request

from monitoring.logging import clear_request_context, set_request_context
from monitoring.metrics import metrics

logger = logging.getLogger("dropmint.request")

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def setup_request_logging(app: Flask) -> None:
    """Install before/after/teardown hooks on `app`."""

    @app.before_request
    def start_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        g.start_time = time.perf_counter()
        set_request_context(request_id=g.request_id, method=request.method, path=request.path)
        metrics.increment_gauge("http_requests_active")

    @app.after_request
    def finish_request(response: Response) -> Response:
        _observe(response.status_code)
        response.headers["X-Request-ID"] = g.get("request_id", "unknown")
        return response

    @app.teardown_request
    def end_request(exception=None):
        metrics.decrement_gauge("http_requests_active")
        if exception is not None:
            logger.error(
                "Unhandled error on %s %s", request.method, request.path,
                exc_info=exception,
                extra={"request_id": g.get("request_id", "unknown")},
            )
        clear_request_context()


def _observe(status_code: int) -> None:
    elapsed_ms = (time.perf_counter() - g.get("start_time", time.perf_counter())) * 1000
    path = _normalize_path(request.path)

    metrics.increment(
        "http_requests_total",
        labels={"method": request.method, "path": path, "status": str(status_code)},
    )
    metrics.timing("http_request_duration_ms", elapsed_ms, labels={"method": request.method, "path": path})

    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(
        level,
        "%s %s -> %d", request.method, request.path, status_code,
        extra={"status_code": status_code, "duration_ms": round(elapsed_ms, 2)},
    )


def _normalize_path(path: str) -> str:
    """Replace numeric segments with :id and addresses with :address."""
    segments = []
    for segment in path.strip("/").split("/"):
        if segment.isdigit():
            segments.append(":id")
        elif _ADDRESS_RE.match(segment):
            segments.append(":address")
        else:
            segments.append(segment)
    return "/" + "/".join(segments)
