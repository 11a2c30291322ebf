"""
Request timing middleware.

Tags every request with an id (the caller's X-Request-ID or a fresh one),
echoes it back together with X-Request-Duration-Ms, and logs the request
with its duration. Slow requests log at WARNING, 5xx at ERROR.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_SKIP_LOG = frozenset({"/api/v1/health"})

SLOW_THRESHOLD_MS = 1000


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = g.request_id

        if request.path in _SKIP_LOG:
            return response

        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 1),
            "remote_addr": request.remote_addr,
            "request_id": g.request_id,
        }
        args = (request.method, request.path, response.status_code, duration_ms)
        if response.status_code >= 500:
            logger.error("Server error: %s %s %d (%.0fms)", *args, extra=extra)
        elif duration_ms > SLOW_THRESHOLD_MS:
            logger.warning("Slow request: %s %s %d (%.0fms)", *args, extra=extra)
        else:
            logger.debug("Request: %s %s %d (%.0fms)", *args, extra=extra)
        return response
