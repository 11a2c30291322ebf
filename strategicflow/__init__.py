"""
StrategicFlow settings console
Flask Application Factory.

Usage:
    from strategicflow import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, g, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from strategicflow.config import config
from strategicflow.console import ConsoleRegistry
from strategicflow.core.exceptions import (
    ApiRequestError,
    NotFoundError,
    PermissionDeniedError,
    StateTransitionError,
    ValidationError,
)
from strategicflow.middleware.logging_config import configure_logging
from strategicflow.middleware.timing import init_request_timing
from strategicflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # per-route limits only
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to the APP_ENV env var, or "development".

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()],
             supports_credentials=True)
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Console registry (one settings console per upstream session) ─────
    app.extensions["settings_consoles"] = ConsoleRegistry(
        app.config["API_BASE_URL"],
        timeout=app.config["API_TIMEOUT_SECONDS"],
        csrf_cookie_name=app.config["CSRF_COOKIE_NAME"],
        csrf_header_name=app.config["CSRF_HEADER_NAME"],
        max_sessions=app.config["CONSOLE_MAX_SESSIONS"],
        export_stagger_seconds=app.config["EXPORT_STAGGER_SECONDS"],
    )

    # ── Blueprints ───────────────────────────────────────────────────────
    from strategicflow.blueprints.catalog_bp import catalog_bp
    from strategicflow.blueprints.export_bp import export_bp
    from strategicflow.blueprints.settings_bp import settings_bp

    app.register_blueprint(settings_bp)
    app.register_blueprint(export_bp)
    app.register_blueprint(catalog_bp)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "StrategicFlow settings", "upstream": app.config["API_BASE_URL"]}

    _register_error_handlers(app)
    return app


def _toast_details() -> dict | None:
    """Toasts raised before an exception still reach the caller."""
    console = getattr(g, "console", None)
    if console is None:
        return None
    toasts = console.drain_toasts()
    return {"toasts": toasts} if toasts else None


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def validation_failed(exc):
        details = _toast_details() or {}
        if exc.details:
            details["fields"] = exc.details
        return api_error(E.VALIDATION_INVALID, str(exc), details=details or None)

    @app.errorhandler(PermissionDeniedError)
    def permission_denied(exc):
        return api_error(E.FORBIDDEN, str(exc), details=_toast_details())

    @app.errorhandler(NotFoundError)
    def not_found_error(exc):
        return api_error(E.NOT_FOUND, str(exc), details=_toast_details())

    @app.errorhandler(StateTransitionError)
    def state_conflict(exc):
        return api_error(E.CONFLICT_STATE, str(exc), details=_toast_details())

    @app.errorhandler(ApiRequestError)
    def upstream_failed(exc):
        logger.warning("Upstream failure on %s %s: %s", request.method, request.path, exc)
        return api_error(E.UPSTREAM_FAILED, exc.server_message or "Upstream request failed",
                         details=_toast_details())

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")
