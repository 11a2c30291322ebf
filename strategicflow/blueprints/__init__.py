"""
StrategicFlow settings console
Blueprint helpers shared by every route module.
"""

from flask import current_app, g, jsonify, request

from strategicflow.core.exceptions import PermissionDeniedError, ValidationError
from strategicflow.utils.errors import E, api_error


def registry():
    return current_app.extensions["settings_consoles"]


def get_console(required: bool = True):
    """Resolve the settings console of the calling browser session.

    Consoles are keyed by the upstream session cookie and receive every
    cookie of the request. Without that cookie an ephemeral console is
    built (registration pages), or PermissionDeniedError is raised when
    *required*.
    """
    session_id = request.cookies.get(current_app.config["UPSTREAM_SESSION_COOKIE"])
    if session_id:
        console = registry().get(session_id, cookies=dict(request.cookies))
        console.current_user()
    elif required:
        raise PermissionDeniedError("use the settings console without signing in")
    else:
        console = registry().build()
    g.console = console
    return console


def signed_in() -> bool:
    return bool(request.cookies.get(current_app.config["UPSTREAM_SESSION_COOKIE"]))


def body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def confirmed() -> bool:
    return body().get("confirm") is True or request.args.get("confirm") == "true"


def respond(console, payload: dict | None = None, status: int = 200):
    """JSON response carrying *payload* plus every toast raised so far."""
    out = dict(payload or {})
    out["toasts"] = console.drain_toasts()
    return jsonify(out), status


def mutation_response(console, result, payload: dict | None = None):
    """Map a MutationResult to an HTTP response.

    200 on success, 409 when skipped because another call was pending,
    422 for client-side validation failures, 502 for upstream failures.
    """
    out = {"ok": result.ok, "data": result.data, **(payload or {})}
    if result.ok:
        return respond(console, out)
    out["error"] = result.message
    if result.skipped:
        status = 409
    elif isinstance(result.error, ValidationError):
        status = 422
    else:
        status = 502
    return respond(console, out, status)


def confirm_required(console, dialog):
    """409 with the dialog payload; the caller repeats with confirm=true."""
    return api_error(
        E.CONFIRM_REQUIRED,
        dialog.title,
        details={"dialog": dialog.to_dict(), "toasts": console.drain_toasts()},
    )
