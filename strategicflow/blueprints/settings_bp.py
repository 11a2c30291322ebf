"""
Settings console blueprint.

Every route resolves the caller's SettingsConsole, acts on one of its
panels and returns JSON plus the toasts the action raised. Destructive
routes need {"confirm": true}; without it they answer 409 with the confirm
dialog the console is now holding.

Endpoints (all under /api/v1/settings):
    GET    /me                                current user + capabilities
    GET    /shell   POST /shell/mode   POST /shell/tab
    GET    /users
    PATCH  /users/<uid>/role
    POST   /users/<uid>/strategies/<sid>/toggle
    DELETE /users/<uid>
    GET|PATCH /users/<uid>/capacity
    POST   /users/<uid>/capacity/tags/<tag_id>[/primary]
    POST   /users/<uid>/capacity/save|close
    GET|POST /entities/<entity>      PATCH|DELETE /entities/<entity>/<id>
    GET|POST /pto                    PATCH|DELETE /pto/<id>
    GET    /framework   POST /framework/move   POST /framework/order
    DELETE /strategies/<sid>
    GET    /workstreams POST /program/<kind>   PATCH|DELETE /program/<kind>/<id>
    POST   /program/seed
    GET    /two-factor  POST /two-factor/enable|verify|disable|cancel
    GET|PATCH /organization
    GET    /registration-link   POST /registration-link/rotate
    GET|POST /organizations   DELETE /organizations/<id>
    POST   /organizations/<id>/rotate-token
    GET|PATCH /profile
    GET    /preferences PATCH /preferences/notifications POST /preferences/theme
    GET    /communication-templates   PATCH /communication-templates/<id>
"""

import logging

from flask import Blueprint, current_app, request

from strategicflow import limiter
from strategicflow.blueprints import (
    body,
    confirm_required,
    confirmed,
    get_console,
    mutation_response,
    respond,
)
from strategicflow.core.exceptions import ValidationError
from strategicflow.panels.communication_templates_panel import URL_FIELDS
from strategicflow.panels.two_factor_panel import DISABLE, LOADING, ON

logger = logging.getLogger(__name__)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/v1/settings")


def _public_origin() -> str:
    return current_app.config.get("PUBLIC_ORIGIN") or request.host_url.rstrip("/")


# ── Generic CRUD helpers ─────────────────────────────────────────────────


def _crud_list(console, panel):
    return respond(console, panel.describe())


def _crud_create(console, panel):
    return mutation_response(console, panel.create(body()))


def _crud_update(console, panel, item_id):
    changes = {k: v for k, v in body().items() if k != "confirm"}
    panel.start_edit(item_id)
    panel.update_draft(item_id, **changes)
    return mutation_response(console, panel.save_edit(item_id))


def _crud_delete(console, panel, item_id):
    dialog = panel.request_delete(item_id)
    if not confirmed():
        return confirm_required(console, dialog)
    return mutation_response(console, panel.confirm_delete(item_id))


# ══════════════════════════════════════════════════════════════════════════
# SHELL
# ══════════════════════════════════════════════════════════════════════════


@settings_bp.route("/me", methods=["GET"])
def me():
    console = get_console()
    caps = console.capabilities
    return respond(console, {
        "user": console.current_user(),
        "capabilities": {
            "canManageUsers": caps.can_manage_users,
            "isSuperAdmin": caps.is_super_admin,
            "canEditTactics": caps.can_edit_tactics,
        },
    })


@settings_bp.route("/shell", methods=["GET"])
def shell():
    console = get_console()
    return respond(console, console.shell.describe())


@settings_bp.route("/shell/mode", methods=["POST"])
def shell_mode():
    console = get_console()
    console.shell.select_mode(body().get("mode"))
    return respond(console, console.shell.describe())


@settings_bp.route("/shell/tab", methods=["POST"])
def shell_tab():
    console = get_console()
    console.shell.select_tab(body().get("tab"))
    return respond(console, console.shell.describe())


# ══════════════════════════════════════════════════════════════════════════
# USERS & CAPACITY
# ══════════════════════════════════════════════════════════════════════════


@settings_bp.route("/users", methods=["GET"])
def list_users():
    console = get_console()
    console.capabilities.require("can_manage_users", "manage users")
    return respond(console, console.panel("users").describe())


@settings_bp.route("/users/<user_id>/role", methods=["PATCH"])
def change_role(user_id):
    console = get_console()
    result = console.panel("users").change_role(user_id, body().get("role"))
    return mutation_response(console, result)


@settings_bp.route("/users/<user_id>/strategies/<strategy_id>/toggle", methods=["POST"])
def toggle_strategy(user_id, strategy_id):
    console = get_console()
    result = console.panel("users").toggle_strategy(user_id, strategy_id)
    return mutation_response(console, result)


@settings_bp.route("/users/<user_id>", methods=["DELETE"])
def delete_user(user_id):
    console = get_console()
    return _crud_delete(console, console.panel("users"), user_id)


@settings_bp.route("/users/<user_id>/capacity", methods=["GET"])
def open_capacity(user_id):
    console = get_console()
    return respond(console, console.panel("users").open_capacity(user_id))


@settings_bp.route("/users/<user_id>/capacity", methods=["PATCH"])
def edit_capacity(user_id):
    console = get_console()
    data = body()
    editor = console.panel("users").capacity_editor(user_id)
    state = editor.set_fields(
        fte=data.get("fte"),
        salary=data.get("salary"),
        service_delivery_hours=data.get("serviceDeliveryHours"),
    )
    return respond(console, state)


@settings_bp.route("/users/<user_id>/capacity/tags/<tag_id>", methods=["POST"])
def toggle_capacity_tag(user_id, tag_id):
    console = get_console()
    editor = console.panel("users").capacity_editor(user_id)
    return respond(console, editor.toggle_tag(_match_tag(editor, tag_id)))


@settings_bp.route("/users/<user_id>/capacity/tags/<tag_id>/primary", methods=["POST"])
def primary_capacity_tag(user_id, tag_id):
    console = get_console()
    editor = console.panel("users").capacity_editor(user_id)
    return respond(console, editor.set_primary(_match_tag(editor, tag_id)))


def _match_tag(editor, tag_id):
    """URL ids are strings; reuse the upstream's id value when it is known."""
    known = [*editor.selected_tag_ids]
    known.extend(t.get("id") for t in editor.rows(("team-tags",), "/api/team-tags"))
    return next((t for t in known if str(t) == tag_id), tag_id)


@settings_bp.route("/users/<user_id>/capacity/save", methods=["POST"])
def save_capacity(user_id):
    console = get_console()
    outcome = console.panel("users").capacity_editor(user_id).save()
    if outcome["ok"]:
        status = 200
    else:
        status = 422 if "error" in outcome else 502
    return respond(console, outcome, status)


@settings_bp.route("/users/<user_id>/capacity/close", methods=["POST"])
def close_capacity(user_id):
    console = get_console()
    editor = console.panel("users").capacity_editor(user_id)
    editor.close()
    return respond(console, editor.state())


# ══════════════════════════════════════════════════════════════════════════
# SIMPLE ENTITIES & PTO
# ══════════════════════════════════════════════════════════════════════════


@settings_bp.route("/entities/<entity>", methods=["GET"])
def list_entity(entity):
    console = get_console()
    return _crud_list(console, console.entity(entity))


@settings_bp.route("/entities/<entity>", methods=["POST"])
def create_entity(entity):
    console = get_console()
    return _crud_create(console, console.entity(entity))


@settings_bp.route("/entities/<entity>/<item_id>", methods=["PATCH"])
def update_entity(entity, item_id):
    console = get_console()
    return _crud_update(console, console.entity(entity), item_id)


@settings_bp.route("/entities/<entity>/<item_id>", methods=["DELETE"])
def delete_entity(entity, item_id):
    console = get_console()
    return _crud_delete(console, console.entity(entity), item_id)


@settings_bp.route("/pto", methods=["GET"])
def list_pto():
    console = get_console()
    return _crud_list(console, console.pto())


@settings_bp.route("/pto", methods=["POST"])
def create_pto():
    console = get_console()
    return _crud_create(console, console.pto())


@settings_bp.route("/pto/<item_id>", methods=["PATCH"])
def update_pto(item_id):
    console = get_console()
    return _crud_update(console, console.pto(), item_id)


@settings_bp.route("/pto/<item_id>", methods=["DELETE"])
def delete_pto(item_id):
    console = get_console()
    return _crud_delete(console, console.pto(), item_id)


# ══════════════════════════════════════════════════════════════════════════
# FRAMEWORK ORDER
# ══════════════════════════════════════════════════════════════════════════


@settings_bp.route("/framework", methods=["GET"])
def framework():
    console = get_console()
    return respond(console, console.panel("framework").describe())


@settings_bp.route("/framework/move", methods=["POST"])
def framework_move():
    console = get_console()
    data = body()
    try:
        source, target = int(data["from"]), int(data["to"])
    except (KeyError, TypeError, ValueError):
        raise ValidationError("from and to must be positions") from None
    panel = console.panel("framework")
    panel.move(source, target)
    return respond(console, panel.describe())


@settings_bp.route("/framework/order", methods=["POST"])
def framework_save():
    console = get_console()
    panel = console.panel("framework")
    order = body().get("order")
    if order is not None:
        panel.set_order(order)
    return mutation_response(console, panel.save_order())


@settings_bp.route("/strategies/<strategy_id>", methods=["DELETE"])
def delete_strategy(strategy_id):
    console = get_console()
    panel = console.panel("framework")
    dialog = panel.request_delete(strategy_id)
    if not confirmed():
        return confirm_required(console, dialog)
    return mutation_response(console, panel.confirm_delete(strategy_id))


# ══════════════════════════════════════════════════════════════════════════
# WORKSTREAMS & PHASES
# ══════════════════════════════════════════════════════════════════════════


def _workstreams(console, strategy_id=None):
    panel = console.panel("workstreams")
    if strategy_id is not None and str(strategy_id) != str(panel.strategy_id):
        panel.select_strategy(strategy_id)
    return panel


@settings_bp.route("/workstreams", methods=["GET"])
def workstreams():
    console = get_console()
    panel = _workstreams(console, request.args.get("strategyId"))
    return respond(console, panel.describe())


@settings_bp.route("/program/seed", methods=["POST"])
def seed_program():
    console = get_console()
    panel = _workstreams(console, body().get("strategyId"))
    dialog = panel.request_seed()
    if not confirmed():
        return confirm_required(console, dialog)
    return mutation_response(console, panel.confirm_seed())


@settings_bp.route("/program/<kind>", methods=["POST"])
def create_program_item(kind):
    console = get_console()
    data = body()
    panel = _workstreams(console, data.pop("strategyId", None))
    return mutation_response(console, panel.create(kind, data))


@settings_bp.route("/program/<kind>/<item_id>", methods=["PATCH"])
def update_program_item(kind, item_id):
    console = get_console()
    panel = _workstreams(console, request.args.get("strategyId"))
    return _crud_update(console, panel.sub_panel(kind), item_id)


@settings_bp.route("/program/<kind>/<item_id>", methods=["DELETE"])
def delete_program_item(kind, item_id):
    console = get_console()
    panel = _workstreams(console, request.args.get("strategyId"))
    return _crud_delete(console, panel.sub_panel(kind), item_id)


# ══════════════════════════════════════════════════════════════════════════
# TWO-FACTOR AUTHENTICATION
# ══════════════════════════════════════════════════════════════════════════


def _two_factor(console):
    panel = console.panel("two-factor")
    if panel.state == LOADING:
        panel.load()
    return panel


@settings_bp.route("/two-factor", methods=["GET"])
def two_factor():
    console = get_console()
    panel = console.panel("two-factor")
    panel.load()
    return respond(console, panel.describe())


@settings_bp.route("/two-factor/enable", methods=["POST"])
def two_factor_enable():
    console = get_console()
    panel = _two_factor(console)
    return mutation_response(console, panel.enable(), panel.describe())


@settings_bp.route("/two-factor/verify", methods=["POST"])
@limiter.limit("10/minute")
def two_factor_verify():
    console = get_console()
    panel = _two_factor(console)
    result = panel.verify(body().get("code"))
    return mutation_response(console, result, panel.describe())


@settings_bp.route("/two-factor/disable", methods=["POST"])
@limiter.limit("10/minute")
def two_factor_disable():
    console = get_console()
    panel = _two_factor(console)
    if panel.state == ON:
        panel.start_disable()
    if panel.state == DISABLE and "password" not in body():
        return respond(console, panel.describe())
    result = panel.confirm_disable(body().get("password"))
    return mutation_response(console, result, panel.describe())


@settings_bp.route("/two-factor/cancel", methods=["POST"])
def two_factor_cancel():
    console = get_console()
    panel = _two_factor(console)
    panel.cancel()
    return respond(console, panel.describe())


# ══════════════════════════════════════════════════════════════════════════
# ORGANIZATION, REGISTRATION LINK, SUPER-ADMIN ORGANIZATIONS
# ══════════════════════════════════════════════════════════════════════════


@settings_bp.route("/organization", methods=["GET"])
def organization():
    console = get_console()
    return respond(console, console.panel("organization").describe())


@settings_bp.route("/organization", methods=["PATCH"])
def rename_organization():
    console = get_console()
    return mutation_response(console, console.panel("organization").rename(body().get("name")))


@settings_bp.route("/registration-link", methods=["GET"])
def registration_link():
    console = get_console()
    return respond(console, console.panel("registration-link").describe(_public_origin()))


@settings_bp.route("/registration-link/rotate", methods=["POST"])
def rotate_registration_link():
    console = get_console()
    panel = console.panel("registration-link")
    dialog = panel.request_rotate()
    if not confirmed():
        return confirm_required(console, dialog)
    result = panel.confirm_rotate()
    return mutation_response(console, result, panel.describe(_public_origin()) if result.ok else None)


@settings_bp.route("/organizations", methods=["GET"])
def organizations():
    console = get_console()
    return respond(console, console.panel("organizations").describe(request.args.get("search", "")))


@settings_bp.route("/organizations", methods=["POST"])
def create_organization():
    console = get_console()
    return mutation_response(console, console.panel("organizations").create(body().get("name")))


@settings_bp.route("/organizations/<org_id>", methods=["DELETE"])
def delete_organization(org_id):
    console = get_console()
    panel = console.panel("organizations")
    dialog = panel.request_delete(org_id)
    if not confirmed():
        return confirm_required(console, dialog)
    return mutation_response(console, panel.confirm_delete(org_id))


@settings_bp.route("/organizations/<org_id>/rotate-token", methods=["POST"])
def rotate_organization_token(org_id):
    console = get_console()
    return mutation_response(console, console.panel("organizations").rotate_token(org_id))


# ══════════════════════════════════════════════════════════════════════════
# PROFILE & PREFERENCES
# ══════════════════════════════════════════════════════════════════════════


@settings_bp.route("/profile", methods=["GET"])
def profile():
    console = get_console()
    return respond(console, console.panel("profile").describe())


@settings_bp.route("/profile", methods=["PATCH"])
def update_profile():
    console = get_console()
    data = body()
    result = console.panel("profile").update(
        first_name=data.get("firstName"),
        last_name=data.get("lastName"),
        timezone=data.get("timezone"),
    )
    return mutation_response(console, result)


@settings_bp.route("/preferences", methods=["GET"])
def preferences():
    console = get_console()
    return respond(console, console.panel("preferences").describe())


@settings_bp.route("/preferences/notifications", methods=["PATCH"])
def save_notifications():
    console = get_console()
    panel = console.panel("preferences")
    for channel, enabled in body().items():
        panel.set_notification(channel, enabled)
    panel.save_notifications()
    return respond(console, panel.describe())


@settings_bp.route("/preferences/theme", methods=["POST"])
def toggle_theme():
    console = get_console()
    panel = console.panel("preferences")
    panel.toggle_theme()
    return respond(console, panel.describe())


# ══════════════════════════════════════════════════════════════════════════
# COMMUNICATION TEMPLATES
# ══════════════════════════════════════════════════════════════════════════


def _communication(console, tactic_id):
    panel = console.panel("communication-templates")
    if tactic_id is not None and str(tactic_id) != str(panel.tactic_id):
        panel.select_tactic(tactic_id)
    return panel


@settings_bp.route("/communication-templates", methods=["GET"])
def communication_templates():
    console = get_console()
    panel = _communication(console, request.args.get("tacticId"))
    return respond(console, panel.describe(
        request.args.get("search", ""), request.args.get("strategyId")
    ))


@settings_bp.route("/communication-templates/<template_id>", methods=["PATCH"])
def save_communication_template(template_id):
    console = get_console()
    data = body()
    panel = _communication(console, data.get("tacticId"))
    for field in URL_FIELDS:
        if field in data:
            panel.edit(template_id, field, data[field])
    result = panel.save(template_id)
    if result is None:
        raise ValidationError("No changes to save")
    return mutation_response(console, result, {"templates": panel.templates()})
