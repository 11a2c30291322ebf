"""
Template catalog, documentation and self-service registration.

    GET  /api/v1/templates                 ?category=<name>
    GET  /api/v1/templates/<template_id>
    GET  /api/v1/documentation
    GET  /api/v1/documentation/<section_id>
    GET  /api/v1/register/<token>          token check
    POST /api/v1/register/<token>          create the account

Registration works without a signed-in session.
"""

import logging

from flask import Blueprint, jsonify, request

from strategicflow import limiter
from strategicflow.blueprints import body, get_console, mutation_response, respond, signed_in
from strategicflow.services import documentation, template_catalog

logger = logging.getLogger(__name__)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/v1")


@catalog_bp.route("/templates", methods=["GET"])
def list_templates():
    custom_types = []
    if signed_in():
        custom_types = get_console().entity("template-types").list()
    category = request.args.get("category") or template_catalog.ALL_TEMPLATES
    return jsonify({
        "category": category,
        "categories": template_catalog.categories(custom_types),
        "templates": [t.to_dict() for t in template_catalog.filter_templates(category)],
    })


@catalog_bp.route("/templates/<template_id>", methods=["GET"])
def get_template(template_id):
    return jsonify(template_catalog.get_template(template_id).to_dict())


@catalog_bp.route("/documentation", methods=["GET"])
def list_documentation():
    return jsonify({"sections": [s.to_dict() for s in documentation.SECTIONS]})


@catalog_bp.route("/documentation/<section_id>", methods=["GET"])
def get_documentation(section_id):
    return jsonify(documentation.get_section(section_id).to_dict())


@catalog_bp.route("/register/<token>", methods=["GET"])
def validate_registration(token):
    console = get_console(required=False)
    valid = console.panel("registration").validate_token(token)
    return respond(console, {"valid": valid}, 200 if valid else 404)


@catalog_bp.route("/register/<token>", methods=["POST"])
@limiter.limit("10/minute")
def register(token):
    console = get_console(required=False)
    data = body()
    result = console.panel("registration").register(
        token,
        email=data.get("email"),
        password=data.get("password"),
        confirm_password=data.get("confirmPassword"),
        first_name=data.get("firstName"),
        last_name=data.get("lastName"),
    )
    return mutation_response(console, result)
