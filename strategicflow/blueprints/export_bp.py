"""
CSV data export endpoints.

    GET /api/v1/settings/export/<entity>.csv
        entity: strategies | projects | actions
        CSV attachment named <stem>-export-<YYYY-MM-DD>.csv
    GET /api/v1/settings/export/all
        zip archive holding the three CSV files

Both need the administrator role. No temp files; content is built in memory. A failed fetch answers 502 with
the failure toast in the error details.
"""

import io
import logging
import zipfile
from datetime import date

from flask import Blueprint, Response

from strategicflow.blueprints import get_console
from strategicflow.utils.errors import E, api_error

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1/settings/export")


def _attachment(content, mimetype: str, filename: str, toasts: list) -> Response:
    resp = Response(content, mimetype=mimetype)
    resp.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    resp.headers["X-Export-Message"] = "; ".join(t["description"] for t in toasts)
    return resp


@export_bp.route("/<entity>.csv", methods=["GET"])
def export_entity(entity: str):
    console = get_console()
    console.capabilities.require("can_manage_users", "export data")
    downloads = []
    export = console.exporter().export_entity(entity, downloads.append)
    toasts = console.drain_toasts()
    if export is None:
        return api_error(E.UPSTREAM_FAILED, f"Failed to export {entity}", details={"toasts": toasts})
    return _attachment(export.content, export.mimetype, export.filename, toasts)


@export_bp.route("/all", methods=["GET"])
def export_all():
    console = get_console()
    console.capabilities.require("can_manage_users", "export data")
    downloads = []
    # Single archive; no download stagger.
    exports = console.exporter(stagger_seconds=0).export_all(downloads.append)
    toasts = console.drain_toasts()
    if not exports:
        return api_error(E.UPSTREAM_FAILED, "Failed to export data", details={"toasts": toasts})

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as archive:
        for export in downloads:
            archive.writestr(export.filename, export.content)
    logger.info("Export archive built with %d files", len(downloads))
    return _attachment(
        buf.getvalue(),
        "application/zip",
        f"strategicflow-export-{date.today().isoformat()}.zip",
        toasts,
    )
