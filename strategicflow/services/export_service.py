"""
CSV data export for strategies (priorities), projects and actions.

Each export fetches the full collection from the REST API, flattens every
field to a string (objects and arrays become compact JSON), and writes
RFC 4180 CSV. The header row is the first record's own keys, or the fixed
default header list of the entity when the collection is empty.

The finished file is handed to a download sink as a CsvExport; the HTTP
surface turns it into an attachment response.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from strategicflow.core.exceptions import ApiRequestError, NotFoundError
from strategicflow.integrations.api_gateway import ApiGateway
from strategicflow.services.toast import ToastLog

logger = logging.getLogger(__name__)

STRATEGY_HEADERS = [
    "id", "organizationId", "name", "description", "status", "progress",
    "executiveGoalTag", "color", "archived", "displayOrder", "completionDate",
    "createdBy",
]
PROJECT_HEADERS = [
    "id", "organizationId", "strategyId", "name", "description", "status",
    "progress", "startDate", "dueDate", "completionDate", "communicationUrl",
    "archived", "createdBy",
]
ACTION_HEADERS = [
    "id", "organizationId", "projectId", "description", "status", "priority",
    "startDate", "dueDate", "achievedDate", "notes", "archived", "createdBy",
]


@dataclass(frozen=True)
class ExportKind:
    """One exportable collection: URL-facing name, API path, file stem, headers."""

    name: str
    path: str
    file_stem: str
    label: str
    headers: list


EXPORT_KINDS = {
    "strategies": ExportKind("strategies", "/api/strategies", "priorities", "priorities", STRATEGY_HEADERS),
    "projects": ExportKind("projects", "/api/projects", "projects", "projects", PROJECT_HEADERS),
    "actions": ExportKind("actions", "/api/actions", "actions", "actions", ACTION_HEADERS),
}


@dataclass(frozen=True)
class CsvExport:
    filename: str
    content: str
    row_count: int

    mimetype = "text/csv; charset=utf-8"


# ── Pure transforms ──────────────────────────────────────────────────────


def flatten(value: Any) -> str:
    """Render one field as a CSV cell string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def to_csv(rows: list[dict], default_headers: list[str] | None = None) -> str:
    """Convert a list of records to CSV text.

    Fields containing a comma, quote or newline are wrapped in quotes with
    embedded quotes doubled. Returns "" when there are no rows and no
    default headers.
    """
    headers = list(rows[0].keys()) if rows else list(default_headers or [])
    if not headers:
        return ""

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([flatten(row.get(h)) for h in headers])
    return buf.getvalue()


def export_filename(kind: ExportKind, on: date | None = None) -> str:
    return f"{kind.file_stem}-export-{(on or date.today()).isoformat()}.csv"


def get_kind(name: str) -> ExportKind:
    try:
        return EXPORT_KINDS[name]
    except KeyError:
        raise NotFoundError("Export", name) from None


# ── Service ──────────────────────────────────────────────────────────────


class ExportService:
    """Fetch + convert + download, with one toast per export."""

    def __init__(
        self,
        gateway: ApiGateway,
        toasts: ToastLog,
        *,
        stagger_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.gateway = gateway
        self.toasts = toasts
        self.stagger_seconds = stagger_seconds
        self._sleep = sleep
        self._today = today

    def _fetch(self, kind: ExportKind) -> list[dict]:
        data = self.gateway.get_json(kind.path)
        if not isinstance(data, list):
            raise ApiRequestError(f"Expected a list from {kind.path}")
        return data

    def build(self, kind: ExportKind, rows: list[dict]) -> CsvExport:
        return CsvExport(
            filename=export_filename(kind, self._today()),
            content=to_csv(rows, kind.headers),
            row_count=len(rows),
        )

    def export_entity(self, name: str, download: Callable[[CsvExport], None]) -> CsvExport | None:
        """Export one collection. Returns the file, or None on failure."""
        kind = get_kind(name)
        try:
            rows = self._fetch(kind)
        except ApiRequestError as exc:
            logger.warning("Export of %s failed: %s", name, exc)
            self.toasts.error(f"Failed to export {kind.label}")
            return None

        export = self.build(kind, rows)
        download(export)
        self.toasts.success(f"Exported {export.row_count} {kind.label}")
        logger.info("Exported %d %s to %s", export.row_count, name, export.filename)
        return export

    def export_all(self, download: Callable[[CsvExport], None]) -> list[CsvExport]:
        """Export all three collections as separate files.

        All three collections are fetched before anything is downloaded; if
        any fetch fails nothing is downloaded. Downloads are staggered by
        stagger_seconds.
        """
        kinds = [EXPORT_KINDS["strategies"], EXPORT_KINDS["projects"], EXPORT_KINDS["actions"]]
        try:
            fetched = [(kind, self._fetch(kind)) for kind in kinds]
        except ApiRequestError as exc:
            logger.warning("Export of all data failed: %s", exc)
            self.toasts.error("Failed to export data")
            return []

        exports = []
        for i, (kind, rows) in enumerate(fetched):
            if i and self.stagger_seconds:
                self._sleep(self.stagger_seconds)
            export = self.build(kind, rows)
            download(export)
            exports.append(export)

        counts = [e.row_count for e in exports]
        self.toasts.success(
            f"Exported {counts[0]} priorities, {counts[1]} projects, "
            f"and {counts[2]} actions as 3 CSV files"
        )
        return exports
