"""
Tests for CSV data export: cell flattening, RFC 4180 quoting, header
selection, and the single/all export flows with their toasts.
"""

import csv
import io
from datetime import date

import pytest

from strategicflow.core.exceptions import NotFoundError
from strategicflow.services.export_service import (
    ACTION_HEADERS,
    EXPORT_KINDS,
    ExportService,
    export_filename,
    flatten,
    to_csv,
)
from strategicflow.services.toast import ToastLog


TODAY = date(2026, 3, 9)


@pytest.fixture()
def toasts():
    return ToastLog()


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def exporter(gateway, toasts, sleeps):
    return ExportService(gateway, toasts, stagger_seconds=0.1, sleep=sleeps.append, today=lambda: TODAY)


# ── Pure transforms ──────────────────────────────────────────────────────


class TestFlatten:
    def test_scalars(self):
        assert flatten(None) == ""
        assert flatten(True) == "true"
        assert flatten(False) == "false"
        assert flatten(42) == "42"
        assert flatten("plain") == "plain"

    def test_structures_become_compact_json(self):
        assert flatten({"a": 1, "b": [1, 2]}) == '{"a":1,"b":[1,2]}'
        assert flatten(["x"]) == '["x"]'


class TestToCsv:
    def test_header_from_first_record(self):
        text = to_csv([{"id": 1, "name": "A"}, {"id": 2, "name": "B", "extra": "ignored"}])
        assert text == "id,name\n1,A\n2,B\n"

    def test_quoting_and_escaping(self):
        text = to_csv([{"a": "x,y", "b": 'say "hi"', "c": "two\nlines"}])
        assert text == 'a,b,c\n"x,y","say ""hi""","two\nlines"\n'

    def test_reparse_recovers_original(self):
        tricky = 'a, "quoted"\nline'
        parsed = list(csv.reader(io.StringIO(to_csv([{"id": 1, "note": tricky}]))))
        assert parsed == [["id", "note"], ["1", tricky]]

    def test_missing_fields_are_empty(self):
        assert to_csv([{"a": 1, "b": 2}, {"a": 3}]) == "a,b\n1,2\n3,\n"

    def test_empty_uses_default_headers(self):
        assert to_csv([], ACTION_HEADERS) == ",".join(ACTION_HEADERS) + "\n"

    def test_empty_without_headers(self):
        assert to_csv([]) == ""


def test_filename_uses_file_stem():
    assert export_filename(EXPORT_KINDS["strategies"], TODAY) == "priorities-export-2026-03-09.csv"
    assert export_filename(EXPORT_KINDS["actions"], TODAY) == "actions-export-2026-03-09.csv"


# ── Single export ────────────────────────────────────────────────────────


class TestExportEntity:
    def test_projects(self, exporter, toasts):
        downloads = []
        export = exporter.export_entity("projects", downloads.append)
        assert downloads == [export]
        assert export.filename == "projects-export-2026-03-09.csv"
        assert export.row_count == 1
        header, row = export.content.splitlines()
        assert header == "id,strategyId,name,progress,archived,tags,dueDate"
        assert row == 'p1,s1,"Launch ""Pro"" tier, EU",40,false,"[""a"",""b""]",'
        assert toasts.last.description == "Exported 1 projects"

    def test_strategies_use_priorities_label(self, exporter, toasts):
        export = exporter.export_entity("strategies", lambda _e: None)
        assert export.row_count == 3
        assert toasts.last.description == "Exported 3 priorities"

    def test_empty_collection_writes_header_only(self, exporter):
        export = exporter.export_entity("actions", lambda _e: None)
        assert export.content == ",".join(ACTION_HEADERS) + "\n"
        assert export.row_count == 0

    def test_failure_downloads_nothing(self, exporter, toasts, fake_api):
        fake_api.fail_next("GET", "/api/projects", 500, "boom")
        downloads = []
        assert exporter.export_entity("projects", downloads.append) is None
        assert downloads == []
        assert toasts.last.description == "Failed to export projects"
        assert toasts.last.variant == "destructive"

    def test_unknown_entity(self, exporter):
        with pytest.raises(NotFoundError):
            exporter.export_entity("users", lambda _e: None)


# ── Export all ───────────────────────────────────────────────────────────


class TestExportAll:
    def test_three_files_staggered(self, exporter, toasts, sleeps, fake_api):
        downloads = []
        exports = exporter.export_all(downloads.append)
        assert [e.filename for e in downloads] == [
            "priorities-export-2026-03-09.csv",
            "projects-export-2026-03-09.csv",
            "actions-export-2026-03-09.csv",
        ]
        assert exports == downloads
        assert sleeps == [0.1, 0.1]
        assert toasts.last.description == "Exported 3 priorities, 1 projects, and 0 actions as 3 CSV files"

    def test_any_failure_downloads_nothing(self, exporter, toasts, sleeps, fake_api):
        fake_api.fail_next("GET", "/api/actions", 503)
        downloads = []
        assert exporter.export_all(downloads.append) == []
        assert downloads == []
        assert sleeps == []
        assert [c["path"] for c in fake_api.calls] == ["/api/strategies", "/api/projects", "/api/actions"]
        assert toasts.last.description == "Failed to export data"

    def test_no_stagger_when_zero(self, gateway, toasts, sleeps):
        service = ExportService(gateway, toasts, stagger_seconds=0, sleep=sleeps.append, today=lambda: TODAY)
        assert len(service.export_all(lambda _e: None)) == 3
        assert sleeps == []
