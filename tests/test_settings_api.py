"""
HTTP tests for the settings console blueprints.

Covers:
  - health endpoint and request-id / duration headers
  - session cookie requirement and the error envelope
  - shell modes per role
  - confirm-gated deletes (409 then 200)
  - mutation status mapping (200 / 422 / 502)
  - CSV and zip downloads
  - two-factor flow across requests
  - public registration and template catalog
"""

import io
import zipfile

import pytest

from strategicflow import console as console_module
from tests.fake_api import ACCOUNT_PASSWORD, VALID_2FA_CODE

BASE = "/api/v1/settings"


# ── Basics ───────────────────────────────────────────────────────────────


class TestBasics:
    def test_health(self, anon_client):
        res = anon_client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_request_id_echoed(self, client):
        res = client.get(f"{BASE}/me", headers={"X-Request-ID": "req-42"})
        assert res.headers["X-Request-ID"] == "req-42"
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0

    def test_request_id_generated(self, anon_client):
        assert anon_client.get("/api/v1/health").headers["X-Request-ID"]

    def test_session_cookie_required(self, anon_client, fake_api):
        res = anon_client.get(f"{BASE}/me")
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"
        assert fake_api.calls == []

    def test_unknown_route(self, client):
        res = client.get("/api/v1/nowhere")
        assert res.status_code == 404
        assert res.get_json()["path"] == "/api/v1/nowhere"

    def test_body_must_be_object(self, client):
        res = client.post(f"{BASE}/entities/holidays", json=[1, 2])
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"


# ── Shell & capabilities ─────────────────────────────────────────────────


class TestShell:
    def test_me(self, client, fake_api):
        data = client.get(f"{BASE}/me").get_json()
        assert data["user"]["id"] == "u-admin"
        assert data["capabilities"] == {"canManageUsers": True, "isSuperAdmin": False, "canEditTactics": True}
        assert data["toasts"] == []

    def test_cookies_forwarded_upstream(self, client, fake_api):
        client.post(f"{BASE}/two-factor/enable")
        setup = fake_api.called("POST", "/api/auth/2fa/setup")[0]
        assert setup["headers"]["x-csrf-token"] == "csrf-abc"

    def test_admin_mode(self, client):
        data = client.post(f"{BASE}/shell/mode", json={"mode": "admin"}).get_json()
        assert data["mode"] == "admin"
        assert data["activeTab"] == "user-management"
        assert "organizations" not in [t["id"] for t in data["tabs"]]

    def test_view_user_has_no_admin_mode(self, client, fake_api):
        fake_api.current_user["role"] = "view"
        assert client.get(f"{BASE}/shell").get_json()["modes"] == ["user"]
        res = client.post(f"{BASE}/shell/mode", json={"mode": "admin"})
        assert res.status_code == 403
        assert client.get(f"{BASE}/users").status_code == 403

    def test_unknown_tab(self, client):
        res = client.post(f"{BASE}/shell/tab", json={"tab": "billing"})
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


# ── Entities & confirm-gated deletes ─────────────────────────────────────


class TestEntities:
    def test_list(self, client):
        data = client.get(f"{BASE}/entities/holidays").get_json()
        assert [h["name"] for h in data["items"]] == ["Christmas"]

    def test_unknown_entity(self, client):
        assert client.get(f"{BASE}/entities/widgets").status_code == 404

    def test_create_validation_is_422(self, client, fake_api):
        res = client.post(f"{BASE}/entities/holidays", json={"date": "2026-07-04", "name": " "})
        assert res.status_code == 422
        data = res.get_json()
        assert data["ok"] is False
        assert data["toasts"][0]["description"] == "Please enter a date and name for the holiday"
        assert fake_api.called("POST", "/api/holidays") == []

    def test_upstream_failure_is_502(self, client, fake_api):
        fake_api.fail_next("POST", "/api/holidays", 500, "Database unavailable")
        res = client.post(f"{BASE}/entities/holidays", json={"date": "2026-07-04", "name": "Independence"})
        assert res.status_code == 502
        data = res.get_json()
        assert data["error"] == "Database unavailable"
        assert data["toasts"][0]["variant"] == "destructive"

    def test_delete_needs_confirmation(self, client, fake_api):
        res = client.delete(f"{BASE}/entities/holidays/h1")
        assert res.status_code == 409
        data = res.get_json()
        assert data["code"] == "ERR_CONFIRM_REQUIRED"
        assert data["details"]["dialog"]["title"] == "Delete Holiday"
        assert data["details"]["dialog"]["targetId"] == "h1"
        assert fake_api.called("DELETE", "/api/holidays/h1") == []

        res = client.delete(f"{BASE}/entities/holidays/h1", json={"confirm": True})
        assert res.status_code == 200
        assert res.get_json()["toasts"][-1]["description"] == "Holiday deleted successfully"
        assert len(fake_api.called("DELETE", "/api/holidays/h1")) == 1

    def test_confirm_via_query_string(self, client, fake_api):
        assert client.delete(f"{BASE}/entities/holidays/h1?confirm=true").status_code == 200

    def test_strategy_delete_needs_confirmation(self, client, fake_api):
        assert client.delete(f"{BASE}/strategies/s1").status_code == 409
        assert fake_api.called("DELETE", "/api/strategies/s1") == []


# ── Downloads ────────────────────────────────────────────────────────────


class TestExport:
    def test_csv_attachment(self, client):
        res = client.get(f"{BASE}/export/projects.csv")
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        assert 'filename="projects-export-' in res.headers["Content-Disposition"]
        assert res.headers["X-Export-Message"] == "Exported 1 projects"
        assert res.get_data(as_text=True).startswith("id,strategyId,name")

    def test_zip_of_all(self, client):
        res = client.get(f"{BASE}/export/all")
        assert res.status_code == 200
        assert res.mimetype == "application/zip"
        names = zipfile.ZipFile(io.BytesIO(res.data)).namelist()
        assert [n.split("-export-")[0] for n in names] == ["priorities", "projects", "actions"]

    def test_failure_is_502(self, client, fake_api):
        fake_api.fail_next("GET", "/api/projects", 500)
        res = client.get(f"{BASE}/export/all")
        assert res.status_code == 502
        data = res.get_json()
        assert data["code"] == "UPSTREAM_FAILED"
        assert data["details"]["toasts"][0]["description"] == "Failed to export data"

    def test_unknown_export(self, client):
        assert client.get(f"{BASE}/export/users.csv").status_code == 404

    @pytest.mark.parametrize("path", ["/export/projects.csv", "/export/all"])
    def test_view_user_refused(self, client, fake_api, path):
        fake_api.current_user["role"] = "view"
        res = client.get(f"{BASE}{path}")
        assert res.status_code == 403
        assert fake_api.called("GET", "/api/projects") == []

    def test_zip_not_staggered(self, client, monkeypatch):
        seen = []

        class RecordingExportService(console_module.ExportService):
            def __init__(self, *args, **kwargs):
                seen.append(kwargs["stagger_seconds"])
                super().__init__(*args, **kwargs)

        monkeypatch.setattr(console_module, "ExportService", RecordingExportService)
        assert client.get(f"{BASE}/export/all").status_code == 200
        assert seen == [0]


# ── Two-factor ───────────────────────────────────────────────────────────


class TestTwoFactor:
    def test_enable_and_disable(self, client, fake_api):
        assert client.get(f"{BASE}/two-factor").get_json()["state"] == "off"

        res = client.post(f"{BASE}/two-factor/enable")
        assert res.status_code == 200
        assert res.get_json()["state"] == "setup"

        res = client.post(f"{BASE}/two-factor/verify", json={"code": "000000"})
        assert res.status_code == 502
        assert res.get_json()["state"] == "setup"

        res = client.post(f"{BASE}/two-factor/verify", json={"code": "12-34"})
        assert res.status_code == 422

        res = client.post(f"{BASE}/two-factor/verify", json={"code": VALID_2FA_CODE})
        assert res.status_code == 200
        assert res.get_json()["state"] == "on"
        assert fake_api.two_factor["enabled"] is True

        res = client.post(f"{BASE}/two-factor/disable")
        assert res.get_json()["state"] == "disable"

        res = client.post(f"{BASE}/two-factor/disable", json={"password": "wrong"})
        assert res.status_code == 502
        assert res.get_json()["state"] == "on"

        res = client.post(f"{BASE}/two-factor/disable", json={"password": ACCOUNT_PASSWORD})
        assert res.status_code == 200
        assert res.get_json()["state"] == "off"
        assert fake_api.two_factor["enabled"] is False

    def test_enable_twice_is_conflict(self, client):
        client.post(f"{BASE}/two-factor/enable")
        res = client.post(f"{BASE}/two-factor/enable")
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_cancel_setup(self, client):
        client.post(f"{BASE}/two-factor/enable")
        assert client.post(f"{BASE}/two-factor/cancel").get_json()["state"] == "off"


# ── Profile & communication templates ────────────────────────────────────


class TestProfileAndTemplates:
    def test_profile_update(self, client, fake_api):
        res = client.patch(f"{BASE}/profile", json={"firstName": "Ada", "lastName": "Byron"})
        assert res.status_code == 200
        assert client.get(f"{BASE}/profile").get_json()["lastName"] == "Byron"

    def test_theme_toggle(self, client):
        data = client.post(f"{BASE}/preferences/theme").get_json()
        assert data["darkMode"] is True
        assert data["toasts"][0]["description"] == "Switched to dark mode"

    def test_template_save(self, client, fake_api):
        res = client.patch(f"{BASE}/communication-templates/ct2",
                           json={"tacticId": "tc1", "wordUrl": "https://x/2.docx"})
        assert res.status_code == 200
        assert res.get_json()["templates"][1]["wordUrl"] == "https://x/2.docx"

    def test_template_save_without_changes(self, client):
        res = client.patch(f"{BASE}/communication-templates/ct2", json={"tacticId": "tc1"})
        assert res.status_code == 422
        assert res.get_json()["error"] == "No changes to save"


# ── Public catalog & registration ────────────────────────────────────────


class TestCatalogAndRegistration:
    def test_templates_anonymous(self, anon_client, fake_api):
        data = anon_client.get("/api/v1/templates", query_string={"category": "Daily Tasks"}).get_json()
        assert "Risk Reviews" not in data["categories"]
        assert [t["id"] for t in data["templates"]] == ["eisenhower-matrix"]
        assert fake_api.calls == []

    def test_templates_include_custom_types(self, client):
        assert "Risk Reviews" in client.get("/api/v1/templates").get_json()["categories"]

    def test_unknown_template(self, anon_client):
        res = anon_client.get("/api/v1/templates/okr")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_documentation(self, anon_client):
        sections = anon_client.get("/api/v1/documentation").get_json()["sections"]
        assert sections[0]["id"] == "overview"

    def test_token_check(self, anon_client):
        assert anon_client.get("/api/v1/register/tok-initial").get_json()["valid"] is True
        res = anon_client.get("/api/v1/register/nope")
        assert res.status_code == 404
        assert res.get_json()["valid"] is False

    def test_register(self, anon_client, fake_api):
        res = anon_client.post("/api/v1/register/tok-initial", json={
            "email": "new@example.com", "password": "pw-123456", "confirmPassword": "pw-123456",
            "firstName": "Nia",
        })
        assert res.status_code == 200
        assert fake_api.registered[0]["email"] == "new@example.com"

    def test_register_password_mismatch(self, anon_client, fake_api):
        res = anon_client.post("/api/v1/register/tok-initial", json={
            "email": "new@example.com", "password": "a", "confirmPassword": "b",
        })
        assert res.status_code == 422
        assert res.get_json()["toasts"][0]["title"] == "Passwords don't match"
        assert fake_api.registered == []
