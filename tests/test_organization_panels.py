"""
Tests for organization settings, the registration link, self-service
registration and super-admin organization management.
"""

import pytest

from strategicflow.core.exceptions import NotFoundError, PermissionDeniedError
from strategicflow.panels.organization_panel import (
    OrganizationPanel,
    OrganizationsPanel,
    RegistrationLinkPanel,
    matches_search,
    registration_url,
)
from strategicflow.panels.registration import RegistrationPanel
from strategicflow.services.capabilities import Capabilities

ORIGIN = "https://plan.example.com/"


class TestOrganization:
    def test_rename(self, ctx, fake_api):
        panel = OrganizationPanel(ctx)
        assert panel.current()["name"] == "Acme"
        assert panel.rename("  Acme Corp ").ok
        assert fake_api.called("PATCH", "/api/organizations/name")[0]["body"] == {"name": "Acme Corp"}
        assert panel.current()["name"] == "Acme Corp"
        assert ctx.toasts.last.description == "Organization name updated successfully"

    def test_blank_name_blocked(self, ctx, fake_api):
        assert not OrganizationPanel(ctx).rename(" ").ok
        assert fake_api.called("PATCH", "/api/organizations/name") == []

    def test_view_user_cannot_rename(self, ctx):
        ctx.capabilities = Capabilities(role="view")
        with pytest.raises(PermissionDeniedError):
            OrganizationPanel(ctx).rename("X")


class TestRegistrationLink:
    def test_url(self, ctx):
        assert registration_url(ORIGIN, "abc") == "https://plan.example.com/register/abc"
        assert RegistrationLinkPanel(ctx).url(ORIGIN) == "https://plan.example.com/register/tok-initial"

    def test_rotation_invalidates_old_token(self, ctx, fake_api):
        link = RegistrationLinkPanel(ctx)
        registration = RegistrationPanel(ctx)
        old = link.token()
        assert registration.validate_token(old)

        link.request_rotate()
        assert link.confirm_rotate().ok
        new = link.token()
        assert new != old
        assert ctx.toasts.last.description == (
            "Registration link has been rotated. The old link is now invalid."
        )
        assert not registration.validate_token(old)
        assert registration.validate_token(new)

    def test_register_with_rotated_out_token_fails(self, ctx, fake_api):
        link = RegistrationLinkPanel(ctx)
        old = link.token()
        link.request_rotate()
        assert link.confirm_rotate().ok
        result = RegistrationPanel(ctx).register(
            old, email="late@example.com", password="pw", confirm_password="pw",
        )
        assert not result.ok
        assert ctx.toasts.last.description == "Invalid registration link"
        assert fake_api.registered == []

    def test_rotate_needs_confirmation(self, ctx, fake_api):
        link = RegistrationLinkPanel(ctx)
        with pytest.raises(NotFoundError):
            link.confirm_rotate()
        link.request_rotate()
        link.cancel_rotate()
        with pytest.raises(NotFoundError):
            link.confirm_rotate()
        assert fake_api.called("POST", "/api/admin/registration-token/rotate") == []

    def test_token_fetch_failure_toasts(self, ctx, fake_api):
        fake_api.fail_next("GET", "/api/admin/registration-token", status=500)
        assert RegistrationLinkPanel(ctx).token() is None
        assert ctx.toasts.last.description == "Failed to fetch registration token"


class TestRegistration:
    def test_register(self, ctx, fake_api):
        result = RegistrationPanel(ctx).register(
            "tok-initial", email=" new@example.com ", password="pw", confirm_password="pw",
            first_name="Nia", last_name="",
        )
        assert result.ok
        assert fake_api.registered[0] == {
            "email": "new@example.com", "password": "pw", "firstName": "Nia", "lastName": None,
        }
        assert ctx.toasts.last.title == "Account created!"

    def test_later_registrants_join_as_co_lead(self, ctx, fake_api):
        assert RegistrationPanel(ctx).register(
            "tok-initial", email="second@example.com", password="pw", confirm_password="pw",
        ).ok
        assert fake_api.users[-1]["role"] == "co_lead"

    def test_first_registrant_becomes_administrator(self, ctx, fake_api):
        fake_api.users = []
        assert RegistrationPanel(ctx).register(
            "tok-initial", email="founder@example.com", password="pw", confirm_password="pw",
        ).ok
        assert fake_api.users[0]["role"] == "administrator"

    def test_password_mismatch_blocked(self, ctx, fake_api):
        result = RegistrationPanel(ctx).register(
            "tok-initial", email="a@x.test", password="pw", confirm_password="pw2",
        )
        assert not result.ok
        assert ctx.toasts.last.title == "Passwords don't match"
        assert fake_api.registered == []

    def test_duplicate_email_uses_server_message(self, ctx):
        result = RegistrationPanel(ctx).register(
            "tok-initial", email="ada@example.com", password="pw", confirm_password="pw",
        )
        assert not result.ok
        assert ctx.toasts.last.title == "Registration failed"
        assert ctx.toasts.last.description == "An account with this email already exists"

    def test_blank_token_invalid_without_call(self, ctx, fake_api):
        assert not RegistrationPanel(ctx).validate_token("")
        assert fake_api.calls == []


class TestOrganizations:
    @pytest.fixture()
    def panel(self, ctx):
        ctx.capabilities = Capabilities(user_id="u-admin", role="administrator", super_admin=True)
        return OrganizationsPanel(ctx)

    def test_search_matches_name_and_admin_email(self):
        org = {"name": "Globex", "adminEmails": ["hank@globex.test"]}
        assert matches_search(org, "GLOB")
        assert matches_search(org, "hank@")
        assert not matches_search(org, "acme")
        assert matches_search(org, "")

    def test_list_and_stats(self, panel):
        assert [o["id"] for o in panel.organizations("hank")] == ["o2"]
        assert panel.stats()["organizations"] == 2

    def test_create_and_delete(self, panel, fake_api, ctx):
        assert panel.create("Initech").ok
        assert len(panel.organizations()) == 3
        assert panel.stats()["organizations"] == 3
        new_id = fake_api.organizations[-1]["id"]
        panel.request_delete(new_id)
        assert panel.confirm_delete(new_id).ok
        assert ctx.toasts.last.description == "Organization deleted successfully"
        assert len(panel.organizations()) == 2

    def test_rotate_org_token(self, panel, fake_api):
        before = fake_api.organizations[1]["registrationToken"]
        assert panel.rotate_token("o2").ok
        assert fake_api.organizations[1]["registrationToken"] != before

    def test_plain_admin_rejected(self, ctx):
        with pytest.raises(PermissionDeniedError):
            OrganizationsPanel(ctx).organizations()
