"""
Organization settings, registration link and super-admin tenant management.

    OrganizationPanel     rename the current organization
    RegistrationLinkPanel fetch / rotate the organization's registration token
    OrganizationsPanel    super-admin list, stats, create, delete, rotate
"""

from __future__ import annotations

import logging

from strategicflow.core.exceptions import NotFoundError, ValidationError
from strategicflow.panels.base import ConfirmDialog, Panel, PanelContext, blank
from strategicflow.services.mutation import MutationResult, validation_failure
from strategicflow.services.query_cache import exact

logger = logging.getLogger(__name__)

CURRENT_ORG_KEY = ("organizations", "current")
TOKEN_KEY = ("admin", "registration-token")
ORGS_KEY = ("super-admin", "organizations")
STATS_KEY = ("super-admin", "stats")

ROTATED_MESSAGE = "Registration link has been rotated. The old link is now invalid."
ROTATE_PROMPT = (
    "This will create a new registration link and immediately invalidate the old one. "
    "Anyone with the old link will no longer be able to register."
)


def registration_url(origin: str, token: str) -> str:
    return f"{origin.rstrip('/')}/register/{token}"


class OrganizationPanel(Panel):
    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self._rename = self.mutation(
            lambda name: self.gateway.send_json("PATCH", "/api/organizations/name", {"name": name}),
            invalidates=[exact(*CURRENT_ORG_KEY)],
            success="Organization name updated successfully",
            failure="Failed to update organization name",
        )

    def current(self) -> dict | None:
        result = self.query(
            CURRENT_ORG_KEY,
            "/api/organizations/current",
            enabled=self.capabilities.can_manage_users,
        )
        return result.data

    def rename(self, name: str) -> MutationResult:
        self.capabilities.require("can_manage_users", "rename the organization")
        if blank(name):
            return validation_failure(self.toasts, ValidationError("Please enter an organization name"))
        return self._rename.mutate(name.strip())

    def describe(self) -> dict:
        return {"organization": self.current()}


class RegistrationLinkPanel(Panel):
    """The organization's single active registration token.

    Rotation replaces the token server-side; the previous token stops
    working as soon as the rotate call succeeds.
    """

    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self.pending_rotate: ConfirmDialog | None = None
        self._rotate = self.mutation(
            lambda _v: self.gateway.send_json("POST", "/api/admin/registration-token/rotate"),
            invalidates=[exact(*TOKEN_KEY)],
            success=ROTATED_MESSAGE,
            failure="Failed to rotate registration token",
        )

    def token(self) -> str | None:
        self.capabilities.require("can_manage_users", "view the registration link")
        result = self.query(TOKEN_KEY, "/api/admin/registration-token")
        if result.status == "error":
            self.toasts.error(
                getattr(result.error, "server_message", None) or "Failed to fetch registration token"
            )
            return None
        return (result.data or {}).get("token")

    def url(self, origin: str) -> str | None:
        token = self.token()
        return registration_url(origin, token) if token else None

    def request_rotate(self) -> ConfirmDialog:
        self.capabilities.require("can_manage_users", "rotate the registration link")
        self.pending_rotate = ConfirmDialog(
            action="rotate-registration-token",
            target_id=None,
            title="Rotate Registration Link?",
            description=ROTATE_PROMPT,
            confirm_label="Rotate Link",
        )
        return self.pending_rotate

    def cancel_rotate(self) -> None:
        self.pending_rotate = None

    def confirm_rotate(self) -> MutationResult:
        if self.pending_rotate is None:
            raise NotFoundError("Rotate confirmation")
        self.pending_rotate = None
        return self._rotate.mutate(None)

    def describe(self, origin: str) -> dict:
        token = self.token()
        return {
            "token": token,
            "url": registration_url(origin, token) if token else None,
            "pendingRotate": self.pending_rotate.to_dict() if self.pending_rotate else None,
        }


def matches_search(org: dict, term: str) -> bool:
    """Case-insensitive substring match on the name or any admin email."""
    term = (term or "").lower()
    if not term:
        return True
    if term in (org.get("name") or "").lower():
        return True
    return any(term in (email or "").lower() for email in org.get("adminEmails") or [])


class OrganizationsPanel(Panel):
    """Tenant management; every operation requires a super admin."""

    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self.pending_delete: ConfirmDialog | None = None
        self._create = self.mutation(
            lambda body: self.gateway.send_json("POST", "/api/super-admin/organizations", body),
            invalidates=[exact(*ORGS_KEY), exact(*STATS_KEY)],
            success="Organization created successfully",
            failure="Failed to create organization",
        )
        self._delete = self.mutation(
            lambda org_id: self.gateway.send_json("DELETE", f"/api/super-admin/organizations/{org_id}"),
            invalidates=[exact(*ORGS_KEY), exact(*STATS_KEY)],
            success="Organization deleted successfully",
            failure="Failed to delete organization",
        )
        self._rotate = self.mutation(
            lambda org_id: self.gateway.send_json(
                "POST", f"/api/super-admin/organizations/{org_id}/rotate-token"
            ),
            invalidates=[exact(*ORGS_KEY)],
            success=ROTATED_MESSAGE,
            failure="Failed to rotate registration token",
        )

    def _require(self, action: str) -> None:
        self.capabilities.require("is_super_admin", action)

    def organizations(self, search: str = "") -> list[dict]:
        self._require("list organizations")
        rows = self.rows(ORGS_KEY, "/api/super-admin/organizations")
        return [org for org in rows if matches_search(org, search)]

    def stats(self) -> dict:
        self._require("view platform statistics")
        return self.query(STATS_KEY, "/api/super-admin/stats").data or {}

    def create(self, name: str) -> MutationResult:
        self._require("create organizations")
        if blank(name):
            return validation_failure(self.toasts, ValidationError("Please enter an organization name"))
        return self._create.mutate({"name": name.strip()})

    def request_delete(self, org_id) -> ConfirmDialog:
        self._require("delete organizations")
        org = next((o for o in self.organizations() if str(o.get("id")) == str(org_id)), None)
        if org is None:
            raise NotFoundError("Organization", org_id)
        self.pending_delete = ConfirmDialog(
            action="delete-organization",
            target_id=org_id,
            title="Delete Organization",
            description=(
                f'Are you sure you want to delete "{org.get("name")}"? All of its users '
                "and data will be removed. This action cannot be undone."
            ),
        )
        return self.pending_delete

    def cancel_delete(self) -> None:
        self.pending_delete = None

    def confirm_delete(self, org_id) -> MutationResult:
        dialog = self.pending_delete
        if dialog is None or str(dialog.target_id) != str(org_id):
            raise NotFoundError("Organization delete confirmation", org_id)
        self.pending_delete = None
        return self._delete.mutate(org_id)

    def rotate_token(self, org_id) -> MutationResult:
        self._require("rotate organization tokens")
        return self._rotate.mutate(org_id)

    def describe(self, search: str = "") -> dict:
        return {
            "stats": self.stats(),
            "organizations": self.organizations(search),
            "pendingDelete": self.pending_delete.to_dict() if self.pending_delete else None,
        }
