"""
Role capability checks for the settings console.

The console never asks "what role is this?" inline; it asks a Capabilities
object that was built once from the current user record and handed to every
panel. Tests construct one directly.

Roles:
    administrator  full modification power
    co_lead        edits tactics and actions for assigned strategies
    view           read-only access to assigned strategies
    sme            tracked only, cannot log in
"""

from __future__ import annotations

from dataclasses import dataclass

from strategicflow.core.exceptions import PermissionDeniedError

ADMINISTRATOR = "administrator"
CO_LEAD = "co_lead"
VIEW = "view"
SME = "sme"

ROLES = (ADMINISTRATOR, CO_LEAD, VIEW, SME)

ROLE_LABELS = {
    ADMINISTRATOR: ("Administrator", "Full modification power over the app"),
    CO_LEAD: ("Co-Lead", "Can edit tactics and actions for assigned strategies"),
    VIEW: ("View", "View-only access to assigned strategies"),
    SME: ("SME (No Login)", "Subject Matter Expert - Tracking only, cannot log in"),
}

# Roles that never get per-strategy assignment rows.
ASSIGNMENT_EXEMPT_ROLES = frozenset({ADMINISTRATOR, SME})


@dataclass(frozen=True)
class Capabilities:
    user_id: str | int | None = None
    role: str = VIEW
    super_admin: bool = False

    @classmethod
    def from_user(cls, user: dict | None) -> "Capabilities":
        """Build capabilities from an /api/auth/user record."""
        if not user:
            return cls()
        return cls(
            user_id=user.get("id"),
            role=user.get("role") or VIEW,
            super_admin=bool(user.get("isSuperAdmin")),
        )

    @property
    def can_manage_users(self) -> bool:
        return self.role == ADMINISTRATOR

    @property
    def is_super_admin(self) -> bool:
        return self.super_admin

    @property
    def can_edit_tactics(self) -> bool:
        return self.role in (ADMINISTRATOR, CO_LEAD)

    def require(self, capability: str, action: str) -> None:
        """Raise PermissionDeniedError unless *capability* holds."""
        if not getattr(self, capability):
            raise PermissionDeniedError(action)

    def is_self(self, user_id) -> bool:
        return self.user_id is not None and str(self.user_id) == str(user_id)
