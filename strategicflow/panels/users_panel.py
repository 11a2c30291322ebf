"""
User roles, strategy assignments and user deletion.

Assigned-strategy counting:
  - administrators count as assigned to every strategy; no join rows are read
  - everyone else counts the distinct strategy ids of their join rows, since
    the upstream list may repeat a (user, strategy) pair

Assignment management is not offered for administrators or SMEs.
"""

from __future__ import annotations

import logging

from strategicflow.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from strategicflow.panels.base import ConfirmDialog, Panel, PanelContext
from strategicflow.panels.capacity_editor import CapacityEditor
from strategicflow.services.capabilities import (
    ADMINISTRATOR,
    ASSIGNMENT_EXEMPT_ROLES,
    ROLE_LABELS,
    ROLES,
)
from strategicflow.services.mutation import MutationResult, validation_failure
from strategicflow.services.query_cache import exact, tagged

logger = logging.getLogger(__name__)

USERS_KEY = ("users",)
STRATEGIES_KEY = ("strategies",)


def assignments_key(user_id) -> tuple:
    return ("users", user_id, "strategy-assignments")


def display_name(user: dict) -> str:
    first, last = user.get("firstName"), user.get("lastName")
    if first and last:
        return f"{first} {last}"
    return user.get("email") or "Unknown User"


def unique_strategy_ids(assignments: list[dict]) -> list:
    """Distinct strategy ids in first-seen order."""
    seen = []
    for row in assignments:
        sid = row.get("strategyId")
        if sid is not None and sid not in seen:
            seen.append(sid)
    return seen


def _assignment_invalidations(variables) -> list:
    return [tagged("users"), exact(*assignments_key(variables["userId"]))]


class UsersPanel(Panel):
    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self.pending_delete: ConfirmDialog | None = None
        self._editors: dict[str, CapacityEditor] = {}

        self._role = self.mutation(
            lambda v: self.gateway.send_json("PATCH", f"/api/users/{v['userId']}", {"role": v["role"]}),
            invalidates=[tagged("users")],
            success="User role updated successfully",
            failure="Failed to update user role",
        )
        self._assign = self.mutation(
            lambda v: self.gateway.send_json(
                "POST", f"/api/users/{v['userId']}/strategy-assignments", {"strategyId": v["strategyId"]}
            ),
            invalidates=_assignment_invalidations,
            success="Priority assigned successfully",
            failure="Failed to assign priority",
        )
        self._unassign = self.mutation(
            lambda v: self.gateway.send_json(
                "DELETE", f"/api/users/{v['userId']}/strategy-assignments/{v['strategyId']}"
            ),
            invalidates=_assignment_invalidations,
            success="Priority unassigned successfully",
            failure="Failed to unassign priority",
        )
        self._delete = self.mutation(
            lambda user_id: self.gateway.send_json("DELETE", f"/api/users/{user_id}"),
            invalidates=[tagged("users")],
            success="User deleted successfully",
            failure="Failed to delete user",
        )

    # ── Reads ────────────────────────────────────────────────────────────

    def users(self) -> list[dict]:
        return self.rows(USERS_KEY, "/api/users")

    def strategies(self) -> list[dict]:
        rows = self.rows(STRATEGIES_KEY, "/api/strategies")
        rows.sort(key=lambda s: (s.get("displayOrder") is None, s.get("displayOrder") or 0))
        return rows

    def get_user(self, user_id) -> dict:
        for user in self.users():
            if str(user.get("id")) == str(user_id):
                return user
        raise NotFoundError("User", user_id)

    def assignments(self, user: dict) -> list[dict]:
        return self.rows(
            assignments_key(user["id"]),
            f"/api/users/{user['id']}/strategy-assignments",
            enabled=user.get("role") != ADMINISTRATOR,
        )

    def assigned_strategy_ids(self, user: dict) -> list:
        if user.get("role") == ADMINISTRATOR:
            return []
        return unique_strategy_ids(self.assignments(user))

    def assigned_count(self, user: dict) -> int:
        if user.get("role") == ADMINISTRATOR:
            return len(self.strategies())
        return len(self.assigned_strategy_ids(user))

    def administrators(self) -> list[dict]:
        return [u for u in self.users() if u.get("role") == ADMINISTRATOR]

    # ── Delete gating ────────────────────────────────────────────────────

    def delete_blocker(self, user: dict) -> str | None:
        """Return why *user* cannot be deleted, or None."""
        if self.capabilities.is_self(user.get("id")):
            return "delete your own account"
        if user.get("role") == ADMINISTRATOR and len(self.administrators()) <= 1:
            return "delete the last administrator"
        return None

    def row(self, user: dict) -> dict:
        role = user.get("role")
        label, description = ROLE_LABELS.get(role, (role, ""))
        strategies = self.strategies()
        manages_assignments = role not in ASSIGNMENT_EXEMPT_ROLES
        assigned = set(self.assigned_strategy_ids(user)) if manages_assignments else set()
        return {
            "id": user.get("id"),
            "name": display_name(user),
            "email": user.get("email"),
            "role": role,
            "roleLabel": label,
            "roleDescription": description,
            "assignedCount": self.assigned_count(user),
            "totalStrategies": len(strategies),
            "managesAssignments": manages_assignments,
            "assignedStrategies": [
                {"id": s["id"], "title": s.get("title"), "colorCode": s.get("colorCode")}
                for s in strategies if s["id"] in assigned
            ],
            "canDelete": self.delete_blocker(user) is None,
        }

    def describe(self) -> dict:
        return {
            "roles": [{"value": r, "label": ROLE_LABELS[r][0]} for r in ROLES],
            "users": [self.row(u) for u in self.users()],
        }

    # ── Writes ───────────────────────────────────────────────────────────

    def change_role(self, user_id, role: str) -> MutationResult:
        self.capabilities.require("can_manage_users", "change user roles")
        if role not in ROLES:
            return validation_failure(self.toasts, ValidationError(f"Unknown role: {role}"))
        return self._role.mutate({"userId": user_id, "role": role})

    def toggle_strategy(self, user_id, strategy_id) -> MutationResult:
        """Assign when absent, unassign when present."""
        self.capabilities.require("can_manage_users", "manage strategy assignments")
        user = self.get_user(user_id)
        if user.get("role") in ASSIGNMENT_EXEMPT_ROLES:
            return validation_failure(
                self.toasts,
                ValidationError(f"{ROLE_LABELS[user['role']][0]} users have no strategy assignments"),
            )
        variables = {"userId": user_id, "strategyId": strategy_id}
        if str(strategy_id) in {str(s) for s in self.assigned_strategy_ids(user)}:
            return self._unassign.mutate(variables)
        return self._assign.mutate(variables)

    def request_delete(self, user_id) -> ConfirmDialog:
        self.capabilities.require("can_manage_users", "delete users")
        user = self.get_user(user_id)
        blocker = self.delete_blocker(user)
        if blocker:
            raise PermissionDeniedError(blocker)
        name = display_name(user) if user.get("firstName") and user.get("lastName") else (
            user.get("email") or "this user"
        )
        self.pending_delete = ConfirmDialog(
            action="delete-user",
            target_id=user_id,
            title="Delete User",
            description=f"Are you sure you want to delete {name}? This action cannot be undone.",
        )
        return self.pending_delete

    def cancel_delete(self) -> None:
        self.pending_delete = None

    def confirm_delete(self, user_id) -> MutationResult:
        dialog = self.pending_delete
        if dialog is None or str(dialog.target_id) != str(user_id):
            raise NotFoundError("User delete confirmation", user_id)
        self.pending_delete = None
        # Re-check in case the list changed while the dialog was open.
        blocker = self.delete_blocker(self.get_user(user_id))
        if blocker:
            raise PermissionDeniedError(blocker)
        return self._delete.mutate(user_id)

    # ── Capacity editors ─────────────────────────────────────────────────

    def capacity_editor(self, user_id) -> CapacityEditor:
        self.capabilities.require("can_manage_users", "edit user capacity")
        key = str(user_id)
        editor = self._editors.get(key)
        if editor is None:
            editor = self._editors[key] = CapacityEditor(self.ctx, self.get_user(user_id))
        return editor

    def open_capacity(self, user_id) -> dict:
        editor = self.capacity_editor(user_id)
        return editor.open(self.get_user(user_id))
