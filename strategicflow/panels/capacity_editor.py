"""
Capacity & team-tag editor for one user.

Opening the editor re-reads the user's team-tag assignments (fetching them
if the cached copy is stale) and seeds the form from that, never from
whatever the caller last rendered.

Primary tag rules while editing:
  - selecting a tag when there is no primary makes it the primary
  - deselecting the primary clears the primary
On save the effective primary is the chosen one if it is still selected,
else the first selected tag, else None.
"""

from __future__ import annotations

import logging

from strategicflow.core.exceptions import NotFoundError, StateTransitionError, ValidationError
from strategicflow.panels.base import Panel, PanelContext, blank
from strategicflow.panels.entity_panels import TEAM_TAG_ASSIGNMENTS
from strategicflow.services.mutation import validation_failure
from strategicflow.services.query_cache import exact, tagged

logger = logging.getLogger(__name__)

DEFAULT_FTE = "1.0"
DEFAULT_SERVICE_HOURS = "0"
MAX_FTE = 2
MAX_SERVICE_HOURS = 40


def team_tag_key(user_id) -> tuple:
    return ("users", user_id, "team-tags")


def _number(value, label: str, upper: float) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number") from None
    if number < 0 or number > upper:
        raise ValidationError(f"{label} must be between 0 and {upper}")
    return str(value).strip()


def _salary(value) -> int | None:
    if blank(value):
        return None
    try:
        salary = int(float(value))
    except (TypeError, ValueError):
        raise ValidationError("Salary must be a whole number") from None
    if salary < 0:
        raise ValidationError("Salary cannot be negative")
    return salary


class CapacityEditor(Panel):
    def __init__(self, ctx: PanelContext, user: dict):
        super().__init__(ctx)
        self.user_id = user["id"]
        self.is_open = False
        self.fte = user.get("fte") or DEFAULT_FTE
        self.salary = "" if user.get("salary") is None else str(user["salary"])
        self.service_delivery_hours = user.get("serviceDeliveryHours") or DEFAULT_SERVICE_HOURS
        self.selected_tag_ids: list = []
        self.primary_tag_id = None

        self._capacity = self.mutation(
            lambda body: self.gateway.send_json("PATCH", f"/api/users/{self.user_id}/capacity", body),
            invalidates=[tagged("users")],
            success="User capacity updated successfully",
            failure="Failed to update user capacity",
        )
        self._tags = self.mutation(
            lambda body: self.gateway.send_json("PUT", f"/api/users/{self.user_id}/team-tags", body),
            invalidates=[exact(*team_tag_key(self.user_id))],
            success="Team tags updated successfully",
            failure="Failed to update team tags",
        )

    # ── Data ─────────────────────────────────────────────────────────────

    def assignments(self) -> list[dict]:
        return self.rows(
            team_tag_key(self.user_id),
            f"/api/users/{self.user_id}/team-tags",
            tags=(TEAM_TAG_ASSIGNMENTS,),
        )

    def _seed(self, user: dict | None = None) -> None:
        rows = self.assignments()
        self.selected_tag_ids = [a["teamTagId"] for a in rows]
        primary = next((a for a in rows if a.get("isPrimary")), None)
        self.primary_tag_id = primary["teamTagId"] if primary else None
        if user:
            self.fte = user.get("fte") or DEFAULT_FTE
            self.salary = "" if user.get("salary") is None else str(user["salary"])
            self.service_delivery_hours = user.get("serviceDeliveryHours") or DEFAULT_SERVICE_HOURS

    # ── Popover lifecycle ────────────────────────────────────────────────

    def open(self, user: dict | None = None) -> dict:
        """Open the editor, seeding tags from a fresh read of the assignments."""
        self._seed(user)
        self.is_open = True
        return self.state()

    def close(self) -> None:
        self.is_open = False

    def _require_open(self, action: str) -> None:
        if not self.is_open:
            raise StateTransitionError("closed", action)

    # ── Edits ────────────────────────────────────────────────────────────

    def set_fields(self, *, fte=None, salary=None, service_delivery_hours=None) -> dict:
        self._require_open("edit capacity")
        if fte is not None:
            self.fte = str(fte)
        if salary is not None:
            self.salary = str(salary)
        if service_delivery_hours is not None:
            self.service_delivery_hours = str(service_delivery_hours)
        return self.state()

    def toggle_tag(self, tag_id) -> dict:
        self._require_open("toggle team tag")
        if tag_id in self.selected_tag_ids:
            self.selected_tag_ids = [t for t in self.selected_tag_ids if t != tag_id]
            if self.primary_tag_id == tag_id:
                self.primary_tag_id = None
        else:
            self.selected_tag_ids = [*self.selected_tag_ids, tag_id]
            if not self.primary_tag_id:
                self.primary_tag_id = tag_id
        return self.state()

    def set_primary(self, tag_id) -> dict:
        self._require_open("set primary team tag")
        if tag_id not in self.selected_tag_ids:
            raise NotFoundError("Selected team tag", tag_id)
        self.primary_tag_id = tag_id
        return self.state()

    def effective_primary(self):
        if self.primary_tag_id and self.primary_tag_id in self.selected_tag_ids:
            return self.primary_tag_id
        return self.selected_tag_ids[0] if self.selected_tag_ids else None

    # ── Save ─────────────────────────────────────────────────────────────

    def save(self) -> dict:
        """Send capacity and team tags as two independent writes.

        The editor closes only when both succeed; each failure raises its own
        toast and leaves the editor open.
        """
        self._require_open("save capacity")
        try:
            capacity_body = {
                "fte": _number(self.fte, "FTE", MAX_FTE),
                "salary": _salary(self.salary),
                "serviceDeliveryHours": _number(
                    self.service_delivery_hours, "Service delivery hours", MAX_SERVICE_HOURS
                ),
            }
        except ValidationError as exc:
            validation_failure(self.toasts, exc)
            return {
                "ok": False, "capacity": False, "teamTags": False,
                "error": str(exc), "state": self.state(),
            }

        capacity = self._capacity.mutate(capacity_body)
        tags = self._tags.mutate({
            "tagIds": list(self.selected_tag_ids),
            "primaryTagId": self.effective_primary(),
        })
        ok = capacity.ok and tags.ok
        if ok:
            self.close()
        else:
            logger.info("Capacity editor for user %s left open after failed save", self.user_id)
        return {"ok": ok, "capacity": capacity.ok, "teamTags": tags.ok, "state": self.state()}

    def state(self) -> dict:
        return {
            "userId": self.user_id,
            "open": self.is_open,
            "fte": self.fte,
            "salary": self.salary,
            "serviceDeliveryHours": self.service_delivery_hours,
            "selectedTagIds": list(self.selected_tag_ids),
            "primaryTagId": self.primary_tag_id,
        }
