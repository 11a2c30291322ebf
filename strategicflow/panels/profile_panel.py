"""
Profile, notification and appearance settings of the signed-in user.

Profile edits go to the API. Notification toggles and the theme are
local to the console.
"""

from __future__ import annotations

import logging
from typing import Callable

from strategicflow.core.exceptions import NotFoundError, ValidationError
from strategicflow.panels.base import Panel, PanelContext, clean
from strategicflow.services.mutation import MutationResult, validation_failure
from strategicflow.services.query_cache import tagged

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Chicago"
TIMEZONES = {
    "America/New_York": "Eastern Time (EST/EDT)",
    "America/Chicago": "Central Time (CST/CDT)",
    "America/Denver": "Mountain Time (MST/MDT)",
    "America/Phoenix": "Mountain Time - Arizona (MST)",
    "America/Los_Angeles": "Pacific Time (PST/PDT)",
    "America/Anchorage": "Alaska Time (AKST/AKDT)",
    "Pacific/Honolulu": "Hawaii-Aleutian Time (HST)",
}

NOTIFICATION_DEFAULTS = {
    "email": True,
    "push": False,
    "strategic": True,
    "tactical": True,
    "deadlines": True,
}


class ProfilePanel(Panel):
    """Edits name and timezone; email and role are sent back unchanged."""

    def __init__(
        self,
        ctx: PanelContext,
        current_user: Callable[[], dict | None],
        on_updated: Callable[[dict], None] | None = None,
    ):
        super().__init__(ctx)
        self._current_user = current_user
        self._update = self.mutation(
            lambda body: self.gateway.send_json("PATCH", f"/api/users/{body['id']}", body),
            invalidates=[tagged("users")],
            success="Profile updated successfully",
            failure="Failed to update profile",
            on_success=lambda _v, data: on_updated(data) if on_updated and isinstance(data, dict) else None,
        )

    def update(self, *, first_name=None, last_name=None, timezone=None) -> MutationResult:
        user = self._current_user()
        if not user or not user.get("id"):
            return validation_failure(
                self.toasts, ValidationError("User ID not found. Please refresh the page.")
            )
        timezone = clean(timezone) or user.get("timezone") or DEFAULT_TIMEZONE
        if timezone not in TIMEZONES:
            return validation_failure(self.toasts, ValidationError(f"Unknown timezone: {timezone}"))
        body = {
            "id": user["id"],
            "firstName": clean(first_name),
            "lastName": clean(last_name),
            "email": user.get("email"),
            "role": user.get("role"),
            "timezone": timezone,
        }
        return self._update.mutate(body)

    def describe(self) -> dict:
        user = self._current_user() or {}
        return {
            "firstName": user.get("firstName"),
            "lastName": user.get("lastName"),
            "email": user.get("email"),
            "role": user.get("role"),
            "timezone": user.get("timezone") or DEFAULT_TIMEZONE,
            "timezones": [{"value": k, "label": v} for k, v in TIMEZONES.items()],
        }


class PreferencesPanel(Panel):
    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self.notifications = dict(NOTIFICATION_DEFAULTS)
        self.dark_mode = False

    def set_notification(self, channel: str, enabled: bool) -> dict:
        if channel not in self.notifications:
            raise NotFoundError("Notification setting", channel)
        self.notifications[channel] = bool(enabled)
        return dict(self.notifications)

    def save_notifications(self) -> dict:
        self.toasts.success("Notification settings saved")
        return dict(self.notifications)

    def toggle_theme(self) -> bool:
        self.dark_mode = not self.dark_mode
        self.toasts.push("Theme Updated", f"Switched to {'dark' if self.dark_mode else 'light'} mode")
        return self.dark_mode

    def describe(self) -> dict:
        return {"notifications": dict(self.notifications), "darkMode": self.dark_mode}
