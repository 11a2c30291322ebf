"""
Settings shell: the two-mode tab container.

Modes are "user" and "admin". Admin mode only exists for users who can
manage users; for everybody else it is absent from describe() entirely.
The active tab per mode lives here and is never persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from strategicflow.core.exceptions import NotFoundError, PermissionDeniedError
from strategicflow.services.capabilities import Capabilities

logger = logging.getLogger(__name__)

USER_MODE = "user"
ADMIN_MODE = "admin"


@dataclass(frozen=True)
class Tab:
    id: str
    label: str
    super_admin_only: bool = False


USER_TABS = (
    Tab("profile", "Profile"),
    Tab("pto", "Time Off"),
    Tab("notifications", "Notifications"),
    Tab("appearance", "Appearance"),
)

ADMIN_TABS = (
    Tab("organization", "Organization"),
    Tab("user-management", "User Roles"),
    Tab("holidays", "Holidays"),
    Tab("framework-management", "Framework Order"),
    Tab("workstreams", "Workstreams"),
    Tab("security", "Security"),
    Tab("data", "Data Management"),
    Tab("organizations", "Organizations", super_admin_only=True),
)

DEFAULT_TAB = {USER_MODE: "profile", ADMIN_MODE: "user-management"}


class SettingsShell:
    def __init__(self, capabilities: Capabilities):
        self.capabilities = capabilities
        self.mode = USER_MODE
        self.active_tab = dict(DEFAULT_TAB)

    def modes(self) -> list[str]:
        if self.capabilities.can_manage_users:
            return [USER_MODE, ADMIN_MODE]
        return [USER_MODE]

    def tabs(self, mode: str | None = None) -> list[Tab]:
        mode = mode or self.mode
        if mode == USER_MODE:
            return list(USER_TABS)
        if mode == ADMIN_MODE:
            return [
                t for t in ADMIN_TABS
                if not t.super_admin_only or self.capabilities.is_super_admin
            ]
        raise NotFoundError("Settings mode", mode)

    def select_mode(self, mode: str) -> str:
        if mode not in (USER_MODE, ADMIN_MODE):
            raise NotFoundError("Settings mode", mode)
        if mode == ADMIN_MODE and not self.capabilities.can_manage_users:
            raise PermissionDeniedError("open administrator settings")
        self.mode = mode
        return self.mode

    def select_tab(self, tab_id: str) -> str:
        if tab_id not in {t.id for t in self.tabs()}:
            raise NotFoundError("Settings tab", tab_id)
        self.active_tab[self.mode] = tab_id
        logger.debug("Settings tab %s/%s", self.mode, tab_id)
        return tab_id

    @property
    def current_tab(self) -> str:
        return self.active_tab[self.mode]

    def describe(self) -> dict:
        return {
            "mode": self.mode,
            "modes": self.modes(),
            "activeTab": self.current_tab,
            "tabs": [{"id": t.id, "label": t.label} for t in self.tabs()],
        }
