"""
Settings console: one per upstream session.

A SettingsConsole owns the gateway, query cache and toast log of one signed
-in browser session and builds every panel on top of them. Panels are
created lazily and live as long as the console.

ConsoleRegistry keeps consoles keyed by the upstream session cookie,
evicting the least recently used one when full.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Callable

import requests

from strategicflow.core.exceptions import NotFoundError
from strategicflow.integrations.api_gateway import ApiGateway
from strategicflow.panels.base import PanelContext
from strategicflow.panels.communication_templates_panel import CommunicationTemplatesPanel
from strategicflow.panels.crud_panel import CrudPanel
from strategicflow.panels.entity_panels import ENTITY_SPECS, build_panel, build_pto_panel
from strategicflow.panels.organization_panel import (
    OrganizationPanel,
    OrganizationsPanel,
    RegistrationLinkPanel,
)
from strategicflow.panels.profile_panel import PreferencesPanel, ProfilePanel
from strategicflow.panels.registration import RegistrationPanel
from strategicflow.panels.strategies_panel import FrameworkOrderPanel
from strategicflow.panels.two_factor_panel import TwoFactorPanel
from strategicflow.panels.users_panel import UsersPanel
from strategicflow.panels.workstream_panel import WorkstreamPanel
from strategicflow.services.capabilities import Capabilities
from strategicflow.services.export_service import ExportService
from strategicflow.services.query_cache import QueryCache, exact
from strategicflow.services.settings_shell import SettingsShell
from strategicflow.services.toast import ToastLog

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = ("auth", "user")

_PANELS = {
    "users": UsersPanel,
    "framework": FrameworkOrderPanel,
    "workstreams": WorkstreamPanel,
    "two-factor": TwoFactorPanel,
    "organization": OrganizationPanel,
    "registration-link": RegistrationLinkPanel,
    "organizations": OrganizationsPanel,
    "preferences": PreferencesPanel,
    "communication-templates": CommunicationTemplatesPanel,
    "registration": RegistrationPanel,
}


class SettingsConsole:
    def __init__(self, gateway: ApiGateway, *, export_stagger_seconds: float = 0.1):
        self.gateway = gateway
        self.cache = QueryCache()
        self.toasts = ToastLog()
        self.ctx = PanelContext(gateway=gateway, cache=self.cache, toasts=self.toasts)
        self.export_stagger_seconds = export_stagger_seconds
        self._panels: dict[str, object] = {}
        self._shell: SettingsShell | None = None
        self._lock = threading.RLock()

    # ── Current user & capabilities ──────────────────────────────────────

    def current_user(self) -> dict | None:
        result = self.cache.read(CURRENT_USER_KEY, lambda: self.gateway.get_json("/api/auth/user"))
        if result.ok and isinstance(result.data, dict):
            caps = Capabilities.from_user(result.data)
            if caps != self.ctx.capabilities:
                logger.info("Console capabilities now role=%s super_admin=%s", caps.role, caps.super_admin)
                self.ctx.capabilities = caps
                if self._shell is not None:
                    self._shell.capabilities = caps
            return result.data
        return None

    @property
    def capabilities(self) -> Capabilities:
        self.current_user()
        return self.ctx.capabilities

    def refresh_user(self, updated: dict | None = None) -> None:
        """Drop the cached user so the next read refetches it."""
        self.cache.invalidate(exact(*CURRENT_USER_KEY))
        if updated:
            logger.debug("Profile updated for user %s", updated.get("id"))

    # ── Shell ────────────────────────────────────────────────────────────

    @property
    def shell(self) -> SettingsShell:
        caps = self.capabilities
        with self._lock:
            if self._shell is None:
                self._shell = SettingsShell(caps)
            return self._shell

    # ── Panels ───────────────────────────────────────────────────────────

    def panel(self, name: str):
        with self._lock:
            panel = self._panels.get(name)
            if panel is None:
                if name == "profile":
                    panel = ProfilePanel(self.ctx, self.current_user, on_updated=self.refresh_user)
                elif name in _PANELS:
                    panel = _PANELS[name](self.ctx)
                else:
                    raise NotFoundError("Settings panel", name)
                self._panels[name] = panel
            return panel

    def entity(self, entity: str) -> CrudPanel:
        if entity not in ENTITY_SPECS:
            raise NotFoundError("Settings entity", entity)
        with self._lock:
            key = f"entity:{entity}"
            if key not in self._panels:
                self._panels[key] = build_panel(self.ctx, entity)
            return self._panels[key]

    def pto(self) -> CrudPanel:
        """PTO panel of the signed-in user; disabled until the user is known."""
        user = self.current_user() or {}
        user_id = user.get("id")
        with self._lock:
            key = f"pto:{user_id}"
            if key not in self._panels:
                self._panels[key] = build_pto_panel(self.ctx, user_id)
            return self._panels[key]

    def exporter(self, stagger_seconds: float | None = None) -> ExportService:
        if stagger_seconds is None:
            stagger_seconds = self.export_stagger_seconds
        return ExportService(self.gateway, self.toasts, stagger_seconds=stagger_seconds)

    def drain_toasts(self) -> list[dict]:
        return [t.to_dict() for t in self.toasts.drain()]


class ConsoleRegistry:
    """Thread-safe LRU map of session id → SettingsConsole."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: int | float = 30,
        csrf_cookie_name: str = "csrf_token",
        csrf_header_name: str = "x-csrf-token",
        max_sessions: int = 500,
        export_stagger_seconds: float = 0.1,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.csrf_cookie_name = csrf_cookie_name
        self.csrf_header_name = csrf_header_name
        self.max_sessions = max_sessions
        self.export_stagger_seconds = export_stagger_seconds
        self.session_factory = session_factory
        self._consoles: OrderedDict[str, SettingsConsole] = OrderedDict()
        self._lock = threading.Lock()

    def build(self) -> SettingsConsole:
        gateway = ApiGateway(
            self.base_url,
            self.session_factory(),
            timeout=self.timeout,
            csrf_cookie_name=self.csrf_cookie_name,
            csrf_header_name=self.csrf_header_name,
        )
        return SettingsConsole(gateway, export_stagger_seconds=self.export_stagger_seconds)

    def get(self, session_id: str, cookies: dict | None = None) -> SettingsConsole:
        """Return the console for *session_id*, creating it on first use.

        *cookies* (the browser's cookies) are copied into the console's
        upstream session so the caller's session and CSRF cookies travel
        with every upstream call.
        """
        with self._lock:
            console = self._consoles.get(session_id)
            if console is None:
                console = self._consoles[session_id] = self.build()
                logger.info("Console created (%d active)", len(self._consoles))
                while len(self._consoles) > self.max_sessions:
                    evicted, _ = self._consoles.popitem(last=False)
                    logger.info("Console evicted for session %s...", evicted[:8])
            else:
                self._consoles.move_to_end(session_id)
        if cookies:
            for name, value in cookies.items():
                console.gateway.session.cookies.set(name, value)
        return console

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._consoles.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._consoles.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._consoles)
