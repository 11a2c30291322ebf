"""
Two-factor authentication (email code) state machine.

    loading ──load──▶ off | on
    off ──enable──▶ setup           (server emailed a code)
    setup ──verify(code)──▶ on      (server accepted the code)
    setup ──cancel──▶ off
    on ──start_disable──▶ disable
    disable ──confirm_disable(pw)──▶ off   (server accepted the password)
    disable ──cancel──▶ on

Failed server calls leave the machine where it was, except a rejected
disable password, which returns to "on". All calls echo the CSRF cookie.
"""

from __future__ import annotations

import logging

from strategicflow.core.exceptions import ApiRequestError, StateTransitionError, ValidationError
from strategicflow.panels.base import Panel, PanelContext, blank
from strategicflow.services.mutation import MutationResult, validation_failure
from strategicflow.services.query_cache import exact

logger = logging.getLogger(__name__)

LOADING = "loading"
OFF = "off"
SETUP = "setup"
ON = "on"
DISABLE = "disable"

CODE_LENGTH = 6
STATUS_KEY = ("auth", "2fa", "status")


def sanitize_code(raw) -> str:
    """Keep digits only, at most six of them."""
    return "".join(ch for ch in str(raw or "") if ch.isdigit())[:CODE_LENGTH]


class TwoFactorPanel(Panel):
    def __init__(self, ctx: PanelContext):
        super().__init__(ctx)
        self.state = LOADING
        self.is_enabled = False
        self.masked_email: str | None = None
        self.code = ""
        self.password = ""

        self._setup = self.mutation(
            lambda _v: self.gateway.send_json("POST", "/api/auth/2fa/setup", csrf=True),
            success="A verification code has been sent to your email.",
            success_title="Code sent",
            failure="Failed to start 2FA setup",
            on_success=lambda _v, _d: self._goto(SETUP),
        )
        self._verify = self.mutation(
            lambda code: self.gateway.send_json(
                "POST", "/api/auth/2fa/verify-setup", {"code": code}, csrf=True
            ),
            invalidates=[exact(*STATUS_KEY)],
            success="Two-factor authentication has been enabled for your account.",
            success_title="2FA Enabled",
            failure="Please check the code and try again",
            failure_title="Verification failed",
            on_success=lambda _v, _d: self._enabled(True),
        )
        self._disable = self.mutation(
            lambda password: self.gateway.send_json(
                "POST", "/api/auth/2fa/disable", {"password": password}, csrf=True
            ),
            invalidates=[exact(*STATUS_KEY)],
            success="Two-factor authentication has been disabled for your account.",
            success_title="2FA Disabled",
            failure="Failed to disable 2FA",
            on_success=lambda _v, _d: self._enabled(False),
            on_error=lambda _v, _e: self._back_to_on(),
        )

    # ── Transitions ──────────────────────────────────────────────────────

    def _goto(self, state: str) -> None:
        logger.debug("2FA %s -> %s", self.state, state)
        self.state = state

    def _expect(self, state: str, action: str) -> None:
        if self.state != state:
            raise StateTransitionError(self.state, action)

    def _enabled(self, enabled: bool) -> None:
        self.is_enabled = enabled
        self.code = ""
        self.password = ""
        self._goto(ON if enabled else OFF)

    def _back_to_on(self) -> None:
        self.password = ""
        self._goto(ON)

    def load(self) -> str:
        """Fetch the status once; later calls reuse the cached status."""
        result = self.cache.read(
            STATUS_KEY, lambda: self.gateway.get_json("/api/auth/2fa/status", csrf=True)
        )
        if result.ok and isinstance(result.data, dict):
            self.is_enabled = bool(result.data.get("enabled"))
            self.masked_email = result.data.get("email")
        elif isinstance(result.error, ApiRequestError):
            logger.warning("Failed to fetch 2FA status: %s", result.error)
        if self.state == LOADING:
            self._goto(ON if self.is_enabled else OFF)
        return self.state

    def enable(self) -> MutationResult:
        self._expect(OFF, "enable two-factor authentication")
        return self._setup.mutate(None)

    def set_code(self, raw) -> str:
        self._expect(SETUP, "enter a verification code")
        self.code = sanitize_code(raw)
        return self.code

    def verify(self, code=None) -> MutationResult:
        self._expect(SETUP, "verify a code")
        if code is not None:
            self.set_code(code)
        if len(self.code) != CODE_LENGTH:
            return validation_failure(
                self.toasts, ValidationError(f"Enter the {CODE_LENGTH}-digit code from your email")
            )
        return self._verify.mutate(self.code)

    def start_disable(self) -> None:
        self._expect(ON, "disable two-factor authentication")
        self.password = ""
        self._goto(DISABLE)

    def set_password(self, password: str) -> None:
        self._expect(DISABLE, "enter a password")
        self.password = password or ""

    def confirm_disable(self, password: str | None = None) -> MutationResult:
        self._expect(DISABLE, "confirm disabling two-factor authentication")
        if password is not None:
            self.set_password(password)
        if blank(self.password):
            return validation_failure(self.toasts, ValidationError("Please enter your password"))
        return self._disable.mutate(self.password)

    def cancel(self) -> str:
        """Abandon setup or disable without calling the server."""
        if self.state == SETUP:
            self.code = ""
            self._goto(OFF)
        elif self.state == DISABLE:
            self.password = ""
            self._goto(ON)
        else:
            raise StateTransitionError(self.state, "cancel")
        return self.state

    def describe(self) -> dict:
        return {
            "state": self.state,
            "enabled": self.is_enabled,
            "email": self.masked_email,
            "code": self.code,
            "canVerify": len(self.code) == CODE_LENGTH,
        }
