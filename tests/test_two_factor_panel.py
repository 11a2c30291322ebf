"""
State-machine tests for the two-factor panel.

    loading -> off | on;  off -> setup -> on;  on -> disable -> off
Rejected codes stay in setup; a rejected password returns to on.
"""

import pytest

from strategicflow.core.exceptions import StateTransitionError
from strategicflow.panels.two_factor_panel import DISABLE, OFF, ON, SETUP, TwoFactorPanel, sanitize_code

from tests.fake_api import ACCOUNT_PASSWORD, VALID_2FA_CODE


@pytest.fixture()
def panel(ctx):
    p = TwoFactorPanel(ctx)
    p.load()
    return p


def test_sanitize_code():
    assert sanitize_code("12a3-45 678") == "123456"
    assert sanitize_code(None) == ""


class TestLoad:
    def test_off_when_disabled(self, panel):
        assert panel.state == OFF
        assert panel.masked_email == "a***@example.com"

    def test_on_when_enabled(self, ctx, fake_api):
        fake_api.two_factor["enabled"] = True
        p = TwoFactorPanel(ctx)
        assert p.load() == ON

    def test_status_call_echoes_csrf(self, panel, fake_api):
        call = fake_api.called("GET", "/api/auth/2fa/status")[0]
        assert call["headers"]["x-csrf-token"] == "csrf-abc"


class TestEnable:
    def test_full_enable_flow(self, panel, fake_api, ctx):
        assert panel.enable().ok
        assert panel.state == SETUP
        assert ctx.toasts.last.title == "Code sent"
        result = panel.verify(VALID_2FA_CODE)
        assert result.ok
        assert panel.state == ON and panel.is_enabled
        assert ctx.toasts.last.title == "2FA Enabled"
        for path in ("/api/auth/2fa/setup", "/api/auth/2fa/verify-setup"):
            assert fake_api.called("POST", path)[0]["headers"]["x-csrf-token"] == "csrf-abc"

    def test_setup_failure_stays_off(self, panel, fake_api):
        fake_api.fail_next("POST", "/api/auth/2fa/setup", status=500, error="Mail server down")
        assert not panel.enable().ok
        assert panel.state == OFF

    def test_short_code_not_sent(self, panel, fake_api, ctx):
        panel.enable()
        assert not panel.verify("12345").ok
        assert panel.state == SETUP
        assert fake_api.called("POST", "/api/auth/2fa/verify-setup") == []

    def test_rejected_code_stays_in_setup(self, panel, ctx):
        panel.enable()
        assert not panel.verify("999999").ok
        assert panel.state == SETUP
        assert ctx.toasts.last.title == "Verification failed"
        assert ctx.toasts.last.description == "Invalid or expired code"

    def test_cancel_setup(self, panel, fake_api):
        panel.enable()
        calls = len(fake_api.calls)
        assert panel.cancel() == OFF
        assert len(fake_api.calls) == calls

    def test_verify_outside_setup_rejected(self, panel):
        with pytest.raises(StateTransitionError):
            panel.verify(VALID_2FA_CODE)


class TestDisable:
    @pytest.fixture()
    def enabled(self, panel):
        panel.enable()
        panel.verify(VALID_2FA_CODE)
        return panel

    def test_disable_with_password(self, enabled, ctx):
        enabled.start_disable()
        assert enabled.state == DISABLE
        assert enabled.confirm_disable(ACCOUNT_PASSWORD).ok
        assert enabled.state == OFF and not enabled.is_enabled
        assert ctx.toasts.last.title == "2FA Disabled"

    def test_wrong_password_returns_to_on(self, enabled, ctx):
        enabled.start_disable()
        assert not enabled.confirm_disable("nope").ok
        assert enabled.state == ON
        assert enabled.password == ""
        assert ctx.toasts.last.description == "Incorrect password"

    def test_blank_password_blocked(self, enabled, fake_api):
        enabled.start_disable()
        assert not enabled.confirm_disable("").ok
        assert enabled.state == DISABLE
        assert fake_api.called("POST", "/api/auth/2fa/disable") == []

    def test_cancel_disable(self, enabled):
        enabled.start_disable()
        assert enabled.cancel() == ON

    def test_cannot_disable_when_off(self, panel):
        with pytest.raises(StateTransitionError):
            panel.start_disable()
