"""
Shared pytest fixtures for the settings console test suite.

Provides:
    - app: Flask application (session-scoped)
    - fake_api: fresh in-memory upstream, wired into the console registry (autouse)
    - client: Flask test client carrying an upstream session cookie
    - anon_client: Flask test client without a session
    - ctx / console: panel context and console over the fake upstream
"""

import pytest

from strategicflow import create_app
from strategicflow.console import SettingsConsole
from strategicflow.integrations.api_gateway import ApiGateway
from strategicflow.panels.base import PanelContext
from strategicflow.services.capabilities import Capabilities
from strategicflow.services.query_cache import QueryCache
from strategicflow.services.toast import ToastLog

from tests.fake_api import FakeApi, FakeSession

UPSTREAM = "http://upstream.test"
SESSION_COOKIE = "connect.sid"


# ── App & upstream fixtures ──────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(autouse=True)
def fake_api(app):
    """Fresh upstream per test; every console built from now on talks to it."""
    api = FakeApi()
    registry = app.extensions["settings_consoles"]
    registry.clear()
    registry.session_factory = lambda: FakeSession(api)
    yield api
    registry.clear()


@pytest.fixture()
def client(app):
    """Flask test client signed in to the upstream."""
    c = app.test_client()
    c.set_cookie(SESSION_COOKIE, "sess-admin")
    c.set_cookie("csrf_token", "csrf-abc")
    return c


@pytest.fixture()
def anon_client(app):
    return app.test_client()


# ── Direct (no HTTP) fixtures ────────────────────────────────────────────


@pytest.fixture()
def gateway(fake_api):
    session = FakeSession(fake_api)
    session.cookies.set("csrf_token", "csrf-abc")
    return ApiGateway(UPSTREAM, session)


@pytest.fixture()
def admin_caps():
    return Capabilities(user_id="u-admin", role="administrator")


@pytest.fixture()
def ctx(gateway, admin_caps):
    """Panel context for an administrator."""
    return PanelContext(gateway=gateway, cache=QueryCache(), toasts=ToastLog(), capabilities=admin_caps)


@pytest.fixture()
def console(gateway):
    return SettingsConsole(gateway, export_stagger_seconds=0)
