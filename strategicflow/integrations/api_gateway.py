"""
Strategic-planning REST API gateway.

Every panel talks to the upstream API through this class. It wraps a
method + path + JSON body into a request on a shared requests.Session so
the caller's session cookie travels with every call, and echoes the CSRF
cookie as a header on calls that ask for it.

No retries and no explicit circuit breaking: a failed call surfaces once
as ApiRequestError and the panel that issued it turns it into a toast.

Testability: pass a fake `session` to ApiGateway() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from strategicflow.core.exceptions import ApiRequestError

logger = logging.getLogger(__name__)

# ── Defaults ───────────────────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 30
DEFAULT_CSRF_COOKIE = "csrf_token"
DEFAULT_CSRF_HEADER = "x-csrf-token"


def _extract_server_message(body: Any) -> str | None:
    """Return the upstream's human-readable error field, if any."""
    if isinstance(body, dict):
        for field in ("error", "message"):
            value = body.get(field)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class ApiGateway:
    """Strategic-planning REST API gateway.

    Usage:
        gateway = ApiGateway("https://plan.example.com")
        users = gateway.get_json("/api/users")
        gateway.send_json("PATCH", f"/api/users/{user_id}", {"role": "view"})
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        *,
        timeout: int | float = _DEFAULT_TIMEOUT,
        csrf_cookie_name: str = DEFAULT_CSRF_COOKIE,
        csrf_header_name: str = DEFAULT_CSRF_HEADER,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.csrf_cookie_name = csrf_cookie_name
        self.csrf_header_name = csrf_header_name
        # Inject custom session for testing; create real one lazily otherwise.
        self._session: requests.Session | None = session

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def csrf_token(self) -> str | None:
        """Return the CSRF token currently held in the session's cookie jar."""
        return self.session.cookies.get(self.csrf_cookie_name)

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    # ── Core request dispatcher ───────────────────────────────────────────────

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict | list | None = None,
        params: dict | None = None,
        csrf: bool = False,
    ) -> requests.Response:
        """Execute one request and return the response.

        Args:
            method:    HTTP verb ("GET", "POST", "PATCH", "PUT", "DELETE").
            path:      API path such as "/api/users/7", or a full URL.
            json_body: JSON-serialisable request body (optional).
            params:    URL query params (optional).
            csrf:      Echo the CSRF cookie as the CSRF header.

        Returns:
            The 2xx requests.Response.

        Raises:
            ApiRequestError: non-2xx status or network-level failure.
        """
        method = method.upper()
        headers = {"Accept": "application/json"}
        kwargs: dict[str, Any] = {"headers": headers, "timeout": self.timeout}
        if json_body is not None:
            headers["Content-Type"] = "application/json"
            kwargs["json"] = json_body
        if params:
            kwargs["params"] = params
        if csrf:
            token = self.csrf_token()
            if token:
                headers[self.csrf_header_name] = token

        url = self.url_for(path)
        t0 = time.perf_counter()
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.Timeout as exc:
            logger.warning("API request timed out: %s %s", method, path)
            raise ApiRequestError(f"Request timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            logger.warning("API network error: %s %s error=%s", method, path, exc)
            raise ApiRequestError(str(exc)[:500]) from exc

        duration_ms = (time.perf_counter() - t0) * 1000
        if not resp.ok:
            try:
                body = resp.json() if resp.content else None
            except ValueError:
                body = None
            server_message = _extract_server_message(body)
            logger.warning(
                "API request failed: %s %s status=%d (%.0fms)",
                method, path, resp.status_code, duration_ms,
            )
            raise ApiRequestError(
                f"{resp.status_code}: {server_message or resp.text[:500]}",
                status_code=resp.status_code,
                server_message=server_message,
                payload=body if isinstance(body, dict) else None,
            )

        logger.debug("API %s %s %d (%.0fms)", method, path, resp.status_code, duration_ms)
        return resp

    # ── JSON helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def decode(resp: requests.Response) -> Any:
        """Parse a response body; empty bodies decode to None."""
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiRequestError(
                f"Invalid JSON from upstream (status {resp.status_code})",
                status_code=resp.status_code,
            ) from exc

    def get_json(self, path: str, params: dict | None = None, *, csrf: bool = False) -> Any:
        """GET a path and return its decoded JSON body."""
        return self.decode(self.request("GET", path, params=params, csrf=csrf))

    def send_json(
        self,
        method: str,
        path: str,
        body: dict | list | None = None,
        *,
        csrf: bool = False,
    ) -> Any:
        """Issue a state-changing call and return its decoded JSON body (or None)."""
        return self.decode(self.request(method, path, json_body=body, csrf=csrf))
