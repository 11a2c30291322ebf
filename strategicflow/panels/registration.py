"""Self-service registration through an organization's registration link."""

from __future__ import annotations

import logging

from strategicflow.core.exceptions import ApiRequestError, ValidationError
from strategicflow.panels.base import Panel, blank
from strategicflow.services.mutation import MutationResult, validation_failure

logger = logging.getLogger(__name__)


class RegistrationPanel(Panel):
    def __init__(self, ctx):
        super().__init__(ctx)
        self._register = self.mutation(
            lambda v: self.gateway.send_json("POST", f"/api/auth/register/{v['token']}", v["body"]),
            success="Welcome to ERP Team.",
            success_title="Account created!",
            failure="Please try again.",
            failure_title="Registration failed",
        )

    def validate_token(self, token: str) -> bool:
        """True only when the upstream explicitly confirms the token."""
        if blank(token):
            return False
        try:
            data = self.gateway.get_json(f"/api/auth/validate-registration-token/{token}")
        except ApiRequestError as exc:
            logger.info("Registration token rejected: %s", exc)
            return False
        return isinstance(data, dict) and data.get("valid") is True

    def register(
        self,
        token: str,
        *,
        email: str,
        password: str,
        confirm_password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> MutationResult:
        if blank(email) or blank(password):
            return validation_failure(self.toasts, ValidationError("Email and password are required"))
        if password != confirm_password:
            self.toasts.error("Please make sure your passwords match.", title="Passwords don't match")
            return MutationResult(ok=False, error=ValidationError("Passwords don't match"))
        body = {
            "email": email.strip(),
            "password": password,
            "firstName": (first_name or "").strip() or None,
            "lastName": (last_name or "").strip() or None,
        }
        return self._register.mutate({"token": token, "body": body})
