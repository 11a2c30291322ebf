"""
Console-wide exception hierarchy.

Every panel, the gateway and the HTTP surface raise these types so that the
blueprint error handlers can map them to one consistent JSON envelope.

Usage:
    from strategicflow.core.exceptions import ApiRequestError, ValidationError

    raise ValidationError("Start date must be before end date")
    raise PermissionDeniedError("delete your own account")
"""


class ApiRequestError(Exception):
    """Raised when a call to the upstream REST API does not succeed.

    Covers non-2xx responses, network failures and undecodable JSON bodies.

    Args:
        message: Developer-facing description (status + body excerpt).
        status_code: Upstream HTTP status, None for network-level failures.
        server_message: The upstream ``error``/``message`` field when the
            response carried one. Toasts prefer it over their fallback text.
        payload: Parsed error body, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        server_message: str | None = None,
        payload: dict | None = None,
    ) -> None:
        self.status_code = status_code
        self.server_message = server_message
        self.payload = payload or {}
        super().__init__(message)


class ValidationError(Exception):
    """Raised when form input fails a client-side rule.

    A validation failure blocks submission: no request is issued.

    Args:
        message: Human-readable explanation, shown verbatim in the toast.
        details: Optional field-level breakdown.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PermissionDeniedError(Exception):
    """Raised when the current user's capabilities do not allow an action."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Not allowed to {action}")


class NotFoundError(Exception):
    """Raised for an unknown panel, tab, entity type or record id."""

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class StateTransitionError(Exception):
    """Raised when a state machine receives an event its current state rejects."""

    def __init__(self, current: str, action: str) -> None:
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} while in state '{current}'")
