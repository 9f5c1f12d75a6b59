"""
Platform-wide exception hierarchy for the service layer.

Services raise these; create_app() registers one Flask error handler per type,
so every blueprint gets the same HTTP status codes.

Route-level access denials are NOT exceptions: the decision procedure returns
an AccessDecision value and the request guard renders it. PermissionDenied
is reserved for payload-dependent rules checked inside services.

Usage:
    from taskpilot.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Workspace", resource_id=workspace_id)
    raise ValidationError("Invalid role", details={"role": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable model/entity name (e.g. "Organization").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: str | int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a unique constraint.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class PermissionDenied(Exception):
    """Raised when an authorized caller attempts an action beyond their own rank.

    Maps to HTTP 403. The access guard has already admitted the request;
    this covers rules that depend on the payload (e.g. the role being granted).
    """

    def __init__(self, user_id: str, action: str, scope: str | None = None) -> None:
        scope_msg = f" in {scope}" if scope else ""
        super().__init__(
            f"User {user_id} does not have permission for '{action}'{scope_msg}"
        )
        self.user_id = user_id
        self.action = action
        self.scope = scope
