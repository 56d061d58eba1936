"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from podtracker.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Pod", resource_id=pod_id)
    raise ValidationError("At least 2 users must be selected to merge")
"""


class NotFoundError(Exception):
    """Raised when a referenced POD, identity or notification does not exist.

    Maps to HTTP 404. No partial writes happen before it is raised.

    Args:
        resource: Human-readable entity name (e.g. "Pod", "User").
        resource_id: The key that was looked up. Included in logs.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a business key.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class AuditWriteFailed(Exception):
    """A ledger or notification write failed.

    Never surfaces to callers: the writer logs it and the primary mutation
    carries on.
    """

    def __init__(self, kind: str, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"{kind} write failed: {reason}")


class TransactionFailed(Exception):
    """The repoint transaction for one merged identity was rolled back.

    Collected into ``MergeResult.failed``; the remaining identities of the
    batch are still merged.
    """

    def __init__(self, resource_id: str, reason: str) -> None:
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(f"merge of {resource_id} failed: {reason}")
