"""Dispatch error taxonomy.

Validation and not-found errors surface to callers (the API maps them to
4xx).  ``ProviderUnavailable`` and ``AssignmentConflict`` are recovered
inside the core and never leave it.
"""


class DispatchError(Exception):
    """Base class carrying a stable machine-readable ``code``."""

    code = "DISPATCH_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidTenant(DispatchError):
    """Raised when a tenant or its pricing configuration is missing/invalid."""

    code = "INVALID_TENANT"


class RideNotFound(DispatchError):
    """Raised when no ride matches the (ride id, tenant id) pair."""

    code = "RIDE_NOT_FOUND"


class InvalidTransition(DispatchError):
    """Raised when a ride status change violates the state machine."""

    code = "INVALID_TRANSITION"


class ProviderUnavailable(DispatchError):
    """Routing provider failed (network, quota, no route)."""

    code = "PROVIDER_UNAVAILABLE"


class AssignmentConflict(DispatchError):
    """A candidate could not be bound to the ride (taken, deactivated)."""

    code = "ASSIGNMENT_CONFLICT"
