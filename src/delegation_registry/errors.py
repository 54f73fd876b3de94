"""Typed failures raised by the delegation registry and its hosting layers.

Every registry failure derives from :class:`DelegationError` so hosting code
can catch the whole family with one clause and map it to its own error
surface (HTTP status, CLI exit code).
"""
from __future__ import annotations


class DelegationError(ValueError):
    """Base class for all delegation failures."""


class InvalidDelegateError(DelegationError):
    """Raised when the delegate is null, blank, or the owner itself."""

    def __init__(self, delegate: object, reason: str = "delegate must be a non-null identity") -> None:
        self.delegate = delegate
        self.reason = reason
        super().__init__(f"Invalid delegate {delegate!r}: {reason}.")


class InvalidDurationError(DelegationError):
    """Raised when ``duration_units`` falls outside ``1..max_duration``."""

    def __init__(self, duration_units: object, max_duration: int) -> None:
        self.duration_units = duration_units
        self.max_duration = max_duration
        super().__init__(
            f"Invalid duration {duration_units!r}: "
            f"must be an integer between 1 and {max_duration}."
        )


class OwnerHasNoResourceError(DelegationError):
    """Raised when the owner controls nothing under the given scope."""

    def __init__(self, owner: str, scope: str) -> None:
        self.owner = owner
        self.scope = scope
        super().__init__(
            f"Owner {owner!r} has no resource under scope {scope!r}. "
            "Register a resource before delegating access to it."
        )


class NotOwnerError(DelegationError):
    """Raised by the hosting layer when the requester is not the owner."""

    def __init__(self, requesting_identity: str, owner: str) -> None:
        self.requesting_identity = requesting_identity
        self.owner = owner
        super().__init__(
            f"Identity {requesting_identity!r} may not manage delegations "
            f"owned by {owner!r}."
        )


class NotAdministratorError(DelegationError):
    """Raised when a requester outside the administrator set changes resources."""

    def __init__(self, requesting_identity: str, operation: str) -> None:
        self.requesting_identity = requesting_identity
        self.operation = operation
        super().__init__(
            f"Identity {requesting_identity!r} is not an administrator and may not "
            f"{operation} resources."
        )


class ResourceAlreadyExistsError(ValueError):
    """Raised when registering a resource that the owner already holds."""

    def __init__(self, owner: str, scope: str) -> None:
        super().__init__(
            f"Owner {owner!r} already controls a resource under scope {scope!r}."
        )


class ResourceNotFoundError(KeyError):
    """Raised when an (owner, scope) pair has no registered resource."""

    def __init__(self, owner: str, scope: str) -> None:
        super().__init__(
            f"Owner {owner!r} has no resource registered under scope {scope!r}."
        )


__all__ = [
    "DelegationError",
    "InvalidDelegateError",
    "InvalidDurationError",
    "NotAdministratorError",
    "NotOwnerError",
    "OwnerHasNoResourceError",
    "ResourceAlreadyExistsError",
    "ResourceNotFoundError",
]
