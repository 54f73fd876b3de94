"""Route handler functions for the delegation HTTP server.

Each function takes the :class:`~delegation_registry.service.DelegationService`
the server was started with, plus parsed request data, and returns a tuple
of (status_code, response_dict). The HTTP handler in app.py calls these
functions and serializes the results to JSON.
"""
from __future__ import annotations

from pydantic import ValidationError

from delegation_registry import __version__
from delegation_registry.errors import (
    InvalidDelegateError,
    InvalidDurationError,
    NotAdministratorError,
    NotOwnerError,
    OwnerHasNoResourceError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from delegation_registry.server.models import (
    CreateResourceRequest,
    ErrorResponse,
    GrantRequest,
    GrantResponse,
    HealthResponse,
    RemoveResourceRequest,
    ResourceResponse,
    RevokeRequest,
    RevokeResponse,
    StatusResponse,
)
from delegation_registry.service import DelegationService

IDENTITY_HEADER = "X-Requesting-Identity"


def _error(status: int, error: str, detail: str = "") -> tuple[int, dict[str, object]]:
    return status, ErrorResponse(error=error, detail=detail).model_dump()


def _missing_identity() -> tuple[int, dict[str, object]]:
    return _error(401, "Unauthorized", f"The {IDENTITY_HEADER} header is required.")


def handle_create_resource(
    service: DelegationService,
    body: dict[str, object],
    requesting_identity: str | None,
) -> tuple[int, dict[str, object]]:
    """Handle POST /resources. Only administrators may register resources."""
    if not requesting_identity:
        return _missing_identity()
    try:
        request = CreateResourceRequest.model_validate(body)
    except ValidationError as exc:
        return _error(422, "Validation error", str(exc))

    if not request.owner.strip() or not request.scope.strip():
        return _error(422, "Validation error", "owner and scope must not be empty.")

    try:
        record = service.register_resource(
            owner=request.owner,
            scope=request.scope,
            resource_id=request.resource_id,
            metadata=dict(request.metadata),
            requesting_identity=requesting_identity,
        )
    except NotAdministratorError as exc:
        return _error(403, "Forbidden", str(exc))
    except ResourceAlreadyExistsError as exc:
        return _error(409, "Conflict", str(exc))

    response = ResourceResponse(
        owner=record.owner,
        scope=record.scope,
        resource_id=record.resource_id,
        metadata=dict(record.metadata),
        registered_at=record.registered_at.isoformat(),
    )
    return 201, response.model_dump()


def handle_remove_resource(
    service: DelegationService,
    body: dict[str, object],
    requesting_identity: str | None,
) -> tuple[int, dict[str, object]]:
    """Handle DELETE /resources. Only administrators may remove resources."""
    if not requesting_identity:
        return _missing_identity()
    try:
        request = RemoveResourceRequest.model_validate(body)
    except ValidationError as exc:
        return _error(422, "Validation error", str(exc))

    try:
        service.remove_resource(request.owner, request.scope, requesting_identity=requesting_identity)
    except NotAdministratorError as exc:
        return _error(403, "Forbidden", str(exc))
    except ResourceNotFoundError as exc:
        return _error(404, "Not found", str(exc.args[0]))

    return 200, {"owner": request.owner, "scope": request.scope, "removed": True}


def handle_grant(
    service: DelegationService,
    body: dict[str, object],
    requesting_identity: str | None,
) -> tuple[int, dict[str, object]]:
    """Handle POST /delegations. The requester is the owner."""
    if not requesting_identity:
        return _missing_identity()
    try:
        request = GrantRequest.model_validate(body)
    except ValidationError as exc:
        return _error(422, "Validation error", str(exc))

    try:
        expires_at = service.delegate(
            requesting_identity,
            request.delegate,
            request.scope,
            request.duration_units,
        )
    except (InvalidDelegateError, InvalidDurationError) as exc:
        return _error(400, "Bad request", str(exc))
    except (OwnerHasNoResourceError, NotOwnerError) as exc:
        return _error(403, "Forbidden", str(exc))

    response = GrantResponse(
        owner=requesting_identity,
        delegate=str(request.delegate),
        scope=request.scope,
        expires_at=expires_at,
    )
    return 201, response.model_dump()


def handle_revoke(
    service: DelegationService,
    body: dict[str, object],
    requesting_identity: str | None,
) -> tuple[int, dict[str, object]]:
    """Handle DELETE /delegations. Revoking an absent delegation succeeds."""
    if not requesting_identity:
        return _missing_identity()
    try:
        request = RevokeRequest.model_validate(body)
    except ValidationError as exc:
        return _error(422, "Validation error", str(exc))

    try:
        service.revoke(requesting_identity, request.delegate, request.scope)
    except InvalidDelegateError as exc:
        return _error(400, "Bad request", str(exc))
    except (OwnerHasNoResourceError, NotOwnerError) as exc:
        return _error(403, "Forbidden", str(exc))

    response = RevokeResponse(
        owner=requesting_identity,
        delegate=str(request.delegate),
        scope=request.scope,
    )
    return 200, response.model_dump()


def handle_status(
    service: DelegationService,
    owner: str | None,
    delegate: str | None,
    scope: str | None,
) -> tuple[int, dict[str, object]]:
    """Handle GET /delegations/status?owner=&delegate=&scope=."""
    missing = [
        name
        for name, value in (("owner", owner), ("delegate", delegate), ("scope", scope))
        if not value
    ]
    if missing:
        return _error(422, "Validation error", f"Missing query parameter(s): {', '.join(missing)}.")

    status = service.status(str(owner), str(delegate), str(scope))
    response = StatusResponse(
        owner=status.owner,
        delegate=status.delegate,
        scope=status.scope,
        expires_at=status.expires_at,
        active=status.active,
        state=status.state.value,
        checked_at=status.checked_at,
    )
    return 200, response.model_dump()


def handle_health(service: DelegationService) -> tuple[int, dict[str, object]]:
    """Handle GET /health."""
    response = HealthResponse(
        version=__version__,
        resource_count=len(service.directory),
        delegation_count=len(service.registry),
    )
    return 200, response.model_dump()


__all__ = [
    "IDENTITY_HEADER",
    "handle_create_resource",
    "handle_grant",
    "handle_health",
    "handle_remove_resource",
    "handle_revoke",
    "handle_status",
]
