"""Pydantic request/response models for the delegation HTTP server."""
from __future__ import annotations

from pydantic import BaseModel, Field


class CreateResourceRequest(BaseModel):
    """Request body for POST /resources."""

    owner: str
    scope: str
    resource_id: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)


class RemoveResourceRequest(BaseModel):
    """Request body for DELETE /resources."""

    owner: str
    scope: str


class ResourceResponse(BaseModel):
    owner: str
    scope: str
    resource_id: str = ""
    metadata: dict[str, object] = Field(default_factory=dict)
    registered_at: str


class GrantRequest(BaseModel):
    """Request body for POST /delegations.

    ``delegate`` may be null so that null delegates reach the registry and
    are rejected with a typed error rather than a schema error.
    """

    delegate: str | None = None
    scope: str
    duration_units: int = Field(strict=True)


class RevokeRequest(BaseModel):
    """Request body for DELETE /delegations."""

    delegate: str | None = None
    scope: str


class GrantResponse(BaseModel):
    owner: str
    delegate: str
    scope: str
    expires_at: int


class RevokeResponse(BaseModel):
    owner: str
    delegate: str
    scope: str
    revoked: bool = True


class StatusResponse(BaseModel):
    """Response body for GET /delegations/status."""

    owner: str
    delegate: str
    scope: str
    expires_at: int
    active: bool
    state: str
    checked_at: int


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str = "ok"
    service: str = "decryption-delegation"
    version: str = "0.1.0"
    resource_count: int = 0
    delegation_count: int = 0


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str = ""


__all__ = [
    "CreateResourceRequest",
    "ErrorResponse",
    "GrantRequest",
    "GrantResponse",
    "HealthResponse",
    "RemoveResourceRequest",
    "ResourceResponse",
    "RevokeRequest",
    "RevokeResponse",
    "StatusResponse",
]
