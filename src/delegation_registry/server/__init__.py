"""HTTP server mode for the delegation registry.

Provides a lightweight stdlib-based JSON API without requiring any
additional web framework dependencies.
"""
from __future__ import annotations

from delegation_registry.server.app import (
    DelegationRequestHandler,
    DelegationServer,
    build_service,
    create_server,
    run_server,
)

__all__ = [
    "DelegationRequestHandler",
    "DelegationServer",
    "build_service",
    "create_server",
    "run_server",
]
