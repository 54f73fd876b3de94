"""decryption-delegation — time-bounded, revocable, scoped delegation registry.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import delegation_registry
>>> delegation_registry.__version__
'0.1.0'

Quick start
-----------
::

    from delegation_registry import (
        DelegationRegistry, ResourceDirectory, ManualClock, RegistryConfig,
    )

    directory = ResourceDirectory()
    directory.add_resource("alice", "payroll", resource_id="salary-handle")

    registry = DelegationRegistry(directory, clock=ManualClock(1_700_000_000))
    expires_at = registry.grant("alice", "bob", "payroll", duration_units=30)
    registry.is_active("alice", "bob", "payroll")   # True
    registry.revoke("alice", "bob", "payroll")
    registry.get_expiry("alice", "bob", "payroll")  # 0
"""
from __future__ import annotations

__version__: str = "0.1.0"

from delegation_registry.audit import AuditEvent, DelegationAuditLogger
from delegation_registry.clock import Clock, ManualClock, SystemClock
from delegation_registry.config import SECONDS_PER_DAY, ZERO_ADDRESS, RegistryConfig
from delegation_registry.directory import OwnerDirectory, ResourceDirectory, ResourceRecord
from delegation_registry.errors import (
    DelegationError,
    InvalidDelegateError,
    InvalidDurationError,
    NotAdministratorError,
    NotOwnerError,
    OwnerHasNoResourceError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from delegation_registry.events import DelegationEvent, DelegationGranted, DelegationRevoked
from delegation_registry.registry import (
    NO_DELEGATION,
    DelegationKey,
    DelegationRecord,
    DelegationRegistry,
    DelegationState,
)
from delegation_registry.service import DelegationService, DelegationStatus

__all__ = [
    "__version__",
    # Core
    "DelegationKey",
    "DelegationRecord",
    "DelegationRegistry",
    "DelegationState",
    "NO_DELEGATION",
    # Events
    "DelegationEvent",
    "DelegationGranted",
    "DelegationRevoked",
    # Collaborators
    "Clock",
    "ManualClock",
    "OwnerDirectory",
    "RegistryConfig",
    "ResourceDirectory",
    "ResourceRecord",
    "SECONDS_PER_DAY",
    "SystemClock",
    "ZERO_ADDRESS",
    # Hosting
    "AuditEvent",
    "DelegationAuditLogger",
    "DelegationService",
    "DelegationStatus",
    # Errors
    "DelegationError",
    "InvalidDelegateError",
    "InvalidDurationError",
    "NotAdministratorError",
    "NotOwnerError",
    "OwnerHasNoResourceError",
    "ResourceAlreadyExistsError",
    "ResourceNotFoundError",
]
