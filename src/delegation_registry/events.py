"""Notifications emitted by the delegation registry.

Listeners are plain callables receiving one event. They run synchronously
on the thread that changed the registry, in the same order as the state
changes they describe.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union


@dataclass(frozen=True)
class DelegationGranted:
    """A delegation was created or its expiry replaced.

    ``previous_expires_at`` is 0 when no record existed before the grant.
    """

    owner: str
    delegate: str
    scope: str
    expires_at: int
    previous_expires_at: int = 0

    event_type = "delegation_granted"

    def to_dict(self) -> dict[str, object]:
        return {
            "event_type": self.event_type,
            "owner": self.owner,
            "delegate": self.delegate,
            "scope": self.scope,
            "expires_at": self.expires_at,
            "previous_expires_at": self.previous_expires_at,
        }


@dataclass(frozen=True)
class DelegationRevoked:
    """A revoke call completed. ``existed`` is False for a no-op revoke."""

    owner: str
    delegate: str
    scope: str
    existed: bool = True

    event_type = "delegation_revoked"

    def to_dict(self) -> dict[str, object]:
        return {
            "event_type": self.event_type,
            "owner": self.owner,
            "delegate": self.delegate,
            "scope": self.scope,
            "existed": self.existed,
        }


DelegationEvent = Union[DelegationGranted, DelegationRevoked]
Listener = Callable[[DelegationEvent], None]

__all__ = ["DelegationEvent", "DelegationGranted", "DelegationRevoked", "Listener"]
