"""Owner directory — which principal controls a resource under which scope.

The registry only ever asks one question of the directory:
``owner_controls_resource(owner, scope)``. :class:`ResourceDirectory` is the
in-memory implementation used by the bundled service, HTTP API and CLI;
hosting code may plug in any object satisfying :class:`OwnerDirectory`.
"""
from __future__ import annotations

import datetime
import threading
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from delegation_registry.errors import ResourceAlreadyExistsError, ResourceNotFoundError


@runtime_checkable
class OwnerDirectory(Protocol):
    """Answers whether an owner currently controls something under a scope."""

    def owner_controls_resource(self, owner: str, scope: str) -> bool:
        ...


@dataclass
class ResourceRecord:
    """A protected resource held by an owner.

    Parameters
    ----------
    owner:
        Identity of the controlling principal.
    scope:
        Resource domain the record lives under.
    resource_id:
        Opaque handle of the protected value. The directory never looks
        inside it.
    metadata:
        Arbitrary key-value metadata.
    registered_at:
        UTC datetime when the resource was added.
    """

    owner: str
    scope: str
    resource_id: str = ""
    metadata: dict[str, object] = field(default_factory=dict)
    registered_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "owner": self.owner,
            "scope": self.scope,
            "resource_id": self.resource_id,
            "metadata": dict(self.metadata),
            "registered_at": self.registered_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "ResourceRecord":
        """Reconstruct a record produced by :meth:`to_dict`."""
        registered_at = data.get("registered_at")
        return cls(
            owner=str(data["owner"]),
            scope=str(data["scope"]),
            resource_id=str(data.get("resource_id", "")),
            metadata={str(k): v for k, v in (data.get("metadata") or {}).items()},  # type: ignore[union-attr]
            registered_at=(
                datetime.datetime.fromisoformat(str(registered_at))
                if registered_at
                else datetime.datetime.now(datetime.timezone.utc)
            ),
        )


class ResourceDirectory:
    """In-memory directory of resources keyed by ``(owner, scope)``.

    Thread-safe. Each owner holds at most one resource per scope.

    Example
    -------
    ::

        directory = ResourceDirectory()
        directory.add_resource("alice", "payroll", resource_id="salary-handle")
        assert directory.owner_controls_resource("alice", "payroll")
    """

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], ResourceRecord] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_resource(
        self,
        owner: str,
        scope: str,
        resource_id: str = "",
        metadata: dict[str, object] | None = None,
    ) -> ResourceRecord:
        """Record that *owner* controls a resource under *scope*.

        Raises
        ------
        ResourceAlreadyExistsError
            If the owner already has a resource under this scope.
        """
        with self._lock:
            if (owner, scope) in self._records:
                raise ResourceAlreadyExistsError(owner, scope)
            record = ResourceRecord(
                owner=owner,
                scope=scope,
                resource_id=resource_id,
                metadata=dict(metadata or {}),
            )
            self._records[(owner, scope)] = record
            return record

    def remove_resource(self, owner: str, scope: str) -> ResourceRecord:
        """Remove and return the owner's resource under *scope*.

        Delegations granted against the resource are not touched; they
        simply stop being active.

        Raises
        ------
        ResourceNotFoundError
            If nothing is registered for the pair.
        """
        with self._lock:
            try:
                return self._records.pop((owner, scope))
            except KeyError:
                raise ResourceNotFoundError(owner, scope) from None

    def restore(self, records: list[ResourceRecord]) -> None:
        """Load previously serialised records, replacing same-key entries."""
        with self._lock:
            for record in records:
                self._records[(record.owner, record.scope)] = record

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def owner_controls_resource(self, owner: str, scope: str) -> bool:
        with self._lock:
            return (owner, scope) in self._records

    def get(self, owner: str, scope: str) -> ResourceRecord:
        """Return the record for ``(owner, scope)``.

        Raises
        ------
        ResourceNotFoundError
            If nothing is registered for the pair.
        """
        with self._lock:
            record = self._records.get((owner, scope))
        if record is None:
            raise ResourceNotFoundError(owner, scope)
        return record

    def list_resources(
        self, owner: str | None = None, scope: str | None = None
    ) -> list[ResourceRecord]:
        """Return records filtered by owner and/or scope, sorted by key."""
        with self._lock:
            records = list(self._records.values())
        if owner is not None:
            records = [r for r in records if r.owner == owner]
        if scope is not None:
            records = [r for r in records if r.scope == scope]
        return sorted(records, key=lambda r: (r.owner, r.scope))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, key: object) -> bool:
        """Support ``("alice", "payroll") in directory``."""
        with self._lock:
            return key in self._records


__all__ = ["OwnerDirectory", "ResourceDirectory", "ResourceRecord"]
