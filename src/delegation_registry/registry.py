"""DelegationRegistry — time-bounded, revocable, scoped delegations.

Stores at most one :class:`DelegationRecord` per ``(owner, delegate, scope)``
key. The registry never checks *who* is calling: it trusts the ``owner``
argument and leaves requester authentication to the hosting layer. It does
consult an :class:`~delegation_registry.directory.OwnerDirectory` to confirm
the owner still controls something under the scope.

Expired records are left in place. :meth:`DelegationRegistry.get_expiry`
keeps returning the stored timestamp after expiry, :meth:`is_active` returns
False, and :meth:`purge_expired` removes them on request.
"""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass

from delegation_registry.clock import Clock, SystemClock
from delegation_registry.config import RegistryConfig
from delegation_registry.directory import OwnerDirectory
from delegation_registry.errors import (
    InvalidDelegateError,
    InvalidDurationError,
    OwnerHasNoResourceError,
)
from delegation_registry.events import (
    DelegationEvent,
    DelegationGranted,
    DelegationRevoked,
    Listener,
)

logger = logging.getLogger(__name__)

NO_DELEGATION = 0


class DelegationState(str, enum.Enum):
    """Derived lifecycle state of a delegation key."""

    ABSENT = "absent"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True)
class DelegationKey:
    """Composite identity of a delegation.

    Parameters
    ----------
    owner:
        Principal controlling the protected resource.
    delegate:
        Principal receiving conditional access.
    scope:
        Resource domain the delegation is limited to.
    """

    owner: str
    delegate: str
    scope: str


@dataclass(frozen=True)
class DelegationRecord:
    """A stored delegation and its absolute expiry (epoch seconds)."""

    key: DelegationKey
    expires_at: int
    granted_at: int

    def is_active(self, now: int) -> bool:
        return now < self.expires_at

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "owner": self.key.owner,
            "delegate": self.key.delegate,
            "scope": self.key.scope,
            "expires_at": self.expires_at,
            "granted_at": self.granted_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "DelegationRecord":
        """Reconstruct a record produced by :meth:`to_dict`."""
        return cls(
            key=DelegationKey(
                owner=str(data["owner"]),
                delegate=str(data["delegate"]),
                scope=str(data["scope"]),
            ),
            expires_at=int(data["expires_at"]),  # type: ignore[arg-type]
            granted_at=int(data.get("granted_at", 0)),  # type: ignore[arg-type]
        )


class DelegationRegistry:
    """Registry of delegations keyed by ``(owner, delegate, scope)``.

    Thread-safe. One re-entrant lock serialises every mutation and query,
    and listeners are notified while it is held, so the event stream has
    the same total order as the state changes. A listener may call back
    into the registry from the same thread.

    Parameters
    ----------
    directory:
        Source of truth for which owners control resources under which
        scopes.
    config:
        Duration policy. Defaults to one-day units capped at 365.
    clock:
        Time source used when an operation is not given ``now``.

    Example
    -------
    ::

        directory = ResourceDirectory()
        directory.add_resource("alice", "payroll")
        registry = DelegationRegistry(directory)
        expires_at = registry.grant("alice", "bob", "payroll", 30)
        assert registry.is_active("alice", "bob", "payroll")
    """

    def __init__(
        self,
        directory: OwnerDirectory,
        config: RegistryConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._directory = directory
        self._config = config or RegistryConfig()
        self._clock = clock or SystemClock()
        self._records: dict[DelegationKey, DelegationRecord] = {}
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    @property
    def config(self) -> RegistryConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        """Register *listener* for grant and revoke notifications."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        """Stop notifying *listener*. Unknown listeners are ignored."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def grant(
        self,
        owner: str,
        delegate: str | None,
        scope: str,
        duration_units: int,
        now: int | None = None,
    ) -> int:
        """Grant or extend *delegate*'s access to *owner*'s resource.

        An existing delegation for the same key is overwritten.

        Parameters
        ----------
        owner:
            Principal granting access. Trusted as given.
        delegate:
            Principal receiving access. Must be non-null and differ from
            *owner*, ignoring case and surrounding whitespace.
        scope:
            Resource domain of the delegation.
        duration_units:
            Lifetime in units of ``config.unit_length``; between 1 and
            ``config.max_duration`` inclusive.
        now:
            Grant time in epoch seconds. Defaults to the injected clock.

        Returns
        -------
        int
            The absolute expiry, ``now + duration_units * unit_length``.

        Raises
        ------
        OwnerHasNoResourceError
            If the directory reports no resource for the owner under scope.
        InvalidDelegateError
            If the delegate is null or equals the owner.
        InvalidDurationError
            If ``duration_units`` is out of range.
        """
        self._require_resource(owner, scope)
        delegate = self._require_delegate(delegate)
        if self._config.same_identity(delegate, owner):
            raise InvalidDelegateError(delegate, "an owner cannot delegate to itself")
        self._require_duration(duration_units)

        with self._lock:
            at = self._resolve_now(now)
            expires_at = at + duration_units * self._config.unit_length
            key = DelegationKey(owner=owner, delegate=delegate, scope=scope)
            previous = self._records.get(key)
            self._records[key] = DelegationRecord(key=key, expires_at=expires_at, granted_at=at)
            logger.info(
                "Delegation granted owner=%s delegate=%s scope=%s expires_at=%d",
                owner,
                delegate,
                scope,
                expires_at,
            )
            self._emit(
                DelegationGranted(
                    owner=owner,
                    delegate=delegate,
                    scope=scope,
                    expires_at=expires_at,
                    previous_expires_at=previous.expires_at if previous else NO_DELEGATION,
                )
            )
            return expires_at

    def revoke(self, owner: str, delegate: str | None, scope: str) -> None:
        """Delete any delegation for the key.

        Revoking an absent or expired delegation is not an error; a
        :class:`DelegationRevoked` event is emitted either way.

        Raises
        ------
        OwnerHasNoResourceError
            If the directory reports no resource for the owner under scope.
        InvalidDelegateError
            If the delegate is null.
        """
        self._require_resource(owner, scope)
        delegate = self._require_delegate(delegate)

        with self._lock:
            key = DelegationKey(owner=owner, delegate=delegate, scope=scope)
            removed = self._records.pop(key, None)
            logger.info(
                "Delegation revoked owner=%s delegate=%s scope=%s existed=%s",
                owner,
                delegate,
                scope,
                removed is not None,
            )
            self._emit(
                DelegationRevoked(
                    owner=owner,
                    delegate=delegate,
                    scope=scope,
                    existed=removed is not None,
                )
            )

    def purge_expired(self, now: int | None = None) -> int:
        """Remove every record whose expiry is at or before *now*.

        No events are emitted. Purged keys move from EXPIRED to ABSENT and
        ``get_expiry`` returns 0 for them afterwards.

        Returns
        -------
        int
            Number of records removed.
        """
        with self._lock:
            at = self._resolve_now(now)
            stale = [k for k, r in self._records.items() if not r.is_active(at)]
            for key in stale:
                del self._records[key]
        if stale:
            logger.debug("Purged %d expired delegation(s)", len(stale))
        return len(stale)

    def restore(self, records: list[DelegationRecord]) -> None:
        """Load previously serialised records, replacing same-key entries."""
        with self._lock:
            for record in records:
                self._records[record.key] = record

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def get_expiry(self, owner: str, delegate: str, scope: str) -> int:
        """Return the stored expiry for the key, or 0 if none exists.

        The stored value is returned even when it lies in the past.
        """
        with self._lock:
            record = self._records.get(DelegationKey(owner, delegate, scope))
        return record.expires_at if record is not None else NO_DELEGATION

    def is_active(
        self, owner: str, delegate: str, scope: str, now: int | None = None
    ) -> bool:
        """Return True if the delegation exists, is unexpired, and the owner
        still controls a resource under *scope*."""
        with self._lock:
            record = self._records.get(DelegationKey(owner, delegate, scope))
            if record is None:
                return False
            if not record.is_active(self._resolve_now(now)):
                return False
        return self._directory.owner_controls_resource(owner, scope)

    def state(
        self, owner: str, delegate: str, scope: str, now: int | None = None
    ) -> DelegationState:
        """Return the derived lifecycle state of the key.

        Only the stored record and the clock are considered; use
        :meth:`is_active` for the check that also consults the directory.
        """
        with self._lock:
            record = self._records.get(DelegationKey(owner, delegate, scope))
            if record is None:
                return DelegationState.ABSENT
            if record.is_active(self._resolve_now(now)):
                return DelegationState.ACTIVE
            return DelegationState.EXPIRED

    def get_record(self, owner: str, delegate: str, scope: str) -> DelegationRecord | None:
        with self._lock:
            return self._records.get(DelegationKey(owner, delegate, scope))

    def list_delegations(
        self,
        owner: str | None = None,
        delegate: str | None = None,
        scope: str | None = None,
    ) -> list[DelegationRecord]:
        """Return stored records matching every given filter, sorted by key.

        Expired records are included.
        """
        with self._lock:
            records = list(self._records.values())
        if owner is not None:
            records = [r for r in records if r.key.owner == owner]
        if delegate is not None:
            records = [r for r in records if r.key.delegate == delegate]
        if scope is not None:
            records = [r for r in records if r.key.scope == scope]
        return sorted(records, key=lambda r: (r.key.owner, r.key.scope, r.key.delegate))

    def snapshot(self) -> list[DelegationRecord]:
        """Return every stored record (for persistence)."""
        return self.list_delegations()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _resolve_now(self, now: int | None) -> int:
        return int(now) if now is not None else self._clock.now()

    def _require_resource(self, owner: str, scope: str) -> None:
        if not self._directory.owner_controls_resource(owner, scope):
            raise OwnerHasNoResourceError(owner, scope)

    def _require_delegate(self, delegate: object) -> str:
        if self._config.is_null_identity(delegate):
            raise InvalidDelegateError(delegate)
        if not isinstance(delegate, str):
            raise InvalidDelegateError(delegate, "delegate must be a string identity")
        return delegate

    def _require_duration(self, duration_units: object) -> None:
        # bool is an int subclass; True is not a duration.
        if isinstance(duration_units, bool) or not isinstance(duration_units, int):
            raise InvalidDurationError(duration_units, self._config.max_duration)
        if not 1 <= duration_units <= self._config.max_duration:
            raise InvalidDurationError(duration_units, self._config.max_duration)

    def _emit(self, event: DelegationEvent) -> None:
        for listener in list(self._listeners):
            listener(event)


__all__ = [
    "DelegationKey",
    "DelegationRecord",
    "DelegationRegistry",
    "DelegationState",
    "NO_DELEGATION",
]
