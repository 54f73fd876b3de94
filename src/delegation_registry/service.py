"""DelegationService — hosting layer in front of the registry.

The registry trusts whatever ``owner`` it is handed. This service is where
the requesting identity is checked. A requester may only manage their own
delegations, and only administrators may add or remove resources. Resource
changes go through here so they are audited alongside delegation activity.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import BaseModel

from delegation_registry.audit import DelegationAuditLogger
from delegation_registry.directory import ResourceDirectory, ResourceRecord
from delegation_registry.errors import DelegationError, NotAdministratorError, NotOwnerError
from delegation_registry.registry import DelegationRegistry, DelegationState

logger = logging.getLogger(__name__)


class DelegationStatus(BaseModel):
    """Point-in-time view of one delegation key."""

    owner: str
    delegate: str
    scope: str
    expires_at: int
    active: bool
    state: DelegationState
    checked_at: int


class DelegationService:
    """Authorises requests and forwards them to the registry.

    Parameters
    ----------
    registry:
        The delegation registry being fronted.
    directory:
        The directory the registry consults. Resource registration and
        removal go through it.
    audit:
        Optional audit logger. When given it is attached to the registry
        and also receives rejected requests.
    administrators:
        Identities allowed to add and remove resources on behalf of any
        owner. Empty by default, so named requesters cannot change
        resources until administrators are configured.
    """

    def __init__(
        self,
        registry: DelegationRegistry,
        directory: ResourceDirectory,
        audit: DelegationAuditLogger | None = None,
        administrators: Iterable[str] = (),
    ) -> None:
        self._registry = registry
        self._directory = directory
        self._audit = audit
        self._administrators = frozenset(a.strip() for a in administrators if a.strip())
        if audit is not None:
            audit.attach(registry)

    @property
    def registry(self) -> DelegationRegistry:
        return self._registry

    @property
    def directory(self) -> ResourceDirectory:
        return self._directory

    @property
    def administrators(self) -> frozenset[str]:
        return self._administrators

    def is_administrator(self, identity: str) -> bool:
        return identity.strip() in self._administrators

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def register_resource(
        self,
        owner: str,
        scope: str,
        resource_id: str = "",
        metadata: dict[str, object] | None = None,
        requesting_identity: str | None = None,
    ) -> ResourceRecord:
        """Register a resource for *owner* under *scope*.

        ``requesting_identity=None`` marks an in-process caller such as the
        CLI. Any named requester must be one of the service administrators.

        Raises
        ------
        NotAdministratorError
            If *requesting_identity* is given and is not an administrator.
        ResourceAlreadyExistsError
            If *owner* already holds a resource under *scope*.
        """
        self._require_administrator(requesting_identity, owner, "add")
        record = self._directory.add_resource(owner, scope, resource_id=resource_id, metadata=metadata)
        if self._audit is not None:
            self._audit.log_resource_added(owner, scope, actor_id=requesting_identity or "system")
        return record

    def remove_resource(
        self,
        owner: str,
        scope: str,
        requesting_identity: str | None = None,
    ) -> ResourceRecord:
        """Remove a resource; delegations on it stop being active."""
        self._require_administrator(requesting_identity, owner, "remove")
        record = self._directory.remove_resource(owner, scope)
        if self._audit is not None:
            self._audit.log_resource_removed(owner, scope, actor_id=requesting_identity or "system")
        return record

    # ------------------------------------------------------------------
    # Delegations
    # ------------------------------------------------------------------

    def delegate(
        self,
        requesting_identity: str,
        delegate: str | None,
        scope: str,
        duration_units: int,
    ) -> int:
        """Grant *delegate* access to the requester's own resource."""
        return self.grant_on_behalf(requesting_identity, requesting_identity, delegate, scope, duration_units)

    def revoke(self, requesting_identity: str, delegate: str | None, scope: str) -> None:
        """Revoke a delegation the requester granted."""
        self.revoke_on_behalf(requesting_identity, requesting_identity, delegate, scope)

    def grant_on_behalf(
        self,
        requesting_identity: str,
        owner: str,
        delegate: str | None,
        scope: str,
        duration_units: int,
    ) -> int:
        """Grant a delegation for *owner* after checking the requester.

        Raises
        ------
        NotOwnerError
            If *requesting_identity* is not *owner*.
        DelegationError
            Any registry failure, re-raised after it is audited.
        """
        self._require_owner(requesting_identity, owner, "grant")
        try:
            return self._registry.grant(owner, delegate, scope, duration_units)
        except DelegationError as exc:
            self._reject(owner, "grant", exc, requesting_identity, delegate=delegate, scope=scope)
            raise

    def revoke_on_behalf(
        self,
        requesting_identity: str,
        owner: str,
        delegate: str | None,
        scope: str,
    ) -> None:
        """Revoke a delegation for *owner* after checking the requester."""
        self._require_owner(requesting_identity, owner, "revoke")
        try:
            self._registry.revoke(owner, delegate, scope)
        except DelegationError as exc:
            self._reject(owner, "revoke", exc, requesting_identity, delegate=delegate, scope=scope)
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_expiry(self, owner: str, delegate: str, scope: str) -> int:
        return self._registry.get_expiry(owner, delegate, scope)

    def is_active(self, owner: str, delegate: str, scope: str) -> bool:
        return self._registry.is_active(owner, delegate, scope)

    def status(self, owner: str, delegate: str, scope: str) -> DelegationStatus:
        """Return expiry, activity and derived state evaluated at one instant."""
        now = self._registry.clock.now()
        return DelegationStatus(
            owner=owner,
            delegate=delegate,
            scope=scope,
            expires_at=self._registry.get_expiry(owner, delegate, scope),
            active=self._registry.is_active(owner, delegate, scope, now=now),
            state=self._registry.state(owner, delegate, scope, now=now),
            checked_at=now,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_owner(self, requesting_identity: str, owner: str, operation: str) -> None:
        if requesting_identity != owner:
            exc = NotOwnerError(requesting_identity, owner)
            self._reject(owner, operation, exc, requesting_identity)
            raise exc

    def _require_administrator(self, requesting_identity: str | None, owner: str, operation: str) -> None:
        if requesting_identity is None or self.is_administrator(requesting_identity):
            return
        exc = NotAdministratorError(requesting_identity, operation)
        self._reject(owner, f"resource_{operation}", exc, requesting_identity)
        raise exc

    def _reject(
        self,
        owner: str,
        operation: str,
        exc: Exception,
        requesting_identity: str,
        **kwargs: object,
    ) -> None:
        logger.warning("Rejected %s for owner=%s: %s", operation, owner, exc)
        if self._audit is not None:
            self._audit.log_rejection(
                owner,
                operation=operation,
                reason=type(exc).__name__,
                actor_id=requesting_identity,
                **kwargs,
            )


__all__ = ["DelegationService", "DelegationStatus"]
