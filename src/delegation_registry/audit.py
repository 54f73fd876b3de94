"""DelegationAuditLogger — JSONL audit trail for delegation activity.

Every grant, revocation, resource change and rejected request is appended
as one JSON line to the configured file. Attach the logger to a
:class:`~delegation_registry.registry.DelegationRegistry` to record registry
events automatically.

If no file path is configured the logger writes to an in-memory buffer
that can be drained via :meth:`DelegationAuditLogger.drain_buffer`.
"""
from __future__ import annotations

import datetime
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from delegation_registry.events import DelegationEvent, DelegationGranted, DelegationRevoked

if TYPE_CHECKING:
    from delegation_registry.registry import DelegationRegistry

logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    """A single auditable delegation event.

    Parameters
    ----------
    event_type:
        Short snake_case string identifying the event.
    owner:
        The owner whose resource or delegation is affected.
    actor_id:
        The identity that triggered the event. Defaults to "system".
    details:
        Arbitrary key-value metadata about the event.
    timestamp:
        UTC datetime of the event. Defaults to now.
    """

    event_type: str
    owner: str
    actor_id: str = "system"
    details: dict[str, object] = field(default_factory=dict)
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary suitable for JSON encoding."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type,
            "owner": self.owner,
            "actor_id": self.actor_id,
            "details": self.details,
        }


class DelegationAuditLogger:
    """Append-only JSONL audit logger.

    Thread-safe.

    Parameters
    ----------
    log_path:
        Path to the JSONL log file; parent directories are created. If
        None, events are buffered in memory only.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._buffer: list[str] = []
        self._lock = threading.Lock()

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Core logging
    # ------------------------------------------------------------------

    def log(self, event: AuditEvent) -> None:
        """Append an audit event to the log."""
        line = json.dumps(event.to_dict(), separators=(",", ":"), default=str)
        with self._lock:
            if self._log_path is not None:
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            else:
                self._buffer.append(line)

    def log_event(
        self,
        event_type: str,
        owner: str,
        actor_id: str = "system",
        **details: object,
    ) -> None:
        """Log a simple event without constructing :class:`AuditEvent`."""
        self.log(
            AuditEvent(
                event_type=event_type,
                owner=owner,
                actor_id=actor_id,
                details=dict(details),
            )
        )

    # ------------------------------------------------------------------
    # Registry integration
    # ------------------------------------------------------------------

    def attach(self, registry: "DelegationRegistry") -> None:
        """Subscribe to *registry* so every grant and revoke is recorded."""
        registry.subscribe(self.record_registry_event)

    def detach(self, registry: "DelegationRegistry") -> None:
        registry.unsubscribe(self.record_registry_event)

    def record_registry_event(self, event: DelegationEvent) -> None:
        if isinstance(event, DelegationGranted):
            self.log_grant(
                owner=event.owner,
                delegate=event.delegate,
                scope=event.scope,
                expires_at=event.expires_at,
                previous_expires_at=event.previous_expires_at,
            )
        elif isinstance(event, DelegationRevoked):
            self.log_revocation(
                owner=event.owner,
                delegate=event.delegate,
                scope=event.scope,
                existed=event.existed,
            )
        else:
            logger.warning("Ignoring unknown registry event %r", event)

    # ------------------------------------------------------------------
    # Convenience event loggers
    # ------------------------------------------------------------------

    def log_grant(
        self,
        owner: str,
        delegate: str,
        scope: str,
        expires_at: int,
        previous_expires_at: int = 0,
        actor_id: str | None = None,
    ) -> None:
        """Log a delegation_granted event."""
        self.log_event(
            "delegation_granted",
            owner=owner,
            actor_id=actor_id or owner,
            delegate=delegate,
            scope=scope,
            expires_at=expires_at,
            previous_expires_at=previous_expires_at,
        )

    def log_revocation(
        self,
        owner: str,
        delegate: str,
        scope: str,
        existed: bool = True,
        actor_id: str | None = None,
    ) -> None:
        """Log a delegation_revoked event."""
        self.log_event(
            "delegation_revoked",
            owner=owner,
            actor_id=actor_id or owner,
            delegate=delegate,
            scope=scope,
            existed=existed,
        )

    def log_resource_added(self, owner: str, scope: str, actor_id: str = "system") -> None:
        self.log_event("resource_added", owner=owner, actor_id=actor_id, scope=scope)

    def log_resource_removed(self, owner: str, scope: str, actor_id: str = "system") -> None:
        self.log_event("resource_removed", owner=owner, actor_id=actor_id, scope=scope)

    def log_rejection(
        self,
        owner: str,
        operation: str,
        reason: str,
        actor_id: str = "system",
        **kwargs: object,
    ) -> None:
        """Log a request the registry or service refused."""
        self.log_event(
            "request_rejected",
            owner=owner,
            actor_id=actor_id,
            operation=operation,
            reason=reason,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Buffer access
    # ------------------------------------------------------------------

    def drain_buffer(self) -> list[str]:
        """Return and clear the in-memory event buffer, oldest first."""
        with self._lock:
            events = list(self._buffer)
            self._buffer.clear()
        return events

    def read_log(self, tail: int | None = None) -> list[dict[str, object]]:
        """Read events from the log file (or buffer), oldest first.

        Parameters
        ----------
        tail:
            If provided, return only the last *tail* events. Zero returns
            an empty list.

        Raises
        ------
        ValueError
            If *tail* is negative.
        """
        if tail is not None and tail < 0:
            raise ValueError(f"tail must be non-negative, got {tail}")
        if self._log_path is None or not self._log_path.exists():
            with self._lock:
                lines = list(self._buffer)
        else:
            with self._lock:
                lines = self._log_path.read_text(encoding="utf-8").splitlines()

        parsed: list[dict[str, object]] = []
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                parsed.append(json.loads(stripped))
            except json.JSONDecodeError:
                logger.warning("Skipping malformed audit line: %.80s", stripped)

        if tail is not None:
            return parsed[-tail:] if tail else []
        return parsed


__all__ = ["AuditEvent", "DelegationAuditLogger"]
