"""Tests for delegation_registry.audit — DelegationAuditLogger."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from delegation_registry.audit import AuditEvent, DelegationAuditLogger
from delegation_registry.clock import ManualClock
from delegation_registry.directory import ResourceDirectory
from delegation_registry.registry import DelegationRegistry

T0 = 1_700_000_000


@pytest.fixture()
def audit() -> DelegationAuditLogger:
    return DelegationAuditLogger(log_path=None)


@pytest.fixture()
def registry() -> DelegationRegistry:
    directory = ResourceDirectory()
    directory.add_resource("alice", "payroll")
    return DelegationRegistry(directory, clock=ManualClock(T0))


class TestAuditEvent:
    def test_to_dict_contains_required_fields(self) -> None:
        data = AuditEvent(event_type="delegation_granted", owner="alice").to_dict()
        assert data["event_type"] == "delegation_granted"
        assert data["owner"] == "alice"
        assert data["actor_id"] == "system"
        assert "timestamp" in data
        assert data["details"] == {}


class TestInMemoryLogging:
    def test_log_grant_buffers_json_line(self, audit: DelegationAuditLogger) -> None:
        audit.log_grant("alice", "bob", "payroll", expires_at=123)
        lines = audit.drain_buffer()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["event_type"] == "delegation_granted"
        assert entry["actor_id"] == "alice"
        assert entry["details"]["expires_at"] == 123

    def test_drain_clears_buffer(self, audit: DelegationAuditLogger) -> None:
        audit.log_resource_added("alice", "payroll")
        audit.drain_buffer()
        assert audit.drain_buffer() == []

    def test_read_log_tail(self, audit: DelegationAuditLogger) -> None:
        for scope in ("a", "b", "c"):
            audit.log_resource_added("alice", scope)
        tail = audit.read_log(tail=2)
        assert [e["details"]["scope"] for e in tail] == ["b", "c"]  # type: ignore[index]

    def test_read_log_tail_zero_is_empty(self, audit: DelegationAuditLogger) -> None:
        audit.log_resource_added("alice", "payroll")
        assert audit.read_log(tail=0) == []

    def test_read_log_negative_tail_rejected(self, audit: DelegationAuditLogger) -> None:
        with pytest.raises(ValueError):
            audit.read_log(tail=-1)

    def test_log_rejection(self, audit: DelegationAuditLogger) -> None:
        audit.log_rejection("alice", operation="grant", reason="InvalidDurationError", actor_id="alice")
        entry = audit.read_log()[0]
        assert entry["event_type"] == "request_rejected"
        assert entry["details"] == {"operation": "grant", "reason": "InvalidDurationError"}


class TestFileLogging:
    def test_writes_jsonl(self, tmp_path: Path) -> None:
        log_file = tmp_path / "nested" / "audit.jsonl"
        audit = DelegationAuditLogger(log_path=log_file)
        audit.log_revocation("alice", "bob", "payroll", existed=False)
        audit.log_resource_removed("alice", "payroll")

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["details"]["existed"] is False

    def test_read_log_skips_malformed_lines(self, tmp_path: Path) -> None:
        log_file = tmp_path / "audit.jsonl"
        audit = DelegationAuditLogger(log_path=log_file)
        audit.log_resource_added("alice", "payroll")
        with log_file.open("a", encoding="utf-8") as fh:
            fh.write("{not json\n\n")
        assert len(audit.read_log()) == 1


class TestRegistryIntegration:
    def test_attach_records_grant_and_revoke(
        self, audit: DelegationAuditLogger, registry: DelegationRegistry
    ) -> None:
        audit.attach(registry)
        registry.grant("alice", "bob", "payroll", 30)
        registry.revoke("alice", "bob", "payroll")
        registry.revoke("alice", "bob", "payroll")

        entries = audit.read_log()
        assert [e["event_type"] for e in entries] == [
            "delegation_granted",
            "delegation_revoked",
            "delegation_revoked",
        ]
        assert entries[1]["details"]["existed"] is True  # type: ignore[index]
        assert entries[2]["details"]["existed"] is False  # type: ignore[index]

    def test_detach_stops_recording(
        self, audit: DelegationAuditLogger, registry: DelegationRegistry
    ) -> None:
        audit.attach(registry)
        audit.detach(registry)
        registry.grant("alice", "bob", "payroll", 30)
        assert audit.read_log() == []
