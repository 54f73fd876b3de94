#!/usr/bin/env python3
"""Example: Quickstart

Demonstrates an employee delegating access to their payroll record to an
accountant for 30 days, then revoking it.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install decryption-delegation
"""
from __future__ import annotations

import delegation_registry
from delegation_registry import (
    DelegationAuditLogger,
    DelegationRegistry,
    DelegationService,
    ManualClock,
    ResourceDirectory,
)

T0 = 1_700_000_000


def main() -> None:
    print(f"decryption-delegation version: {delegation_registry.__version__}")

    # Step 1: Wire a directory, registry and service around a fixed clock
    clock = ManualClock(T0)
    directory = ResourceDirectory()
    registry = DelegationRegistry(directory, clock=clock)
    audit = DelegationAuditLogger()
    service = DelegationService(registry, directory, audit=audit)

    # Step 2: Alice holds a salary record under the "payroll" scope
    service.register_resource("alice", "payroll", resource_id="salary-handle")

    # Step 3: Alice delegates to Bob for 30 days
    expires_at = service.delegate("alice", "bob", "payroll", duration_units=30)
    print(f"Delegation expires at {expires_at} (T0 + {expires_at - T0} s)")
    print(f"Active after 1000 s: {registry.is_active('alice', 'bob', 'payroll', now=T0 + 1000)}")

    # Step 4: Alice revokes
    service.revoke("alice", "bob", "payroll")
    print(f"Expiry after revoke: {registry.get_expiry('alice', 'bob', 'payroll')}")

    print("\nAudit trail:")
    for entry in audit.read_log():
        print(f"  {entry['event_type']}: {entry['details']}")


if __name__ == "__main__":
    main()
