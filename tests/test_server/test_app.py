"""Tests for delegation_registry.server.app — HTTP handler integration."""
from __future__ import annotations

import http.client
import json
import threading
from typing import Iterator

import pytest

from delegation_registry.clock import ManualClock
from delegation_registry.directory import ResourceDirectory
from delegation_registry.registry import DelegationRegistry
from delegation_registry.server.app import DelegationServer, create_server
from delegation_registry.service import DelegationService

T0 = 1_700_000_000
ADMIN = "hr-manager"


@pytest.fixture()
def server() -> Iterator[DelegationServer]:
    directory = ResourceDirectory()
    service = DelegationService(
        DelegationRegistry(directory, clock=ManualClock(T0)), directory, administrators=[ADMIN]
    )
    server = create_server(host="127.0.0.1", port=0, service=service)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


def request(
    server: DelegationServer,
    method: str,
    path: str,
    body: object | None = None,
    identity: str | None = None,
    raw: bytes | None = None,
) -> tuple[int, dict[str, object]]:
    host, port = server.server_address[:2]
    conn = http.client.HTTPConnection(str(host), port, timeout=5)
    headers = {"Content-Type": "application/json"}
    if identity is not None:
        headers["X-Requesting-Identity"] = identity
    payload = raw if raw is not None else (json.dumps(body).encode("utf-8") if body is not None else None)
    try:
        conn.request(method, path, body=payload, headers=headers)
        response = conn.getresponse()
        return response.status, json.loads(response.read().decode("utf-8"))
    finally:
        conn.close()


class TestHttpRoundTrip:
    def test_health(self, server: DelegationServer) -> None:
        status, data = request(server, "GET", "/health")
        assert status == 200
        assert data["service"] == "decryption-delegation"

    def test_grant_status_revoke(self, server: DelegationServer) -> None:
        status, _ = request(server, "POST", "/resources", {"owner": "alice", "scope": "payroll"}, identity=ADMIN)
        assert status == 201

        status, data = request(
            server,
            "POST",
            "/delegations",
            {"delegate": "bob", "scope": "payroll", "duration_units": 30},
            identity="alice",
        )
        assert status == 201
        assert data["expires_at"] == T0 + 2_592_000

        status, data = request(server, "GET", "/delegations/status?owner=alice&delegate=bob&scope=payroll")
        assert status == 200
        assert data["active"] is True

        status, _ = request(
            server, "DELETE", "/delegations", {"delegate": "bob", "scope": "payroll"}, identity="alice"
        )
        assert status == 200

        _, data = request(server, "GET", "/delegations/status?owner=alice&delegate=bob&scope=payroll")
        assert data["expires_at"] == 0
        assert data["state"] == "absent"

    def test_grant_without_identity_header(self, server: DelegationServer) -> None:
        status, _ = request(server, "POST", "/delegations", {"delegate": "bob", "scope": "payroll", "duration_units": 1})
        assert status == 401

    def test_invalid_json_body(self, server: DelegationServer) -> None:
        status, data = request(server, "POST", "/resources", raw=b"{not json")
        assert status == 400
        assert data["error"] == "Invalid JSON"

    def test_non_object_body(self, server: DelegationServer) -> None:
        status, _ = request(server, "POST", "/resources", raw=b"[1, 2]")
        assert status == 400

    def test_unknown_route(self, server: DelegationServer) -> None:
        status, _ = request(server, "GET", "/nope")
        assert status == 404

    def test_resource_changes_require_identity(self, server: DelegationServer) -> None:
        status, _ = request(server, "POST", "/resources", {"owner": "alice", "scope": "payroll"})
        assert status == 401
        status, _ = request(server, "DELETE", "/resources", {"owner": "alice", "scope": "payroll"})
        assert status == 401

    def test_resource_changes_by_non_administrator_are_forbidden(self, server: DelegationServer) -> None:
        status, _ = request(server, "POST", "/resources", {"owner": "alice", "scope": "payroll"}, identity="mallory")
        assert status == 403

        status, _ = request(server, "POST", "/resources", {"owner": "alice", "scope": "payroll"}, identity=ADMIN)
        assert status == 201
        status, _ = request(server, "DELETE", "/resources", {"owner": "alice", "scope": "payroll"}, identity="mallory")
        assert status == 403

        _, data = request(server, "GET", "/health")
        assert data["resource_count"] == 1
