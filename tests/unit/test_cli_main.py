"""Tests for delegation_registry.cli.main — CLI commands via Click test runner."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from delegation_registry.cli.main import cli

T0 = 1_700_000_000
DAY = 86_400


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "state.json"


def invoke(runner: CliRunner, state_file: Path, *args: str, now: int = T0):
    return runner.invoke(cli, ["--state-file", str(state_file), "--now", str(now), *args])


@pytest.fixture()
def with_resource(runner: CliRunner, state_file: Path) -> Path:
    result = invoke(runner, state_file, "resource", "add", "alice", "payroll", "-r", "salary-handle")
    assert result.exit_code == 0, result.output
    return state_file


# ---------------------------------------------------------------------------
# Root CLI
# ---------------------------------------------------------------------------


class TestRootCLI:
    def test_help_exits_zero(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0

    def test_version_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "decryption-delegation" in result.output

    def test_invalid_config_is_usage_error(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--max-duration", "0", "version"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# resource
# ---------------------------------------------------------------------------


class TestResourceCommands:
    def test_add_persists_to_file(self, with_resource: Path) -> None:
        data = json.loads(with_resource.read_text(encoding="utf-8"))
        assert data["resources"][0]["owner"] == "alice"
        assert data["resources"][0]["resource_id"] == "salary-handle"

    def test_add_duplicate_exits_nonzero(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(runner, with_resource, "resource", "add", "alice", "payroll")
        assert result.exit_code != 0

    def test_add_invalid_metadata_exits_nonzero(self, runner: CliRunner, state_file: Path) -> None:
        result = invoke(runner, state_file, "resource", "add", "alice", "payroll", "-m", "{bad json}")
        assert result.exit_code != 0

    def test_list(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(runner, with_resource, "resource", "list")
        assert result.exit_code == 0
        assert "alice" in result.output

    def test_list_empty(self, runner: CliRunner, state_file: Path) -> None:
        result = invoke(runner, state_file, "resource", "list")
        assert result.exit_code == 0
        assert "No resources" in result.output

    def test_remove(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(runner, with_resource, "resource", "remove", "alice", "payroll")
        assert result.exit_code == 0
        data = json.loads(with_resource.read_text(encoding="utf-8"))
        assert data["resources"] == []

    def test_remove_missing_exits_nonzero(self, runner: CliRunner, state_file: Path) -> None:
        result = invoke(runner, state_file, "resource", "remove", "alice", "payroll")
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# delegation
# ---------------------------------------------------------------------------


class TestGrantCommand:
    def test_grant_persists_expiry(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(runner, with_resource, "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "30")
        assert result.exit_code == 0, result.output
        assert str(T0 + 30 * DAY) in result.output
        data = json.loads(with_resource.read_text(encoding="utf-8"))
        assert data["delegations"][0]["expires_at"] == T0 + 30 * DAY

    def test_grant_zero_duration_fails(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(runner, with_resource, "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "0")
        assert result.exit_code == 1
        assert "Invalid duration" in result.output

    def test_grant_to_self_fails(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(runner, with_resource, "delegation", "grant", "alice", "alice", "-s", "payroll", "-d", "3")
        assert result.exit_code == 1

    def test_grant_without_resource_fails(self, runner: CliRunner, state_file: Path) -> None:
        result = invoke(runner, state_file, "delegation", "grant", "carol", "bob", "-s", "payroll", "-d", "3")
        assert result.exit_code == 1

    def test_grant_as_other_identity_fails(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(
            runner, with_resource, "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "3", "--as", "mallory"
        )
        assert result.exit_code == 1

    def test_custom_unit_length(self, runner: CliRunner, with_resource: Path) -> None:
        result = runner.invoke(
            cli,
            [
                "--state-file", str(with_resource), "--now", str(T0), "--unit-length", "60",
                "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "5",
            ],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(with_resource.read_text(encoding="utf-8"))
        assert data["delegations"][0]["expires_at"] == T0 + 300


class TestRevokeCommand:
    def test_revoke_existing(self, runner: CliRunner, with_resource: Path) -> None:
        invoke(runner, with_resource, "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "30")
        result = invoke(runner, with_resource, "delegation", "revoke", "alice", "bob", "-s", "payroll")
        assert result.exit_code == 0
        assert "Revoked" in result.output
        data = json.loads(with_resource.read_text(encoding="utf-8"))
        assert data["delegations"] == []

    def test_revoke_absent_succeeds(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(runner, with_resource, "delegation", "revoke", "alice", "bob", "-s", "payroll")
        assert result.exit_code == 0
        assert "No delegation" in result.output


class TestStatusCommand:
    def _status(self, runner: CliRunner, state_file: Path, now: int) -> dict[str, object]:
        result = invoke(runner, state_file, "delegation", "status", "alice", "bob", "-s", "payroll", "--json", now=now)
        assert result.exit_code == 0, result.output
        return json.loads(result.output)

    def test_active_then_expired(self, runner: CliRunner, with_resource: Path) -> None:
        invoke(runner, with_resource, "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "30")

        during = self._status(runner, with_resource, T0 + 1000)
        assert during["active"] is True
        assert during["state"] == "active"

        after = self._status(runner, with_resource, T0 + 30 * DAY + 1)
        assert after["active"] is False
        assert after["state"] == "expired"
        assert after["expires_at"] == T0 + 30 * DAY

    def test_absent(self, runner: CliRunner, with_resource: Path) -> None:
        status = self._status(runner, with_resource, T0)
        assert status["expires_at"] == 0
        assert status["state"] == "absent"

    def test_human_output(self, runner: CliRunner, with_resource: Path) -> None:
        result = invoke(runner, with_resource, "delegation", "status", "alice", "bob", "-s", "payroll")
        assert result.exit_code == 0
        assert "no delegation" in result.output


class TestListAndPurge:
    def test_list(self, runner: CliRunner, with_resource: Path) -> None:
        invoke(runner, with_resource, "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "30")
        result = invoke(runner, with_resource, "delegation", "list")
        assert result.exit_code == 0
        assert "bob" in result.output
        assert "Total: 1" in result.output

    def test_list_empty(self, runner: CliRunner, state_file: Path) -> None:
        result = invoke(runner, state_file, "delegation", "list")
        assert result.exit_code == 0
        assert "No delegations" in result.output

    def test_purge_removes_expired(self, runner: CliRunner, with_resource: Path) -> None:
        invoke(runner, with_resource, "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "1")
        invoke(runner, with_resource, "delegation", "grant", "alice", "carol", "-s", "payroll", "-d", "10")
        result = invoke(runner, with_resource, "delegation", "purge", now=T0 + 2 * DAY)
        assert result.exit_code == 0
        assert "Purged 1" in result.output
        data = json.loads(with_resource.read_text(encoding="utf-8"))
        assert [d["delegate"] for d in data["delegations"]] == ["carol"]


class TestCorruptStateFile:
    @pytest.fixture()
    def corrupt_state(self, state_file: Path) -> Path:
        state_file.write_text(
            json.dumps(
                {
                    "resources": [
                        {"owner": "alice", "scope": "payroll"},
                        {"owner": "dave", "scope": "payroll"},
                    ],
                    "delegations": [
                        {"owner": "alice", "delegate": "bob", "scope": "payroll", "expires_at": T0 + DAY},
                        {"owner": "alice", "delegate": "erin", "scope": "payroll"},
                    ],
                }
            ),
            encoding="utf-8",
        )
        return state_file

    def test_grant_exits_with_error_and_leaves_file_unchanged(
        self, runner: CliRunner, corrupt_state: Path
    ) -> None:
        before = corrupt_state.read_bytes()
        result = invoke(runner, corrupt_state, "delegation", "grant", "dave", "carol", "-s", "payroll", "-d", "3")
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "Could not load state file" in result.output
        assert corrupt_state.read_bytes() == before

    def test_resource_add_leaves_file_unchanged(self, runner: CliRunner, corrupt_state: Path) -> None:
        before = corrupt_state.read_bytes()
        result = invoke(runner, corrupt_state, "resource", "add", "frank", "payroll")
        assert result.exit_code == 1
        assert corrupt_state.read_bytes() == before

    def test_invalid_json_exits_with_error(self, runner: CliRunner, state_file: Path) -> None:
        state_file.write_text("{not json", encoding="utf-8")
        result = invoke(runner, state_file, "delegation", "list")
        assert result.exit_code == 1
        assert state_file.read_text(encoding="utf-8") == "{not json"

    def test_non_object_state_exits_with_error(self, runner: CliRunner, state_file: Path) -> None:
        state_file.write_text("[]", encoding="utf-8")
        result = invoke(runner, state_file, "resource", "list")
        assert result.exit_code == 1


class TestAuditLogOption:
    def test_grant_written_to_audit_log(
        self, runner: CliRunner, with_resource: Path, tmp_path: Path
    ) -> None:
        audit_file = tmp_path / "audit.jsonl"
        result = runner.invoke(
            cli,
            [
                "--state-file", str(with_resource), "--now", str(T0), "--audit-log", str(audit_file),
                "delegation", "grant", "alice", "bob", "-s", "payroll", "-d", "2",
            ],
        )
        assert result.exit_code == 0, result.output
        entries = [json.loads(line) for line in audit_file.read_text(encoding="utf-8").splitlines()]
        assert entries[-1]["event_type"] == "delegation_granted"
        assert entries[-1]["details"]["expires_at"] == T0 + 2 * DAY
