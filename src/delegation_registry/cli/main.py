"""CLI entry point for decryption-delegation.

Invoked as::

    delegation [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m delegation_registry.cli.main

Commands
--------
resource add          Register an owner's resource under a scope
resource remove       Remove an owner's resource
resource list         List registered resources
delegation grant      Grant a delegate time-bounded access
delegation revoke     Revoke a delegation
delegation status     Show expiry and activity of one delegation
delegation list       List stored delegations
delegation purge      Drop expired delegations
serve                 Run the JSON HTTP API
"""
from __future__ import annotations

import datetime
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from delegation_registry import __version__
from delegation_registry.audit import DelegationAuditLogger
from delegation_registry.clock import Clock, ManualClock, SystemClock
from delegation_registry.config import RegistryConfig
from delegation_registry.directory import ResourceDirectory, ResourceRecord
from delegation_registry.errors import (
    DelegationError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
)
from delegation_registry.registry import DelegationRecord, DelegationRegistry
from delegation_registry.service import DelegationService

console = Console()


@dataclass
class CLIState:
    """Options shared by every sub-command."""

    state_file: str | None
    config: RegistryConfig
    clock: Clock
    audit_log: str | None


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="decryption-delegation")
@click.option(
    "--state-file",
    type=click.Path(dir_okay=False),
    default=None,
    envvar="DELEGATION_STATE_FILE",
    help="JSON file persisting resources and delegations between invocations.",
)
@click.option(
    "--unit-length",
    type=int,
    default=None,
    help="Seconds per duration unit (default: DELEGATION_UNIT_LENGTH or 86400).",
)
@click.option(
    "--max-duration",
    type=int,
    default=None,
    help="Maximum units per grant (default: DELEGATION_MAX_DURATION or 365).",
)
@click.option(
    "--now",
    "now",
    type=int,
    default=None,
    help="Evaluate as of this epoch second instead of the wall clock.",
)
@click.option(
    "--audit-log",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append audit events to this JSONL file.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    state_file: str | None,
    unit_length: int | None,
    max_duration: int | None,
    now: int | None,
    audit_log: str | None,
) -> None:
    """Time-bounded, revocable, scoped delegation registry"""
    overrides = {
        k: v
        for k, v in (("unit_length", unit_length), ("max_duration", max_duration))
        if v is not None
    }
    try:
        config = RegistryConfig.model_validate(
            {**RegistryConfig.from_env().model_dump(), **overrides}
        )
    except ValidationError as exc:
        raise click.BadParameter(str(exc)) from exc

    ctx.obj = CLIState(
        state_file=state_file,
        config=config,
        clock=ManualClock(now) if now is not None else SystemClock(),
        audit_log=audit_log,
    )


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    console.print(f"[bold]decryption-delegation[/bold] v{__version__}")


# ------------------------------------------------------------------
# resource command group
# ------------------------------------------------------------------


@cli.group(name="resource")
def resource_group() -> None:
    """Manage which owners control resources under which scopes."""


@resource_group.command(name="add")
@click.argument("owner")
@click.argument("scope")
@click.option("--resource-id", "-r", default="", help="Opaque handle of the protected value.")
@click.option(
    "--metadata",
    "-m",
    default=None,
    help="JSON object of arbitrary metadata (e.g. '{\"team\": \"finance\"}').",
)
@click.pass_obj
def resource_add_command(
    state: CLIState, owner: str, scope: str, resource_id: str, metadata: str | None
) -> None:
    """Record that OWNER controls a resource under SCOPE."""
    parsed_metadata: dict[str, object] = {}
    if metadata:
        try:
            parsed_metadata = json.loads(metadata)
        except json.JSONDecodeError as exc:
            console.print(f"[red]Error:[/red] --metadata is not valid JSON: {exc}")
            sys.exit(1)

    service = _load_service(state)
    try:
        record = service.register_resource(owner, scope, resource_id=resource_id, metadata=parsed_metadata)
    except ResourceAlreadyExistsError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    _save_service(service, state)
    console.print(f"[green]Added[/green] resource for [bold]{owner}[/bold] under scope [bold]{scope}[/bold]")
    console.print(f"  Resource ID: {record.resource_id or '(none)'}")
    console.print(f"  Registered:  {record.registered_at.isoformat()}")


@resource_group.command(name="remove")
@click.argument("owner")
@click.argument("scope")
@click.pass_obj
def resource_remove_command(state: CLIState, owner: str, scope: str) -> None:
    """Remove OWNER's resource under SCOPE.

    Delegations against it are kept but stop being active.
    """
    service = _load_service(state)
    try:
        service.remove_resource(owner, scope)
    except ResourceNotFoundError as exc:
        console.print(f"[red]Error:[/red] {exc.args[0]}")
        sys.exit(1)

    _save_service(service, state)
    console.print(f"[red]Removed[/red] resource for [bold]{owner}[/bold] under scope [bold]{scope}[/bold]")


@resource_group.command(name="list")
@click.option("--owner", "-o", default=None, help="Filter by owner.")
@click.option("--scope", "-s", default=None, help="Filter by scope.")
@click.pass_obj
def resource_list_command(state: CLIState, owner: str | None, scope: str | None) -> None:
    """List registered resources."""
    service = _load_service(state)
    records = service.directory.list_resources(owner=owner, scope=scope)

    if not records:
        console.print("[yellow]No resources found matching your criteria.[/yellow]")
        return

    table = Table(title="Resources", show_header=True)
    table.add_column("Owner", style="cyan")
    table.add_column("Scope")
    table.add_column("Resource ID")
    table.add_column("Registered")
    for record in records:
        table.add_row(record.owner, record.scope, record.resource_id or "(none)", record.registered_at.isoformat())

    console.print(table)
    console.print(f"\nTotal: {len(records)} resource(s)")


# ------------------------------------------------------------------
# delegation command group
# ------------------------------------------------------------------


@cli.group(name="delegation")
def delegation_group() -> None:
    """Grant, revoke and inspect delegations."""


@delegation_group.command(name="grant")
@click.argument("owner")
@click.argument("delegate")
@click.option("--scope", "-s", required=True, help="Scope the delegation applies to.")
@click.option(
    "--duration",
    "-d",
    type=int,
    required=True,
    help="Lifetime in duration units (days by default).",
)
@click.option(
    "--as",
    "requester",
    default=None,
    help="Identity making the request (defaults to OWNER).",
)
@click.pass_obj
def grant_command(
    state: CLIState,
    owner: str,
    delegate: str,
    scope: str,
    duration: int,
    requester: str | None,
) -> None:
    """Grant DELEGATE access to OWNER's resource."""
    service = _load_service(state)
    try:
        expires_at = service.grant_on_behalf(requester or owner, owner, delegate, scope, duration)
    except DelegationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    _save_service(service, state)
    console.print(f"[green]Granted[/green] [bold]{delegate}[/bold] access to [bold]{owner}[/bold]'s resource")
    console.print(f"  Scope:    {scope}")
    console.print(f"  Expires:  {expires_at} ({_format_timestamp(expires_at)})")


@delegation_group.command(name="revoke")
@click.argument("owner")
@click.argument("delegate")
@click.option("--scope", "-s", required=True, help="Scope the delegation applies to.")
@click.option(
    "--as",
    "requester",
    default=None,
    help="Identity making the request (defaults to OWNER).",
)
@click.pass_obj
def revoke_command(
    state: CLIState,
    owner: str,
    delegate: str,
    scope: str,
    requester: str | None,
) -> None:
    """Revoke DELEGATE's access to OWNER's resource.

    Revoking a delegation that does not exist succeeds.
    """
    service = _load_service(state)
    existed = service.registry.get_expiry(owner, delegate, scope) != 0
    try:
        service.revoke_on_behalf(requester or owner, owner, delegate, scope)
    except DelegationError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    _save_service(service, state)
    if existed:
        console.print(f"[red]Revoked[/red] delegation {owner} -> {delegate} ({scope})")
    else:
        console.print(f"[yellow]No delegation {owner} -> {delegate} ({scope}) to revoke.[/yellow]")


@delegation_group.command(name="status")
@click.argument("owner")
@click.argument("delegate")
@click.option("--scope", "-s", required=True, help="Scope the delegation applies to.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the status as JSON.")
@click.pass_obj
def status_command(
    state: CLIState, owner: str, delegate: str, scope: str, as_json: bool
) -> None:
    """Show the expiry and activity of one delegation."""
    service = _load_service(state)
    status = service.status(owner, delegate, scope)

    if as_json:
        click.echo(status.model_dump_json(indent=2))
        return

    active_str = "[green]Yes[/green]" if status.active else "[red]No[/red]"
    expiry_str = (
        f"{status.expires_at} ({_format_timestamp(status.expires_at)})"
        if status.expires_at
        else "(no delegation)"
    )
    console.print(f"  Delegation: {owner} -> {delegate} ({scope})")
    console.print(f"  State:      [bold]{status.state.value}[/bold]")
    console.print(f"  Active:     {active_str}")
    console.print(f"  Expires:    {expiry_str}")


@delegation_group.command(name="list")
@click.option("--owner", "-o", default=None, help="Filter by owner.")
@click.option("--delegate", "-d", default=None, help="Filter by delegate.")
@click.option("--scope", "-s", default=None, help="Filter by scope.")
@click.pass_obj
def list_command(
    state: CLIState,
    owner: str | None,
    delegate: str | None,
    scope: str | None,
) -> None:
    """List stored delegations, including expired ones."""
    service = _load_service(state)
    records = service.registry.list_delegations(owner=owner, delegate=delegate, scope=scope)

    if not records:
        console.print("[yellow]No delegations found matching your criteria.[/yellow]")
        return

    now = state.clock.now()
    table = Table(title="Delegations", show_header=True)
    table.add_column("Owner", style="cyan")
    table.add_column("Delegate")
    table.add_column("Scope")
    table.add_column("Expires")
    table.add_column("Active", justify="center")

    for record in records:
        active = service.registry.is_active(record.key.owner, record.key.delegate, record.key.scope, now=now)
        table.add_row(
            record.key.owner,
            record.key.delegate,
            record.key.scope,
            _format_timestamp(record.expires_at),
            "[green]Yes[/green]" if active else "[red]No[/red]",
        )

    console.print(table)
    console.print(f"\nTotal: {len(records)} delegation(s)")


@delegation_group.command(name="purge")
@click.pass_obj
def purge_command(state: CLIState) -> None:
    """Remove delegations whose expiry has passed."""
    service = _load_service(state)
    removed = service.registry.purge_expired()
    _save_service(service, state)
    console.print(f"Purged {removed} expired delegation(s).")


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------


@cli.command(name="serve")
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=int, default=8080, show_default=True, help="TCP port.")
@click.option(
    "--admin",
    "administrators",
    multiple=True,
    metavar="IDENTITY",
    help="Identity allowed to add and remove resources over HTTP (repeatable).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    show_default=True,
)
@click.pass_obj
def serve_command(
    state: CLIState, host: str, port: int, administrators: tuple[str, ...], log_level: str
) -> None:
    """Run the JSON HTTP API in the foreground (state is in-memory only)."""
    from delegation_registry.server.app import build_service, run_server

    logging.basicConfig(level=getattr(logging, log_level))
    audit = DelegationAuditLogger(Path(state.audit_log)) if state.audit_log else None
    run_server(
        host=host,
        port=port,
        service=build_service(config=state.config, audit=audit, administrators=administrators),
    )


# ------------------------------------------------------------------
# Helpers: file-backed persistence for CLI use
# ------------------------------------------------------------------


def _format_timestamp(timestamp: int) -> str:
    return datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc).isoformat()


def _load_service(state: CLIState) -> DelegationService:
    """Build a service, pre-populated from the state file if it exists.

    An unreadable state file aborts the command with exit code 1 so that a
    later save never overwrites records that failed to load.
    """
    directory = ResourceDirectory()
    registry = DelegationRegistry(directory, config=state.config, clock=state.clock)

    if state.state_file and Path(state.state_file).exists():
        try:
            data: dict[str, list[dict[str, object]]] = json.loads(
                Path(state.state_file).read_text(encoding="utf-8")
            )
            resources = [ResourceRecord.from_dict(r) for r in data.get("resources") or []]
            delegations = [DelegationRecord.from_dict(d) for d in data.get("delegations") or []]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            console.print(f"[red]Error:[/red] Could not load state file {state.state_file}: {exc}")
            sys.exit(1)
        directory.restore(resources)
        registry.restore(delegations)

    audit = DelegationAuditLogger(Path(state.audit_log)) if state.audit_log else None
    return DelegationService(registry, directory, audit=audit)


def _save_service(service: DelegationService, state: CLIState) -> None:
    """Persist resources and delegations to the state file."""
    if not state.state_file:
        return
    data = {
        "resources": [r.to_dict() for r in service.directory.list_resources()],
        "delegations": [d.to_dict() for d in service.registry.snapshot()],
    }
    Path(state.state_file).write_text(json.dumps(data, indent=2), encoding="utf-8")


if __name__ == "__main__":
    cli()
