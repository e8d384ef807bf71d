"""Sync commands for the ledgersync CLI.

Commands:
- sync: Run a sync pass (or keep syncing with --watch)
- status: Show the sync status
- conflicts: List conflicts waiting for a decision
- resolve: Decide pending conflicts
"""

from __future__ import annotations

import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import click

from ledgersync.client.cli.config import get_state_db_path, load_config

if TYPE_CHECKING:
    from ledgersync.client.network import NetworkMonitor
    from ledgersync.client.sync import SyncOrchestrator, SyncResult
    from ledgersync.client.sync.domain import FieldConflict

SIDE_ALIASES = {
    "local": "use-local",
    "use-local": "use-local",
    "remote": "use-remote",
    "use-remote": "use-remote",
}

# Only meaningful for delete/edit conflicts
DELETION_ALIASES = {
    "deleted": "DELETED",
    "edited": "EDITED",
}


@contextmanager
def open_engine(probe: bool = True) -> Iterator[tuple[SyncOrchestrator, NetworkMonitor]]:
    """Build the orchestrator from the saved configuration.

    Args:
        probe: Check server reachability before handing the engine out.

    Yields:
        (orchestrator, network monitor)
    """
    from ledgersync.client.api import HTTPClient
    from ledgersync.client.network import NetworkMonitor
    from ledgersync.client.state import LocalRecordStore
    from ledgersync.client.sync import SyncOrchestrator
    from ledgersync.core.config import ServerConfig, SyncSettings

    config = load_config()
    if not config.get("server_url") or not config.get("replica_id"):
        click.echo("Error: Not initialized. Run 'ledgersync init' first.", err=True)
        sys.exit(1)

    settings = SyncSettings()
    server_config = ServerConfig(server_url=config["server_url"], token=config.get("auth_token", ""))
    client = HTTPClient(server_config)
    store = LocalRecordStore(get_state_db_path())
    network = NetworkMonitor(client, check_interval=settings.network_check_interval)
    if probe:
        network.check_now()

    orchestrator = SyncOrchestrator(
        store,
        client,
        network,
        replica_id=config["replica_id"],
        settings=settings,
    )
    try:
        yield orchestrator, network
    finally:
        network.stop()
        client.close()
        store.close()


def _echo_result(result: SyncResult) -> None:
    from ledgersync.client.sync.domain import format_conflict_message

    if result.coalesced:
        click.echo("A sync is already running; a follow-up pass was queued.")
        return
    click.echo(f"Synced {result.items_synced} item(s).")
    for conflict in result.conflicts:
        click.echo(f"  ! {format_conflict_message(conflict)}")
    for error in result.errors:
        click.echo(f"  x {error}", err=True)


@click.command()
@click.option("--watch", "-w", is_flag=True, help="Keep syncing on a timer and on reconnect.")
def sync(watch: bool) -> None:
    """Synchronize ledgers, transactions and categories with the server.

    Pulls remote changes, merges them with local edits and pushes the
    result. Conflicting edits are kept and listed; decide them with
    'ledgersync resolve'.
    """
    from ledgersync.client.sync import SyncScheduler

    with open_engine() as (orchestrator, network):
        if not watch:
            result = orchestrator.sync_all()
            _echo_result(result)
            if not result.success:
                sys.exit(1)
            return

        scheduler = SyncScheduler(orchestrator, network, on_pass_complete=_echo_result)
        network.start()
        scheduler.start()
        click.echo("Watching for changes. Press Ctrl+C to stop.")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            click.echo("\nStopping...")
        finally:
            scheduler.stop()


@click.command()
def status() -> None:
    """Show the sync status of this replica."""
    with open_engine() as (orchestrator, _network):
        current = orchestrator.get_status()

    last = current.last_sync_time.isoformat() if current.last_sync_time else "never"
    click.echo(f"Status:            {current.indicator.value}")
    click.echo(f"Server reachable:  {'yes' if current.online else 'no'}")
    click.echo(f"Last sync:         {last}")
    click.echo(f"Pending changes:   {current.pending_changes}")
    click.echo(f"Pending conflicts: {current.pending_conflicts}")
    if current.last_error:
        click.echo(f"Last error:        {current.last_error}")


@click.command()
def conflicts() -> None:
    """List conflicts waiting for a decision."""
    from ledgersync.client.sync.domain import format_conflict_message, group_conflicts

    with open_engine(probe=False) as (orchestrator, _network):
        pending = orchestrator.pending_conflicts()

    if not pending:
        click.echo("No pending conflicts.")
        return

    for (kind, record_id), items in group_conflicts(pending).items():
        click.echo(f"{kind.value} {record_id}:")
        for conflict in items:
            click.echo(f"  [{conflict.key}] {format_conflict_message(conflict)}")


def _parse_choice(conflict: FieldConflict, raw: str) -> Any:
    """Turn a command-line choice into a resolution value."""
    from ledgersync.core.records import record_type

    alias = SIDE_ALIASES.get(raw.lower())
    if alias is not None:
        return alias
    if conflict.is_deletion:
        if raw.lower() in DELETION_ALIASES:
            return DELETION_ALIASES[raw.lower()]
        raise click.BadParameter(
            "deletion conflicts take local, remote, deleted or edited", param_hint="CHOICE"
        )
    spec = record_type(conflict.kind).field_spec(conflict.field)
    try:
        return spec.decode(raw)
    except (ValueError, TypeError) as e:
        raise click.BadParameter(
            f"invalid value for {conflict.field}: {e}", param_hint="CHOICE"
        ) from e


@click.command()
@click.argument("key", required=False)
@click.argument("choice", required=False)
@click.option(
    "--all",
    "resolve_all",
    is_flag=True,
    help="Resolve every remaining conflict to the remote value.",
)
def resolve(key: str | None, choice: str | None, resolve_all: bool) -> None:
    """Decide a pending conflict.

    KEY is shown by 'ledgersync conflicts' (record id and field).
    CHOICE is local, remote, an explicit value, or deleted/edited for
    deletion conflicts. With --all, undecided conflicts take the remote
    value and are reported as defaulted.
    """
    if key is None and not resolve_all:
        raise click.UsageError("Give KEY and CHOICE, or --all.")
    if key is not None and choice is None:
        raise click.UsageError("Missing CHOICE for KEY.")

    with open_engine(probe=False) as (orchestrator, _network):
        resolutions: dict[str, Any] = {}
        if key is not None and choice is not None:
            pending = {c.key: c for c in orchestrator.pending_conflicts()}
            if key not in pending:
                click.echo(f"Error: No pending conflict {key}.", err=True)
                sys.exit(1)
            resolutions[key] = _parse_choice(pending[key], choice)

        outcome = orchestrator.resolve_conflicts(resolutions, resolve_all=resolve_all)

    for applied in outcome.applied:
        origin = "default: remote wins" if applied.defaulted else "chosen"
        click.echo(f"Resolved {applied.conflict.key} -> {applied.value!r} ({origin})")
    if outcome.unresolved:
        click.echo(f"{len(outcome.unresolved)} conflict(s) still pending.")
    click.echo("Run 'ledgersync sync' to push the decisions.")
