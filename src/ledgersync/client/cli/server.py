"""Server administration commands for the ledgersync CLI.

Commands:
- server run: Serve the record store over HTTP
- server add-replica: Register a replica and print its token
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click


def _resolve_db_path(db_path: str | None) -> Path:
    return Path(db_path or os.environ.get("LEDGERSYNC_DB_PATH", "ledgersync.db"))


@click.group()
def server() -> None:
    """Server management commands.

    These commands are for administrators running the ledgersync server.
    """


@server.command("run")
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", type=int, default=8000, show_default=True, help="Port to listen on.")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: LEDGERSYNC_DB_PATH or ./ledgersync.db).",
)
@click.option(
    "--log-path",
    type=click.Path(),
    default=None,
    help="Also write logs to this file.",
)
def run_cmd(host: str, port: int, db_path: str | None, log_path: str | None) -> None:
    """Run the ledgersync server."""
    import uvicorn

    from ledgersync.server.app import create_app, setup_logging
    from ledgersync.server.database import Database

    setup_logging(Path(log_path) if log_path else None)
    app = create_app(Database(_resolve_db_path(db_path)))
    uvicorn.run(app, host=host, port=port)


@server.command("add-replica")
@click.argument("name")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: LEDGERSYNC_DB_PATH or ./ledgersync.db).",
)
def add_replica_cmd(name: str, db_path: str | None) -> None:
    """Register replica NAME and print a new token for it.

    The token is shown once; pass it to 'ledgersync init --token' on the
    replica's device.

    Examples:

        ledgersync server add-replica laptop --db-path /var/lib/ledgersync/ledgersync.db
    """
    from ledgersync.client.cli.config import sanitize_replica_name
    from ledgersync.server.database import Database

    safe_name = sanitize_replica_name(name)
    db = Database(_resolve_db_path(db_path))
    try:
        replica = db.get_replica_by_name(safe_name)
        if replica is None:
            replica = db.create_replica(safe_name)
            click.echo(f"Registered replica '{safe_name}'.")
        else:
            click.echo(f"Replica '{safe_name}' already exists; issuing a new token.")
        raw_token, _token = db.create_token(replica.id)
    finally:
        db.close()

    if not raw_token:
        click.echo("Error: Failed to create token.", err=True)
        sys.exit(1)
    click.echo(f"Token: {raw_token}")
