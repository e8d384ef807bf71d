"""Init command for the ledgersync CLI.

Commands:
- init: Configure this device as a replica of a server
"""

from __future__ import annotations

import platform
import sys

import click

from ledgersync.client.cli.config import (
    get_config_file,
    load_config,
    sanitize_replica_name,
    save_config,
)


@click.command()
@click.option("--server-url", prompt="Server URL", help="Base URL of the ledgersync server.")
@click.option("--token", prompt="Replica token", hide_input=True, help="Token issued by the server.")
@click.option(
    "--replica-name",
    default=lambda: sanitize_replica_name(platform.node() or "replica"),
    show_default="hostname",
    help="Name recorded as last_modified_by on this device's edits.",
)
@click.option("--force", is_flag=True, help="Overwrite an existing configuration.")
def init(server_url: str, token: str, replica_name: str, force: bool) -> None:
    """Configure this device as a replica.

    Stores the server URL, token and replica name in the config file.
    """
    config = load_config()
    if config.get("server_url") and not force:
        click.echo(
            f"Error: Already initialized ({get_config_file()}). Use --force to overwrite.",
            err=True,
        )
        sys.exit(1)

    name = sanitize_replica_name(replica_name)
    if not name:
        click.echo("Error: Replica name cannot be empty.", err=True)
        sys.exit(1)

    config.update(
        {
            "server_url": server_url.rstrip("/"),
            "auth_token": token,
            "replica_id": name,
        }
    )
    save_config(config)
    click.echo(f"Initialized replica '{name}' for {config['server_url']}")
