"""Command-line interface for ledgersync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- init: Configure this device as a replica
- sync: Synchronize records with the server
- status: Show the sync status
- conflicts: List pending conflicts
- resolve: Decide pending conflicts
- server: Server administration commands
"""

from __future__ import annotations

import logging

import click

from ledgersync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_state_db_path,
    load_config,
    sanitize_replica_name,
    save_config,
)
from ledgersync.client.cli.init import init
from ledgersync.client.cli.server import server
from ledgersync.client.cli.sync import conflicts, resolve, status, sync


@click.group()
@click.version_option(package_name="ledgersync")
@click.option("--verbose", "-v", is_flag=True, help="Log sync activity to stderr.")
def cli(verbose: bool) -> None:
    """ledgersync - Multi-replica sync for ledgers, transactions and categories."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


# Setup
cli.add_command(init)

# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(conflicts)
cli.add_command(resolve)

# Server admin commands
cli.add_command(server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "get_state_db_path",
    "load_config",
    "sanitize_replica_name",
    "save_config",
]
