"""Private endpoint manager CLI (pem).

Runs the event pipeline outside the queue host, for replaying events and
checking configuration.

Usage:
    pem process event.json              # Dry-run an event from a file
    pem process - --no-dry-run < e.json # Apply an event read from stdin
    pem parse-id <resource-id>          # Show how a resource ID is decomposed
    pem mappings                        # List loaded DNS zone mappings
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import IO

import click

from .config import Config, ConfigurationError
from .identifiers import UnparsableResourceIdError, parse_resource_id
from .main import build_processor, setup_logging
from .mappings import ZoneMappingLoadError, load_zone_mappings
from .models import EventPayloadError
from .processor import GroupIdStatus
from .retry import RetryExhaustedError
from .security import SecretlessViolationError

STATUS_COLORS = {
    GroupIdStatus.CONFIGURED: "green",
    GroupIdStatus.SKIPPED: "yellow",
    GroupIdStatus.FAILED: "red",
}


def load_config(mappings_file: str | None, dry_run: bool | None = None) -> Config:
    """Load environment configuration with command-line overrides."""
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    overrides: dict[str, object] = {}
    if mappings_file:
        overrides["zone_mappings_file"] = Path(mappings_file)
    if dry_run is not None:
        overrides["dry_run"] = dry_run
    return dataclasses.replace(config, **overrides) if overrides else config


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="pem")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def cli(verbose: bool) -> None:
    """Private endpoint manager CLI (pem).

    Links private endpoints to centrally managed private DNS zones.
    """
    setup_logging(json_output=False, level=logging.DEBUG if verbose else logging.WARNING)


@cli.command()
@click.argument("event_file", type=click.File("r"))
@click.option(
    "--mappings",
    "-m",
    "mappings_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Zone mappings file (default: $ZONE_MAPPINGS_FILE)",
)
@click.option("--dry-run/--no-dry-run", default=True, help="Dry run mode (default: true)")
@click.option("--json", "json_output", is_flag=True, help="Print the result as JSON")
def process(event_file: IO[str], mappings_file: str | None, dry_run: bool, json_output: bool) -> None:
    """Process one private endpoint event.

    \b
    Examples:
        pem process event.json
        pem process - --no-dry-run < event.json
    """
    config = load_config(mappings_file, dry_run)

    try:
        processor = build_processor(config)
        result = processor.process(event_file.read())
    except (
        ZoneMappingLoadError,
        EventPayloadError,
        UnparsableResourceIdError,
        SecretlessViolationError,
        RetryExhaustedError,
    ) as e:
        raise click.ClickException(str(e)) from e
    except Exception as e:
        raise click.ClickException(f"Event processing failed: {type(e).__name__}: {e}") from e

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo(f"Resource:  {result.resource_id}")
    click.echo(f"Dry run:   {config.dry_run}")
    click.echo(f"Tagging:   {result.tagging.value}")
    if not result.group_results:
        click.echo("No group IDs on this endpoint.")
    for group_result in result.group_results:
        line = f"  {group_result.group_id}: {group_result.status.value}"
        if group_result.zone_name:
            line += f" -> {group_result.zone_name}"
        if group_result.detail:
            line += f" ({group_result.detail})"
        click.secho(line, fg=STATUS_COLORS[group_result.status])


@cli.command("parse-id")
@click.argument("resource_id")
def parse_id(resource_id: str) -> None:
    """Show the subscription, resource group and name read from a resource ID."""
    try:
        identifier = parse_resource_id(resource_id)
    except UnparsableResourceIdError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Subscription:   {identifier.subscription_id}")
    click.echo(f"Resource group: {identifier.resource_group}")
    click.echo(f"Resource name:  {identifier.resource_name}")


@cli.command()
@click.option(
    "--mappings",
    "-m",
    "mappings_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Zone mappings file (default: $ZONE_MAPPINGS_FILE)",
)
def mappings(mappings_file: str | None) -> None:
    """List the DNS zone mapped to each group ID."""
    config = load_config(mappings_file)
    try:
        table = load_zone_mappings(config.zone_mappings_file)
    except ZoneMappingLoadError as e:
        raise click.ClickException(str(e)) from e

    if not table:
        click.echo("No zone mappings defined.")
        return
    for group_id in sorted(table):
        mapping = table[group_id]
        click.echo(f"{group_id}: {mapping.zone_name}")
        click.echo(f"  {mapping.zone_resource_id}")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
