"""CLI command handlers for inspecting and creating settings files."""

from __future__ import annotations

import sys
from dataclasses import asdict
from pathlib import Path

import click
import yaml

from ibc_migrator.cli.common import cli, handle_exception, open_store
from ibc_migrator.constants import DEFAULT_SETTINGS_FILE
from ibc_migrator.core.config import create_default_settings, load_settings
from ibc_migrator.exceptions import MigratorError

# ---------------------------------------------------------------------------
# show-config subcommand
# ---------------------------------------------------------------------------


@cli.command("show-config")
@click.option(
    "--settings",
    default=DEFAULT_SETTINGS_FILE,
    show_default=True,
    help="Path to settings YAML",
)
@click.option(
    "--state",
    default=None,
    help="Path to the migration record JSON (overrides state_path in settings)",
)
def show_config(settings: str, state: str | None) -> None:
    """Print the effective settings and the current migration record as YAML.

    Args:
        settings: Path to settings YAML.
        state: Path to the migration record, overriding the settings file.
    """
    try:
        cfg = load_settings(Path(settings))
        store = open_store(cfg, state)
        record = store.load()
    except MigratorError as e:
        handle_exception(e)
        sys.exit(1)

    click.echo(
        yaml.safe_dump(
            {
                "settings": asdict(cfg),
                "record": {"path": str(store.path), **record.to_dict()},
            },
            default_flow_style=False,
            sort_keys=False,
        )
    )


# ---------------------------------------------------------------------------
# init-settings subcommand
# ---------------------------------------------------------------------------


@cli.command("init-settings")
@click.option(
    "--output",
    default=DEFAULT_SETTINGS_FILE,
    show_default=True,
    help="Where to write the settings file",
)
def init_settings(output: str) -> None:
    """Write a settings file with the default localnet values.

    An existing file is never overwritten.

    Args:
        output: Destination path.
    """
    if create_default_settings(Path(output)):
        click.echo(f"Wrote default settings to {output}")
    else:
        click.echo(f"Settings file {output} already exists or could not be written")
        sys.exit(1)
