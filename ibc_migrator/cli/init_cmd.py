"""CLI command handler for the migration setup phases."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from ibc_migrator.cli.common import (
    cli,
    common_options,
    create_run_output_directory,
    handle_exception,
    open_store,
)
from ibc_migrator.core.config import load_settings
from ibc_migrator.core.context import ChainContext
from ibc_migrator.core.migrator import MigrationOrchestrator
from ibc_migrator.core.state import PHASE_ORDER, MigrationConfig, MigrationPhase
from ibc_migrator.utils.logging import log_with_context, setup_logger

# ---------------------------------------------------------------------------
# init subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option(
    "--phase",
    "phases",
    multiple=True,
    type=click.Choice([phase.value for phase in PHASE_ORDER]),
    help="Run only this phase (repeatable). Defaults to all phases in order.",
)
@click.option(
    "--no-progress",
    is_flag=True,
    default=False,
    help="Disable the phase progress bar",
)
def init(
    settings: str,
    state: str | None,
    verbose: bool,
    debug_api: bool,
    phases: tuple[str, ...],
    no_progress: bool,
) -> None:
    """Deploy contracts, open channels and mint the new asset.

    Args:
        settings: Path to settings YAML.
        state: Path to the migration record, overriding the settings file.
        verbose: Enable verbose console logging.
        debug_api: Enable detailed LCD request/response logging.
        phases: Phases to run; all of them when empty.
        no_progress: Disable the progress bar.
    """
    output_dir = create_run_output_directory("init")
    setup_logger(verbose, debug_api, output_dir)
    log_with_context(logging.INFO, f"Output directory: {output_dir}")

    try:
        cfg = load_settings(Path(settings))
        store = open_store(cfg, state)
        ctx = ChainContext.from_settings(cfg)
        orchestrator = MigrationOrchestrator(ctx, store, show_progress=not no_progress)
        selected = [MigrationPhase(p) for p in phases] or None
        record = orchestrator.run(selected)
    except (Exception, KeyboardInterrupt) as e:
        handle_exception(e)
        sys.exit(1)

    log_summary(record)


def log_summary(record: MigrationConfig) -> None:
    """Log every field the run has produced so far."""
    log_with_context(logging.INFO, "")
    log_with_context(logging.INFO, "Migration record:")
    for key, value in record.to_dict().items():
        if key == "completed_phases":
            value = ", ".join(value) or "-"
        log_with_context(logging.INFO, f"- {key}: {value or '-'}")
