"""CLI command handler for the end-to-end verification scenarios."""

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
from ibc_migrator.core.scenarios import SCENARIOS, run_scenarios
from ibc_migrator.types import ScenarioResult
from ibc_migrator.utils.logging import log_with_context, setup_logger

# ---------------------------------------------------------------------------
# verify subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@click.option(
    "--scenario",
    "scenarios",
    multiple=True,
    type=click.Choice(list(SCENARIOS)),
    help="Run only this scenario (repeatable). Defaults to all scenarios.",
)
def verify(
    settings: str,
    state: str | None,
    verbose: bool,
    debug_api: bool,
    scenarios: tuple[str, ...],
) -> None:
    """Check bridging, conversion and burn behavior on a migrated setup.

    Exits non-zero when any scenario fails.

    Args:
        settings: Path to settings YAML.
        state: Path to the migration record, overriding the settings file.
        verbose: Enable verbose console logging.
        debug_api: Enable detailed LCD request/response logging.
        scenarios: Scenarios to run; all of them when empty.
    """
    output_dir = create_run_output_directory("verify")
    setup_logger(verbose, debug_api, output_dir)
    log_with_context(logging.INFO, f"Output directory: {output_dir}")

    try:
        cfg = load_settings(Path(settings))
        record = open_store(cfg, state).load()
        ctx = ChainContext.from_settings(cfg)
        results = run_scenarios(ctx, record, scenarios or None)
    except (Exception, KeyboardInterrupt) as e:
        handle_exception(e)
        sys.exit(1)

    print_results(results)
    if not all(result.passed for result in results):
        sys.exit(1)


def print_results(results: list[ScenarioResult]) -> None:
    """Print a pass/fail line per scenario."""
    click.echo("")
    for result in results:
        status = "PASS" if result.passed else "FAIL"
        line = f"{status}  {result.name}"
        if result.error:
            line += f": {result.error}"
        click.echo(line)
