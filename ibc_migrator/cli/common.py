"""Shared CLI infrastructure: option decorators, error handlers, and the CLI group."""

from __future__ import annotations

import datetime
import logging
import os
from pathlib import Path
from typing import Callable

import click
import requests

import ibc_migrator
from ibc_migrator.constants import DEFAULT_SETTINGS_FILE
from ibc_migrator.core.checkpoint import ConfigStore
from ibc_migrator.core.config import Settings
from ibc_migrator.exceptions import (
    ConfigError,
    MigratorError,
    RelayerError,
    RelayTimeoutError,
    TransactionFailedError,
)
from ibc_migrator.utils.logging import log_with_context

# Same logger the rest of the package writes to
logger = logging.getLogger("ibc_migrator")


# ---------------------------------------------------------------------------
# Shared option decorator
# ---------------------------------------------------------------------------


def common_options(f: Callable[..., None]) -> Callable[..., None]:
    """Attach the settings, record and logging options every command accepts.

    Args:
        f: Command callback to wrap.

    Returns:
        The wrapped callback.
    """
    f = click.option(
        "--settings",
        default=DEFAULT_SETTINGS_FILE,
        show_default=True,
        help="Path to settings YAML",
    )(f)
    f = click.option(
        "--state",
        default=None,
        help="Path to the migration record JSON (overrides state_path in settings)",
    )(f)
    f = click.option(
        "--verbose",
        "-v",
        is_flag=True,
        default=False,
        help="Enable verbose console logging (shows DEBUG level messages)",
    )(f)
    f = click.option(
        "--debug_api",
        is_flag=True,
        default=False,
        help="Enable detailed LCD request/response logging (creates very large log files)",
    )(f)
    return f


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=ibc_migrator.__version__, prog_name="ibc-migrator")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Cross-chain IBC token migration tool.

    Args:
        ctx: The Click context (injected by ``@click.pass_context``).
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# Output directory
# ---------------------------------------------------------------------------


def create_run_output_directory(command: str) -> str:
    """Create a timestamped log directory for one CLI run.

    Args:
        command: Name of the subcommand, used in the directory name.

    Returns:
        The path to the newly created output directory.
    """
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = os.path.join("migration_logs", f"{command}_{timestamp}")
    os.makedirs(output_dir, exist_ok=True)
    return output_dir


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


def handle_exception(e: BaseException) -> None:
    """Log an error with a hint about what to check next.

    Args:
        e: The exception to handle.
    """
    if isinstance(e, ConfigError):
        log_with_context(logging.ERROR, f"Configuration error: {e}")
        log_with_context(
            logging.INFO,
            "Check your settings file and the migration record, or re-run the "
            "phase that produces the missing value.",
        )
    elif isinstance(e, TransactionFailedError):
        log_with_context(logging.ERROR, str(e))
        if e.txhash:
            log_with_context(logging.INFO, f"Transaction hash: {e.txhash}")
    elif isinstance(e, RelayTimeoutError):
        log_with_context(logging.ERROR, str(e))
        log_with_context(
            logging.INFO,
            "Make sure the relayer is running and both chains are producing blocks.",
        )
    elif isinstance(e, RelayerError):
        log_with_context(logging.ERROR, str(e))
        log_with_context(
            logging.INFO, "Check the relayer command in your settings file."
        )
    elif isinstance(e, MigratorError):
        log_with_context(logging.ERROR, str(e))
    elif isinstance(e, requests.exceptions.RequestException):
        log_with_context(logging.ERROR, f"Network error talking to a chain: {e}")
    elif isinstance(e, FileNotFoundError):
        log_with_context(logging.ERROR, f"File not found: {e}")
        log_with_context(
            logging.INFO,
            "Please check that all required files exist and paths are correct.",
        )
    elif isinstance(e, KeyboardInterrupt):
        log_with_context(logging.WARNING, "Interrupted by user.")
        log_with_context(
            logging.INFO,
            "Completed phases are saved; re-run a single phase with --phase.",
        )
    else:
        log_with_context(logging.ERROR, f"Run failed: {e}", exc_info=True)


# ---------------------------------------------------------------------------
# Settings and record helpers
# ---------------------------------------------------------------------------


def open_store(settings: Settings, state: str | None) -> ConfigStore:
    """Return the record store, preferring ``--state`` over the settings file.

    Args:
        settings: Loaded settings.
        state: Value of the ``--state`` option, if given.

    Returns:
        A ConfigStore for the chosen path.
    """
    return ConfigStore(Path(state or settings.state_path))
