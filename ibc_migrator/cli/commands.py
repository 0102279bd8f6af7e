#!/usr/bin/env python3
"""Click-based CLI entry point for the IBC token migration tool.

Subcommand implementations live in dedicated modules:
- :mod:`ibc_migrator.cli.init_cmd` -- ``init``
- :mod:`ibc_migrator.cli.verify_cmd` -- ``verify``
- :mod:`ibc_migrator.cli.config_cmd` -- ``show-config``, ``init-settings``
"""

from __future__ import annotations

# Import subcommand modules so their @cli.command() decorators register
import ibc_migrator.cli.config_cmd
import ibc_migrator.cli.init_cmd
import ibc_migrator.cli.verify_cmd  # noqa: F401
from ibc_migrator.cli.common import cli


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
