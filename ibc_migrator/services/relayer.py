"""Hermes relayer wrapper."""

from __future__ import annotations

import logging
import subprocess
from typing import Callable

from ibc_migrator.core.config import RelayerSettings
from ibc_migrator.exceptions import RelayerError
from ibc_migrator.utils.logging import log_with_context

Runner = Callable[..., subprocess.CompletedProcess]


class HermesRelayer:
    """Drives ``hermes create channel`` through a configurable command prefix.

    Channel creation is asynchronous from the caller's point of view: the
    resulting channel ids are observed by listing channels on each chain
    afterwards, never taken from the relayer's output.
    """

    def __init__(self, settings: RelayerSettings, runner: Runner = subprocess.run) -> None:
        self.settings = settings
        self._runner = runner

    def create_channel(self, chain_a: str, port_a: str, chain_b: str, port_b: str) -> None:
        """Open a new channel (on a new client and connection) between two ports.

        Raises:
            RelayerError: If the relayer command cannot be run or exits non-zero.
        """
        command = [
            *self.settings.command,
            "create",
            "channel",
            "--a-chain",
            chain_a,
            "--new-client-connection",
            "--b-chain",
            chain_b,
            "--a-port",
            port_a,
            "--b-port",
            port_b,
            "--chan-version",
            self.settings.channel_version,
            "--yes",
        ]
        log_with_context(logging.INFO, f"Running relayer: {' '.join(command)}")
        try:
            result = self._runner(
                command,
                check=False,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise RelayerError(f"Relayer command not found: {command[0]}") from e

        if result.returncode != 0:
            raise RelayerError(
                f"Relayer failed to create channel {chain_a}:{port_a} <-> "
                f"{chain_b}:{port_b} (exit {result.returncode}):\n{result.stdout}"
            )
        log_with_context(logging.DEBUG, f"Relayer output:\n{result.stdout}")
