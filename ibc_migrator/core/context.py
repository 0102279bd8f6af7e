"""Immutable chain context.

ChainContext is a frozen dataclass that holds the two chain clients, the
relayer and the loaded settings. It is created once per process and passed,
read-only, to the orchestrator and to every verification scenario.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ibc_migrator.core.config import Settings

if TYPE_CHECKING:
    from ibc_migrator.services.chain import ChainClient
    from ibc_migrator.services.relayer import HermesRelayer


@dataclass(frozen=True)
class ChainContext:
    """Immutable context for a run. Created once, shared everywhere."""

    settings: Settings

    # Chain A holds the legacy cw20 token, chain B mints the new native denom
    chain_a: ChainClient
    chain_b: ChainClient

    relayer: HermesRelayer

    @classmethod
    def from_settings(cls, settings: Settings) -> ChainContext:
        """Build clients for both chains and the relayer from ``settings``."""
        from ibc_migrator.services.chain import ChainClient
        from ibc_migrator.services.relayer import HermesRelayer

        def client(chain_settings):
            return ChainClient(
                chain_settings,
                settings.polling,
                max_retries=settings.max_retries,
                retry_delay=settings.retry_delay,
            )

        return cls(
            settings=settings,
            chain_a=client(settings.chain_a),
            chain_b=client(settings.chain_b),
            relayer=HermesRelayer(settings.relayer),
        )

    @property
    def log_prefix(self) -> str:
        """Short ``[A -> B]`` tag naming the two chains."""
        return f"[{self.chain_a.chain_id} -> {self.chain_b.chain_id}] "
