"""
Migration orchestrator for the IBC token migration tool.

Runs the setup phases in dependency order. Each phase reads what earlier
phases recorded, produces its own fields, and the record is saved before the
next phase starts. Failures propagate; there is no rollback.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from tqdm import tqdm

from ibc_migrator.constants import CHANNEL_STATE_OPEN, TRANSFER_PORT
from ibc_migrator.core.channels import (
    Channel,
    filter_port_pair,
    latest_sequence,
    select_canonical_channel,
)
from ibc_migrator.core.checkpoint import ConfigStore
from ibc_migrator.core.context import ChainContext
from ibc_migrator.core.denom import cw20_denom, derive_ibc_denom, wasm_port
from ibc_migrator.core.state import PHASE_ORDER, MigrationConfig, MigrationPhase
from ibc_migrator.exceptions import NoChannelsFoundError, RelayTimeoutError
from ibc_migrator.services.chain import ChainClient
from ibc_migrator.utils.logging import log_with_context
from ibc_migrator.utils.polling import poll_until


class MigrationOrchestrator:
    """Main class for running the cross-chain migration setup."""

    def __init__(
        self, ctx: ChainContext, store: ConfigStore, show_progress: bool = True
    ) -> None:
        self.ctx = ctx
        self.store = store
        self.show_progress = show_progress
        self._handlers: dict[
            MigrationPhase, Callable[[MigrationConfig], MigrationConfig]
        ] = {
            MigrationPhase.DEPLOY_LEGACY: self.deploy_legacy_contracts,
            MigrationPhase.LEGACY_CHANNEL: self.establish_legacy_channel,
            MigrationPhase.NATIVE_ASSET: self.mint_native_asset,
            MigrationPhase.CONVERTERS: self.deploy_converters,
        }

    def run(self, phases: Iterable[MigrationPhase] | None = None) -> MigrationConfig:
        """Run ``phases`` (all by default) in dependency order.

        The persisted record is loaded first, so a single phase can be re-run
        from a cold start. Re-running a phase overwrites what it produced.

        Returns:
            The record after the last phase.
        """
        requested = set(phases) if phases is not None else set(PHASE_ORDER)
        selected = [phase for phase in PHASE_ORDER if phase in requested]

        config = self.store.load()
        log_with_context(
            logging.INFO,
            f"{self.ctx.log_prefix}Running phases: {', '.join(p.value for p in selected)}",
        )
        if config.completed_phases:
            log_with_context(
                logging.INFO,
                f"Previously completed phases: {', '.join(config.completed_phases)}",
            )

        for phase in tqdm(
            selected, desc="Migration phases", unit="phase", disable=not self.show_progress
        ):
            if config.is_complete(phase):
                log_with_context(
                    logging.WARNING,
                    "Phase already completed, its outputs will be overwritten",
                    phase=phase.value,
                )
            log_with_context(logging.INFO, "Starting phase", phase=phase.value)
            config = self._handlers[phase](config)
            self.store.save(config)
            log_with_context(
                logging.INFO,
                f"Phase completed, record saved to {self.store.path}",
                phase=phase.value,
            )

        return config

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def deploy_legacy_contracts(self, config: MigrationConfig) -> MigrationConfig:
        """Deploy the legacy cw20 token and its cw20-ics20 bridge on chain A."""
        chain_a = self.ctx.chain_a
        contracts = self.ctx.settings.contracts
        token_settings = self.ctx.settings.token

        token_code_id = chain_a.store_code(contracts.path("token"))
        token_address = chain_a.instantiate(
            token_code_id,
            {
                "name": token_settings.name,
                "symbol": token_settings.symbol,
                "decimals": token_settings.decimals,
                "initial_balances": [
                    {
                        "address": chain_a.address,
                        "amount": str(token_settings.initial_balance),
                    }
                ],
            },
            label=f"{token_settings.symbol} token",
        )
        log_with_context(
            logging.INFO,
            f"Legacy token deployed at {token_address}",
            chain=chain_a.chain_id,
            phase=MigrationPhase.DEPLOY_LEGACY.value,
        )

        bridge_code_id = chain_a.store_code(contracts.path("bridge"))
        bridge_address = chain_a.instantiate(
            bridge_code_id,
            {
                "default_timeout": token_settings.bridge_timeout,
                "gov_contract": chain_a.address,
                "allowlist": [{"contract": token_address}],
            },
            label="cw20-ics20",
        )
        log_with_context(
            logging.INFO,
            f"Legacy bridge deployed at {bridge_address}",
            chain=chain_a.chain_id,
            phase=MigrationPhase.DEPLOY_LEGACY.value,
        )

        return config.with_legacy_contracts(token_address, bridge_address)

    def establish_legacy_channel(self, config: MigrationConfig) -> MigrationConfig:
        """Open the bridge <-> transfer channel and derive the legacy denom on chain B."""
        phase = MigrationPhase.LEGACY_CHANNEL
        token_address, bridge_address = config.require(
            "source_token_address", "bridge_contract_address", consumer=phase.value
        )

        channel_a, channel_b = self._open_channel(
            wasm_port(bridge_address), TRANSFER_PORT, phase
        )
        legacy_denom = derive_ibc_denom(channel_b, cw20_denom(token_address))
        log_with_context(
            logging.INFO,
            f"Legacy token denom on {self.ctx.chain_b.chain_id} for path "
            f"transfer/{channel_b}/{cw20_denom(token_address)}: {legacy_denom}",
            phase=phase.value,
        )
        return config.with_legacy_channel(channel_a, channel_b, legacy_denom)

    def mint_native_asset(self, config: MigrationConfig) -> MigrationConfig:
        """Create and mint the new denom on chain B and open the transfer <-> transfer path."""
        phase = MigrationPhase.NATIVE_ASSET
        chain_b = self.ctx.chain_b
        native = self.ctx.settings.native_asset

        denom = chain_b.create_denom(native.subdenom)
        chain_b.mint(denom, native.mint_amount)
        log_with_context(
            logging.INFO,
            f"Created and minted {native.mint_amount}{denom}",
            chain=chain_b.chain_id,
            phase=phase.value,
        )

        channel_a, channel_b = self._open_channel(TRANSFER_PORT, TRANSFER_PORT, phase)
        derived = derive_ibc_denom(channel_a, denom)
        log_with_context(
            logging.INFO,
            f"New denom on {self.ctx.chain_a.chain_id} for path "
            f"transfer/{channel_a}/{denom}: {derived}",
            phase=phase.value,
        )
        return config.with_native_asset(denom, channel_a, channel_b, derived)

    def deploy_converters(self, config: MigrationConfig) -> MigrationConfig:
        """Deploy the converter on chain A, then the one on chain B that points at it."""
        phase = MigrationPhase.CONVERTERS
        (
            token_address,
            derived_denom_on_a,
            legacy_denom_on_b,
            native_denom,
            legacy_channel_b,
        ) = config.require(
            "source_token_address",
            "derived_denom_on_a",
            "derived_legacy_denom_on_b",
            "native_denom_chain_b",
            "legacy_channel_b",
            consumer=phase.value,
        )
        contracts = self.ctx.settings.contracts
        chain_a, chain_b = self.ctx.chain_a, self.ctx.chain_b

        code_id_a = chain_a.store_code(contracts.path("converter_a"))
        converter_a = chain_a.instantiate(
            code_id_a,
            {
                "old_oro_asset_info": {"token": {"contract_addr": token_address}},
                "new_oro_denom": derived_denom_on_a,
            },
            label="token converter",
        )
        log_with_context(
            logging.INFO,
            f"Converter deployed at {converter_a}",
            chain=chain_a.chain_id,
            phase=phase.value,
        )

        code_id_b = chain_b.store_code(contracts.path("converter_b"))
        converter_b = chain_b.instantiate(
            code_id_b,
            {
                "old_oro_asset_info": {"native_token": {"denom": legacy_denom_on_b}},
                "new_oro_denom": native_denom,
                "outpost_burn_params": {
                    "terra_burn_addr": converter_a,
                    "old_oro_transfer_channel": legacy_channel_b,
                },
            },
            label="token converter",
        )
        log_with_context(
            logging.INFO,
            f"Converter deployed at {converter_b}",
            chain=chain_b.chain_id,
            phase=phase.value,
        )

        return config.with_converters(converter_a, converter_b)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def _open_channel(
        self, port_a: str, port_b: str, phase: MigrationPhase
    ) -> tuple[str, str]:
        """Have the relayer open a channel and return the new ids on (A, B)."""
        chain_a, chain_b = self.ctx.chain_a, self.ctx.chain_b
        before_a = latest_sequence(filter_port_pair(chain_a.list_channels(), port_a, port_b))
        before_b = latest_sequence(filter_port_pair(chain_b.list_channels(), port_b, port_a))

        self.ctx.relayer.create_channel(chain_a.chain_id, port_a, chain_b.chain_id, port_b)

        channel_a = self._await_new_channel(chain_a, port_a, port_b, before_a, phase)
        channel_b = self._await_new_channel(chain_b, port_b, port_a, before_b, phase)
        log_with_context(
            logging.INFO,
            f"Channel {port_a}/{channel_a.channel_id} <-> {port_b}/{channel_b.channel_id}",
            phase=phase.value,
        )
        return channel_a.channel_id, channel_b.channel_id

    def _await_new_channel(
        self,
        client: ChainClient,
        port: str,
        counterparty_port: str,
        previous_sequence: int,
        phase: MigrationPhase,
    ) -> Channel:
        def newest() -> Channel | None:
            candidates = filter_port_pair(client.list_channels(), port, counterparty_port)
            # An end still mid-handshake is not recorded until it reports open
            opened = [
                ch
                for ch in candidates
                if ch.sequence > previous_sequence and ch.state == CHANNEL_STATE_OPEN
            ]
            if opened:
                return select_canonical_channel(opened)
            return None

        polling = self.ctx.settings.polling
        try:
            return poll_until(
                newest,
                polling.interval,
                polling.channel_timeout,
                f"new {port} <-> {counterparty_port} channel on {client.chain_id}",
                chain=client.chain_id,
                phase=phase.value,
            )
        except RelayTimeoutError as e:
            if not filter_port_pair(client.list_channels(), port, counterparty_port):
                raise NoChannelsFoundError(
                    f"No {port} <-> {counterparty_port} channel on {client.chain_id} "
                    "after the relayer finished"
                ) from e
            raise
