"""
End-to-end verification scenarios for a completed migration.

Every scenario runs against state produced by a full orchestration run and
does not depend on other scenarios having run first. A scenario primes state
in ``setup()`` on a best-effort basis (a transaction rejected because the
state was already primed by a previous run is fine), then ``verify()``
snapshots balances, performs the action under test, snapshots again and
checks exact integer deltas.
"""

from __future__ import annotations

import logging
from typing import Callable, ClassVar, Iterable

from ibc_migrator.core.context import ChainContext
from ibc_migrator.core.state import MigrationConfig
from ibc_migrator.exceptions import (
    MigratorError,
    TransactionFailedError,
    VerificationFailedError,
)
from ibc_migrator.services.chain import ChainClient, to_base64
from ibc_migrator.types import Coin, ScenarioResult
from ibc_migrator.utils.logging import log_with_context
from ibc_migrator.utils.polling import poll_until


def attempt_best_effort(
    operation: Callable[[], object], description: str, **log_kwargs: str
) -> bool:
    """Run ``operation``, discarding only a rejected transaction.

    Returns:
        True if the operation succeeded, False if the chain rejected it.
    """
    try:
        operation()
    except TransactionFailedError as e:
        log_with_context(
            logging.WARNING,
            f"Best-effort step '{description}' skipped: {e}",
            **log_kwargs,
        )
        return False
    return True


# ---------------------------------------------------------------------------
# Chain actions shared by scenarios
# ---------------------------------------------------------------------------


def bridge_legacy_from_a(
    ctx: ChainContext, config: MigrationConfig, amount: int, receiver: str
) -> None:
    """Send legacy cw20 tokens from chain A to ``receiver`` on chain B via the bridge."""
    token, bridge, channel = config.require(
        "source_token_address", "bridge_contract_address", "legacy_channel_a"
    )
    ctx.chain_a.execute(
        token,
        {
            "send": {
                "contract": bridge,
                "amount": str(amount),
                "msg": to_base64({"channel": channel, "remote_address": receiver}),
            }
        },
    )


def bridge_legacy_from_b(
    ctx: ChainContext, config: MigrationConfig, amount: int, receiver: str
) -> None:
    """Send legacy tokens held on chain B back to ``receiver`` on chain A."""
    channel, denom = config.require("legacy_channel_b", "derived_legacy_denom_on_b")
    ctx.chain_b.ibc_transfer(channel, receiver, Coin(denom, amount))


def convert_legacy(
    ctx: ChainContext, config: MigrationConfig, client: ChainClient, amount: int
) -> None:
    """Convert ``amount`` legacy tokens into the new asset on ``client``'s chain."""
    if client is ctx.chain_a:
        token, converter = config.require("source_token_address", "converter_address_a")
        client.execute(
            token,
            {"send": {"contract": converter, "amount": str(amount), "msg": to_base64({})}},
        )
    elif client is ctx.chain_b:
        converter, denom = config.require(
            "converter_address_b", "derived_legacy_denom_on_b"
        )
        client.execute(converter, {"convert": {}}, funds=[Coin(denom, amount)])
    else:
        raise ValueError(f"Unsupported chain {client.chain_id}")


def upgrade_bridge(ctx: ChainContext, config: MigrationConfig) -> None:
    """Migrate the legacy bridge to the build that refuses outgoing transfers."""
    (bridge,) = config.require("bridge_contract_address")
    code_id = ctx.chain_a.store_code(ctx.settings.contracts.path("bridge_upgrade"))
    ctx.chain_a.migrate(bridge, code_id, {})


# ---------------------------------------------------------------------------
# Scenario base
# ---------------------------------------------------------------------------


class Scenario:
    """One independent end-to-end check."""

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    requires: ClassVar[tuple[str, ...]] = ()

    def __init__(self, ctx: ChainContext, config: MigrationConfig) -> None:
        self.ctx = ctx
        self.config = config
        self.amounts = ctx.settings.verification
        self.observations: dict[str, int] = {}

    def setup(self) -> None:
        """Prime state; only rejected transactions may be swallowed here."""

    def verify(self) -> None:
        raise NotImplementedError

    def run(self) -> ScenarioResult:
        """Run setup and verify, turning migration errors into a failed result.

        Raises:
            MissingConfigFieldError: If the migration record lacks a field the
                scenario needs.
        """
        self.config.require(*self.requires, consumer=self.name)
        log_with_context(logging.INFO, self.description, scenario=self.name)
        try:
            self.setup()
            self.verify()
        except MigratorError as e:
            log_with_context(logging.ERROR, f"FAILED: {e}", scenario=self.name)
            return ScenarioResult(self.name, False, str(e), dict(self.observations))
        log_with_context(logging.INFO, "PASSED", scenario=self.name)
        return ScenarioResult(self.name, True, None, dict(self.observations))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def best_effort(self, operation: Callable[[], object], description: str) -> bool:
        return attempt_best_effort(operation, description, scenario=self.name)

    def observe(self, label: str, value: int) -> int:
        self.observations[label] = value
        log_with_context(logging.DEBUG, f"{label} = {value}", scenario=self.name)
        return value

    def wait_for(self, predicate: Callable[[], object], description: str) -> object:
        polling = self.ctx.settings.polling
        return poll_until(
            predicate,
            polling.interval,
            polling.relay_timeout,
            description,
            scenario=self.name,
        )

    def expect(self, condition: bool, message: str) -> None:
        if not condition:
            raise VerificationFailedError(f"{self.name}: {message}")

    def expect_delta(self, label: str, before: int, after: int, expected: int) -> None:
        delta = after - before
        self.observations[f"{label}_delta"] = delta
        self.expect(
            delta == expected,
            f"{label} changed by {delta}, expected exactly {expected} "
            f"(before={before}, after={after})",
        )

    def prime_legacy_on_b(self, minimum: int) -> None:
        """Make sure the chain-B signer holds at least ``minimum`` legacy tokens."""
        chain_a, chain_b = self.ctx.chain_a, self.ctx.chain_b
        (legacy_denom,) = self.config.require("derived_legacy_denom_on_b")
        prime_amount = self.amounts.bridge_prime_amount
        held = chain_b.query_balance(chain_b.address, legacy_denom)
        sent = self.best_effort(
            lambda: bridge_legacy_from_a(
                self.ctx, self.config, prime_amount, chain_b.address
            ),
            f"bridge legacy tokens from {chain_a.chain_id} to {chain_b.chain_id}",
        )
        # A packet still in flight would land inside verify()'s snapshots
        target = held + prime_amount if sent else minimum
        self.wait_for(
            lambda: chain_b.query_balance(chain_b.address, legacy_denom) >= target,
            f"at least {target} legacy tokens on {chain_b.chain_id}",
        )

    def fund_converter_b(self) -> None:
        """Give the chain-B converter new-asset liquidity to pay out conversions."""
        converter_b, native_denom = self.config.require(
            "converter_address_b", "native_denom_chain_b"
        )
        self.ctx.chain_b.bank_send(
            converter_b, [Coin(native_denom, self.amounts.converter_top_up)]
        )

    def top_up_converter_fees(self) -> None:
        """Give the chain-B converter fee tokens to pay for its IBC messages."""
        chain_b = self.ctx.chain_b
        (converter_b,) = self.config.require("converter_address_b")
        chain_b.bank_send(
            converter_b, [Coin(chain_b.settings.fee_denom, self.amounts.fee_top_up)]
        )


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class BridgingDisabledScenario(Scenario):
    """After the bridge upgrade, legacy tokens can only flow back to chain A."""

    name = "bridging-disabled"
    description = "Legacy transfers from chain A are disabled, transfers back still work"
    requires = (
        "source_token_address",
        "bridge_contract_address",
        "legacy_channel_a",
        "legacy_channel_b",
        "derived_legacy_denom_on_b",
    )

    def setup(self) -> None:
        self.prime_legacy_on_b(self.amounts.transfer_amount)
        self.best_effort(
            lambda: upgrade_bridge(self.ctx, self.config), "migrate legacy bridge"
        )

    def verify(self) -> None:
        chain_a, chain_b = self.ctx.chain_a, self.ctx.chain_b
        token = self.config.source_token_address
        amount = self.amounts.transfer_amount

        before = self.observe("cw20_balance_a_before", chain_a.cw20_balance(token, chain_a.address))
        bridge_legacy_from_b(self.ctx, self.config, amount, chain_a.address)
        self.wait_for(
            lambda: chain_a.cw20_balance(token, chain_a.address) != before,
            f"legacy tokens to arrive on {chain_a.chain_id}",
        )
        after = self.observe("cw20_balance_a_after", chain_a.cw20_balance(token, chain_a.address))
        self.expect_delta("cw20_balance_a", before, after, amount)

        try:
            bridge_legacy_from_a(self.ctx, self.config, amount, chain_b.address)
        except TransactionFailedError as e:
            log_with_context(
                logging.INFO,
                f"Outgoing legacy transfer rejected as expected: {e}",
                scenario=self.name,
            )
        else:
            raise VerificationFailedError(
                f"{self.name}: legacy transfer from {chain_a.chain_id} was accepted "
                "after the bridge was migrated"
            )


class _ConversionScenario(Scenario):
    requires = (
        "source_token_address",
        "native_denom_chain_b",
        "new_channel_b",
        "derived_denom_on_a",
        "derived_legacy_denom_on_b",
        "converter_address_a",
        "converter_address_b",
    )

    def setup(self) -> None:
        chain_b = self.ctx.chain_b
        native_denom = self.config.native_denom_chain_b
        converter_a = self.config.converter_address_a
        top_up = Coin(native_denom, self.amounts.converter_top_up)

        self.best_effort(
            lambda: chain_b.ibc_transfer(self.config.new_channel_b, converter_a, top_up),
            f"top up {converter_a} with the new asset",
        )
        self.fund_converter_b()
        self.wait_for(
            lambda: self.ctx.chain_a.query_balance(converter_a, self.config.derived_denom_on_a)
            >= self.amounts.conversion_amount,
            f"new asset to reach {converter_a}",
        )


class ConversionOnChainAScenario(_ConversionScenario):
    """Converting on chain A swaps cw20 tokens for the IBC'd new asset 1:1."""

    name = "conversion-chain-a"
    description = "Legacy cw20 converts 1:1 into the new asset on chain A"

    def verify(self) -> None:
        chain_a = self.ctx.chain_a
        token = self.config.source_token_address
        new_denom = self.config.derived_denom_on_a
        amount = self.amounts.conversion_amount

        new_before = self.observe("new_balance_before", chain_a.query_balance(chain_a.address, new_denom))
        old_before = self.observe("legacy_balance_before", chain_a.cw20_balance(token, chain_a.address))

        convert_legacy(self.ctx, self.config, chain_a, amount)

        new_after = self.observe("new_balance_after", chain_a.query_balance(chain_a.address, new_denom))
        old_after = self.observe("legacy_balance_after", chain_a.cw20_balance(token, chain_a.address))

        self.expect_delta("new_balance", new_before, new_after, amount)
        self.expect_delta("legacy_balance", old_before, old_after, -amount)


class ConversionOnChainBScenario(_ConversionScenario):
    """Converting on chain B swaps the legacy IBC denom for the native denom 1:1."""

    name = "conversion-chain-b"
    description = "Legacy IBC denom converts 1:1 into the native asset on chain B"
    requires = (*_ConversionScenario.requires, "bridge_contract_address", "legacy_channel_a")

    def setup(self) -> None:
        self.prime_legacy_on_b(self.amounts.conversion_amount)
        super().setup()

    def verify(self) -> None:
        chain_b = self.ctx.chain_b
        new_denom = self.config.native_denom_chain_b
        old_denom = self.config.derived_legacy_denom_on_b
        amount = self.amounts.conversion_amount

        new_before = self.observe("new_balance_before", chain_b.query_balance(chain_b.address, new_denom))
        old_before = self.observe("legacy_balance_before", chain_b.query_balance(chain_b.address, old_denom))

        convert_legacy(self.ctx, self.config, chain_b, amount)

        new_after = self.observe("new_balance_after", chain_b.query_balance(chain_b.address, new_denom))
        old_after = self.observe("legacy_balance_after", chain_b.query_balance(chain_b.address, old_denom))

        self.expect_delta("new_balance", new_before, new_after, amount)
        self.expect_delta("legacy_balance", old_before, old_after, -amount)


class TransferForBurningScenario(Scenario):
    """The chain-B converter ships all collected legacy tokens back to chain A."""

    name = "transfer-for-burning"
    description = "Converter on chain B sends its legacy tokens to chain A for burning"
    requires = (
        "source_token_address",
        "bridge_contract_address",
        "legacy_channel_a",
        "derived_legacy_denom_on_b",
        "native_denom_chain_b",
        "converter_address_b",
    )

    def setup(self) -> None:
        chain_b = self.ctx.chain_b
        self.prime_legacy_on_b(self.amounts.burn_conversion_amount)
        self.fund_converter_b()
        convert_legacy(self.ctx, self.config, chain_b, self.amounts.burn_conversion_amount)
        self.top_up_converter_fees()

    def verify(self) -> None:
        chain_b = self.ctx.chain_b
        converter = self.config.converter_address_b
        denom = self.config.derived_legacy_denom_on_b

        before = self.observe("converter_legacy_before", chain_b.query_balance(converter, denom))
        self.expect(before > 0, f"converter {converter} holds no legacy tokens")

        chain_b.execute(converter, {"transfer_for_burning": {}})
        self.wait_for(
            lambda: chain_b.query_balance(converter, denom) == 0,
            f"converter {converter} to release its legacy tokens",
        )
        after = self.observe("converter_legacy_after", chain_b.query_balance(converter, denom))
        self.expect(after == 0, f"converter still holds {after} legacy tokens")


class BurnAccountingScenario(Scenario):
    """Burning on chain A reduces total supply by exactly the converter's holdings."""

    name = "burn-accounting"
    description = "Burning on chain A reduces cw20 supply by the converter's balance"
    requires = (
        "source_token_address",
        "bridge_contract_address",
        "legacy_channel_a",
        "derived_legacy_denom_on_b",
        "native_denom_chain_b",
        "converter_address_a",
        "converter_address_b",
    )

    def setup(self) -> None:
        chain_a, chain_b = self.ctx.chain_a, self.ctx.chain_b
        token = self.config.source_token_address
        converter_a = self.config.converter_address_a

        self.prime_legacy_on_b(self.amounts.burn_conversion_amount)
        self.fund_converter_b()
        convert_legacy(self.ctx, self.config, chain_b, self.amounts.burn_conversion_amount)
        self.top_up_converter_fees()
        chain_b.execute(self.config.converter_address_b, {"transfer_for_burning": {}})
        self.wait_for(
            lambda: chain_a.cw20_balance(token, converter_a) > 0,
            f"legacy tokens to reach {converter_a}",
        )

    def verify(self) -> None:
        chain_a = self.ctx.chain_a
        token = self.config.source_token_address
        converter = self.config.converter_address_a

        held = self.observe("converter_legacy_before", chain_a.cw20_balance(token, converter))
        self.expect(held > 0, f"converter {converter} holds no legacy tokens")
        supply_before = self.observe("total_supply_before", chain_a.cw20_total_supply(token))

        chain_a.execute(converter, {"burn": {}})

        after = self.observe("converter_legacy_after", chain_a.cw20_balance(token, converter))
        self.expect(after == 0, f"converter still holds {after} legacy tokens after burn")
        supply_after = self.observe("total_supply_after", chain_a.cw20_total_supply(token))
        self.expect_delta("total_supply", supply_before, supply_after, -held)


SCENARIOS: dict[str, type[Scenario]] = {
    cls.name: cls
    for cls in (
        BridgingDisabledScenario,
        ConversionOnChainAScenario,
        ConversionOnChainBScenario,
        TransferForBurningScenario,
        BurnAccountingScenario,
    )
}


def run_scenarios(
    ctx: ChainContext, config: MigrationConfig, names: Iterable[str] | None = None
) -> list[ScenarioResult]:
    """Run the named scenarios (all by default) in registry order.

    Raises:
        KeyError: If a name is not a known scenario.
    """
    selected = list(SCENARIOS) if names is None else list(names)
    unknown = [name for name in selected if name not in SCENARIOS]
    if unknown:
        raise KeyError(f"Unknown scenario(s): {', '.join(unknown)}")

    results = []
    for name in selected:
        results.append(SCENARIOS[name](ctx, config).run())

    passed = sum(1 for r in results if r.passed)
    log_with_context(logging.INFO, f"{passed}/{len(results)} scenarios passed")
    return results
