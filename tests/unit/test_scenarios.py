"""Unit tests for the verification scenarios, run against an in-memory ledger."""

from __future__ import annotations

import base64
import json
from collections import defaultdict
from unittest.mock import MagicMock

import pytest

from ibc_migrator.core.scenarios import (
    SCENARIOS,
    BurnAccountingScenario,
    BridgingDisabledScenario,
    ConversionOnChainAScenario,
    ConversionOnChainBScenario,
    TransferForBurningScenario,
    attempt_best_effort,
    run_scenarios,
)
from ibc_migrator.core.state import MigrationConfig
from ibc_migrator.exceptions import (
    APIError,
    DeploymentFailedError,
    MissingConfigFieldError,
    TransactionFailedError,
)

# ---------------------------------------------------------------------------
# In-memory two-chain ledger
# ---------------------------------------------------------------------------


class Ledger:
    """Just enough of both chains and the contracts to exercise the scenarios.

    Bridge packets from chain A land on chain B instantly unless ``relay_delay``
    is set, in which case each one arrives on that many-th chain-B balance
    query. ``conversion_rate_error`` skews what the converters pay out,
    ``converter_keeps`` is withheld by transfer_for_burning.
    """

    INITIAL = 10**15

    def __init__(self, ctx, record: MigrationConfig) -> None:
        self.ctx = ctx
        self.r = record
        self.bank: dict[tuple[str, str, str], int] = defaultdict(int)
        self.cw20: dict[str, int] = defaultdict(int)
        self.supply = self.INITIAL
        self.bridge_enabled = True
        self.migrate_fails = False
        self.conversion_rate_error = 0
        self.converter_keeps = 0
        self.relay_delay = 0
        self.in_flight: list[list] = []

        self.user_a = ctx.chain_a.address
        self.user_b = ctx.chain_b.address
        self.cw20[self.user_a] = self.INITIAL
        self.bank[("b", self.user_b, record.native_denom_chain_b)] = self.INITIAL
        self.bank[("b", self.user_b, "untrn")] = self.INITIAL
        # converter A is funded with the new asset on chain A before the run
        self.bank[("a", record.converter_address_a, record.derived_denom_on_a)] = self.INITIAL

        a, b = ctx.chain_a, ctx.chain_b
        a.cw20_balance.side_effect = lambda token, addr: self.cw20[addr]
        a.cw20_total_supply.side_effect = lambda token: self.supply
        a.query_balance.side_effect = lambda addr, denom: self.bank[("a", addr, denom)]
        a.execute.side_effect = self.execute_a
        a.store_code.return_value = 99
        a.migrate.side_effect = self.migrate_bridge
        b.query_balance.side_effect = self.query_balance_b
        b.execute.side_effect = self.execute_b
        b.bank_send.side_effect = self.bank_send_b
        b.ibc_transfer.side_effect = self.ibc_transfer_b

    def move(self, chain, sender, recipient, denom, amount):
        if self.bank[(chain, sender, denom)] < amount:
            raise TransactionFailedError(f"insufficient {denom} for {sender}")
        self.bank[(chain, sender, denom)] -= amount
        self.bank[(chain, recipient, denom)] += amount

    def move_cw20(self, sender, recipient, amount):
        if self.cw20[sender] < amount:
            raise TransactionFailedError(f"insufficient cw20 for {sender}")
        self.cw20[sender] -= amount
        self.cw20[recipient] += amount

    # chain A ----------------------------------------------------------------

    def execute_a(self, contract, msg, funds=None):
        r = self.r
        if contract == r.source_token_address and "send" in msg:
            send = msg["send"]
            amount = int(send["amount"])
            inner = json.loads(base64.b64decode(send["msg"]))
            if send["contract"] == r.bridge_contract_address:
                if not self.bridge_enabled:
                    raise TransactionFailedError("bridging disabled", code=5)
                assert inner["channel"] == r.legacy_channel_a
                self.move_cw20(self.user_a, send["contract"], amount)
                self.relay_to_b(inner["remote_address"], r.derived_legacy_denom_on_b, amount)
            elif send["contract"] == r.converter_address_a:
                assert inner == {}
                self.move_cw20(self.user_a, send["contract"], amount)
                self.move(
                    "a",
                    r.converter_address_a,
                    self.user_a,
                    r.derived_denom_on_a,
                    amount + self.conversion_rate_error,
                )
            else:
                raise AssertionError(f"unexpected cw20 send to {send['contract']}")
        elif contract == r.converter_address_a and "burn" in msg:
            held = self.cw20[contract]
            self.cw20[contract] = 0
            self.supply -= held
        else:
            raise AssertionError(f"unexpected execute on chain A: {contract} {msg}")
        return {}

    def migrate_bridge(self, contract, code_id, msg):
        assert contract == self.r.bridge_contract_address
        if self.migrate_fails or not self.bridge_enabled:
            raise DeploymentFailedError("migrate rejected")
        self.bridge_enabled = False

    # chain B ----------------------------------------------------------------

    def relay_to_b(self, recipient, denom, amount):
        if self.relay_delay:
            self.in_flight.append([self.relay_delay, ("b", recipient, denom), amount])
        else:
            self.bank[("b", recipient, denom)] += amount

    def query_balance_b(self, addr, denom):
        for packet in list(self.in_flight):
            packet[0] -= 1
            if packet[0] <= 0:
                self.in_flight.remove(packet)
                self.bank[packet[1]] += packet[2]
        return self.bank[("b", addr, denom)]

    def execute_b(self, contract, msg, funds=None):
        r = self.r
        if contract != r.converter_address_b:
            raise AssertionError(f"unexpected execute on chain B: {contract}")
        if "convert" in msg:
            (coin,) = funds
            assert coin.denom == r.derived_legacy_denom_on_b
            self.move("b", self.user_b, contract, coin.denom, coin.amount)
            self.move(
                "b",
                contract,
                self.user_b,
                r.native_denom_chain_b,
                coin.amount + self.conversion_rate_error,
            )
        elif "transfer_for_burning" in msg:
            if self.bank[("b", contract, "untrn")] <= 0:
                raise TransactionFailedError("converter cannot pay IBC fees")
            held = self.bank[("b", contract, r.derived_legacy_denom_on_b)] - self.converter_keeps
            self.bank[("b", contract, r.derived_legacy_denom_on_b)] -= held
            self.cw20[r.converter_address_a] += held
        else:
            raise AssertionError(f"unexpected message {msg}")
        return {}

    def bank_send_b(self, recipient, coins):
        for coin in coins:
            self.move("b", self.user_b, recipient, coin.denom, coin.amount)

    def ibc_transfer_b(self, channel, receiver, coin):
        r = self.r
        if channel == r.legacy_channel_b:
            self.bank[("b", self.user_b, coin.denom)] -= coin.amount
            self.cw20[receiver] += coin.amount
        elif channel == r.new_channel_b:
            self.move("b", self.user_b, "escrow", coin.denom, coin.amount)
            self.bank[("a", receiver, r.derived_denom_on_a)] += coin.amount
        else:
            raise AssertionError(f"unexpected channel {channel}")


@pytest.fixture()
def ledger(ctx, complete_record) -> Ledger:
    return Ledger(ctx, complete_record)


# ---------------------------------------------------------------------------
# attempt_best_effort
# ---------------------------------------------------------------------------


class TestAttemptBestEffort:
    """Tests for attempt_best_effort()."""

    def test_success(self):
        op = MagicMock()
        assert attempt_best_effort(op, "prime") is True
        op.assert_called_once()

    def test_rejected_transaction_is_swallowed(self):
        op = MagicMock(side_effect=TransactionFailedError("already done"))
        assert attempt_best_effort(op, "prime") is False

    def test_deployment_failure_is_swallowed(self):
        op = MagicMock(side_effect=DeploymentFailedError("already migrated"))
        assert attempt_best_effort(op, "migrate") is False

    def test_other_errors_propagate(self):
        op = MagicMock(side_effect=APIError("LCD down"))
        with pytest.raises(APIError):
            attempt_best_effort(op, "prime")


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestBridgingDisabled:
    """Tests for the bridging-disabled scenario."""

    def test_passes(self, ctx, complete_record, ledger):
        result = BridgingDisabledScenario(ctx, complete_record).run()

        assert result.passed, result.error
        assert result.observations["cw20_balance_a_delta"] == 100
        assert not ledger.bridge_enabled
        ctx.chain_a.migrate.assert_called_once_with("terra1bridge", 99, {})

    def test_rerun_after_upgrade_still_passes(self, ctx, complete_record, ledger):
        assert BridgingDisabledScenario(ctx, complete_record).run().passed
        result = BridgingDisabledScenario(ctx, complete_record).run()
        assert result.passed, result.error

    def test_fails_when_bridge_still_accepts_transfers(
        self, ctx, complete_record, ledger
    ):
        ledger.migrate_fails = True

        result = BridgingDisabledScenario(ctx, complete_record).run()

        assert not result.passed
        assert "was accepted" in result.error

    def test_upgrade_uses_configured_artifact(self, ctx, complete_record, ledger):
        BridgingDisabledScenario(ctx, complete_record).run()
        path = ctx.chain_a.store_code.call_args.args[0]
        assert path.name == "new_cw20_ics20.wasm"


class TestConversion:
    """Tests for the conversion-chain-a and conversion-chain-b scenarios."""

    def test_chain_a_passes(self, ctx, complete_record, ledger):
        result = ConversionOnChainAScenario(ctx, complete_record).run()

        assert result.passed, result.error
        assert result.observations["new_balance_delta"] == 100
        assert result.observations["legacy_balance_delta"] == -100

    def test_chain_b_passes(self, ctx, complete_record, ledger):
        result = ConversionOnChainBScenario(ctx, complete_record).run()

        assert result.passed, result.error
        assert result.observations["new_balance_delta"] == 100
        assert result.observations["legacy_balance_delta"] == -100

    def test_chain_b_sends_legacy_denom_as_funds(self, ctx, complete_record, ledger):
        ConversionOnChainBScenario(ctx, complete_record).run()

        contract, msg = ctx.chain_b.execute.call_args.args[:2]
        assert contract == "neutron1converter"
        assert msg == {"convert": {}}
        (coin,) = ctx.chain_b.execute.call_args.kwargs["funds"]
        assert (coin.denom, coin.amount) == ("ibc/LEGACYORO", 100)

    def test_chain_b_waits_for_primed_tokens_already_in_flight(
        self, ctx, complete_record, ledger
    ):
        ledger.bank[("b", "neutron1user", "ibc/LEGACYORO")] = 1000
        ledger.relay_delay = 5

        result = ConversionOnChainBScenario(ctx, complete_record).run()

        assert result.passed, result.error
        assert result.observations["legacy_balance_delta"] == -100
        assert ledger.in_flight == []

    def test_chain_b_uses_existing_tokens_when_bridge_rejects(
        self, ctx, complete_record, ledger
    ):
        ledger.bank[("b", "neutron1user", "ibc/LEGACYORO")] = 1000
        ledger.bridge_enabled = False

        result = ConversionOnChainBScenario(ctx, complete_record).run()

        assert result.passed, result.error
        assert result.observations["legacy_balance_delta"] == -100

    @pytest.mark.parametrize(
        "scenario", [ConversionOnChainAScenario, ConversionOnChainBScenario]
    )
    def test_wrong_rate_fails(self, ctx, complete_record, ledger, scenario):
        ledger.conversion_rate_error = -1

        result = scenario(ctx, complete_record).run()

        assert not result.passed
        assert "changed by 99, expected exactly 100" in result.error

    def test_chain_a_top_up_failure_is_tolerated(self, ctx, complete_record, ledger):
        ctx.chain_b.ibc_transfer.side_effect = TransactionFailedError("channel closed")
        result = ConversionOnChainAScenario(ctx, complete_record).run()
        assert result.passed, result.error


class TestTransferForBurning:
    """Tests for the transfer-for-burning scenario."""

    def test_passes(self, ctx, complete_record, ledger):
        result = TransferForBurningScenario(ctx, complete_record).run()

        assert result.passed, result.error
        assert result.observations["converter_legacy_before"] == 100_000
        assert result.observations["converter_legacy_after"] == 0
        assert ledger.cw20["terra1converter"] == 100_000

    def test_fails_when_converter_keeps_tokens(self, ctx, complete_record, ledger):
        ledger.converter_keeps = 1

        result = TransferForBurningScenario(ctx, complete_record).run()

        assert not result.passed
        assert "Timed out" in result.error


class TestBurnAccounting:
    """Tests for the burn-accounting scenario."""

    def test_passes(self, ctx, complete_record, ledger):
        result = BurnAccountingScenario(ctx, complete_record).run()

        assert result.passed, result.error
        assert result.observations["total_supply_delta"] == -100_000
        assert ledger.supply == Ledger.INITIAL - 100_000

    def test_supply_mismatch_fails(self, ctx, complete_record, ledger):
        original = ledger.execute_a

        def burn_short(contract, msg, funds=None):
            original(contract, msg, funds)
            if "burn" in msg:
                ledger.supply += 1
            return {}

        ctx.chain_a.execute.side_effect = burn_short

        result = BurnAccountingScenario(ctx, complete_record).run()

        assert not result.passed
        assert "total_supply changed by -99999" in result.error


# ---------------------------------------------------------------------------
# Registry and runner
# ---------------------------------------------------------------------------


class TestRunScenarios:
    """Tests for run_scenarios()."""

    def test_registry_names(self):
        assert list(SCENARIOS) == [
            "bridging-disabled",
            "conversion-chain-a",
            "conversion-chain-b",
            "transfer-for-burning",
            "burn-accounting",
        ]

    def test_runs_all_by_default(self, ctx, complete_record, ledger):
        results = run_scenarios(ctx, complete_record)
        assert [r.name for r in results] == list(SCENARIOS)
        assert all(r.passed for r in results), [r.error for r in results]

    def test_each_scenario_runs_alone(self, ctx, complete_record):
        for name in SCENARIOS:
            Ledger(ctx, complete_record)
            (result,) = run_scenarios(ctx, complete_record, [name])
            assert result.passed, (name, result.error)

    def test_rerun_with_slow_relay(self, ctx, complete_record):
        ledger = Ledger(ctx, complete_record)
        (first,) = run_scenarios(ctx, complete_record, ["conversion-chain-b"])
        assert first.passed, first.error

        ledger.relay_delay = 3
        for name in ["conversion-chain-b", "transfer-for-burning", "burn-accounting"]:
            (result,) = run_scenarios(ctx, complete_record, [name])
            assert result.passed, (name, result.error)

    def test_unknown_name(self, ctx, complete_record):
        with pytest.raises(KeyError, match="no-such-scenario"):
            run_scenarios(ctx, complete_record, ["no-such-scenario"])

    def test_incomplete_record_raises(self, ctx):
        with pytest.raises(MissingConfigFieldError):
            run_scenarios(ctx, MigrationConfig(), ["conversion-chain-a"])
        ctx.chain_a.execute.assert_not_called()
