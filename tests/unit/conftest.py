"""Unit test configuration and shared fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from ibc_migrator.core.config import PollingSettings, Settings
from ibc_migrator.core.context import ChainContext
from ibc_migrator.core.state import MigrationConfig, MigrationPhase
from ibc_migrator.services.chain import ChainClient
from ibc_migrator.services.relayer import HermesRelayer

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Stands in for the ``time`` module: ``sleep`` advances ``monotonic``."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Replace ``time`` in the polling and REST modules so tests never sleep."""
    clock = FakeClock()
    monkeypatch.setattr("ibc_migrator.utils.polling.time", clock)
    monkeypatch.setattr("ibc_migrator.utils.api.time", clock)
    return clock


# ---------------------------------------------------------------------------
# Settings, clients and context
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings() -> Settings:
    """Default devnet settings with short polling timeouts."""
    return Settings(
        polling=PollingSettings(
            interval=1.0, tx_timeout=5.0, relay_timeout=10.0, channel_timeout=20.0
        )
    )


def make_chain_client(chain_settings: Any, address: str) -> MagicMock:
    """Build a MagicMock that behaves like a ChainClient for one chain."""
    client = MagicMock(spec=ChainClient)
    client.settings = chain_settings
    client.chain_id = chain_settings.chain_id
    client.address = address
    return client


@pytest.fixture()
def ctx(settings: Settings) -> ChainContext:
    """Context with mocked chain clients and relayer."""
    return ChainContext(
        settings=settings,
        chain_a=make_chain_client(settings.chain_a, "terra1user"),
        chain_b=make_chain_client(settings.chain_b, "neutron1user"),
        relayer=MagicMock(spec=HermesRelayer),
    )


# ---------------------------------------------------------------------------
# Migration records
# ---------------------------------------------------------------------------

TOKEN = "terra1token"
BRIDGE = "terra1bridge"
LEGACY_DENOM_B = "ibc/LEGACYORO"
NATIVE_DENOM = "factory/neutron1user/uoro"
DERIVED_DENOM_A = "ibc/NEWORO"
CONVERTER_A = "terra1converter"
CONVERTER_B = "neutron1converter"


@pytest.fixture()
def complete_record() -> MigrationConfig:
    """A record as left behind by a full orchestration run."""
    return MigrationConfig(
        source_token_address=TOKEN,
        bridge_contract_address=BRIDGE,
        legacy_channel_a="channel-1",
        legacy_channel_b="channel-2",
        derived_legacy_denom_on_b=LEGACY_DENOM_B,
        native_denom_chain_b=NATIVE_DENOM,
        new_channel_a="channel-5",
        new_channel_b="channel-6",
        derived_denom_on_a=DERIVED_DENOM_A,
        converter_address_a=CONVERTER_A,
        converter_address_b=CONVERTER_B,
        completed_phases=tuple(phase.value for phase in MigrationPhase),
    )


def make_channel_dict(
    channel_id: str,
    port_id: str = "transfer",
    counterparty_port_id: str = "transfer",
    counterparty_channel_id: str = "channel-0",
    **overrides: Any,
) -> dict[str, Any]:
    """Build a dict resembling an ``IdentifiedChannel`` REST payload."""
    d: dict[str, Any] = {
        "state": "STATE_OPEN",
        "ordering": "ORDER_UNORDERED",
        "counterparty": {
            "port_id": counterparty_port_id,
            "channel_id": counterparty_channel_id,
        },
        "connection_hops": ["connection-0"],
        "version": "ics20-1",
        "port_id": port_id,
        "channel_id": channel_id,
    }
    d.update(overrides)
    return d


@pytest.fixture()
def make_channel():
    """Factory fixture for ``IdentifiedChannel`` payloads.

    Usage in tests::

        def test_something(make_channel):
            payload = make_channel("channel-3", port_id="wasm.terra1bridge")
    """
    return make_channel_dict


@pytest.fixture()
def make_client():
    """Factory fixture for mocked chain clients."""
    return make_chain_client
