"""Shared test fixtures for the ibc_migrator test suite."""

import pytest


@pytest.fixture()
def channel_payloads():
    """Return ``IdentifiedChannel`` dicts as served by the channels REST endpoint."""
    return [
        {
            "state": "STATE_OPEN",
            "ordering": "ORDER_UNORDERED",
            "counterparty": {"port_id": "transfer", "channel_id": "channel-0"},
            "connection_hops": ["connection-0"],
            "version": "ics20-1",
            "port_id": "wasm.terra1bridge",
            "channel_id": "channel-0",
        },
        {
            "state": "STATE_OPEN",
            "ordering": "ORDER_UNORDERED",
            "counterparty": {"port_id": "transfer", "channel_id": "channel-4"},
            "connection_hops": ["connection-3"],
            "version": "ics20-1",
            "port_id": "transfer",
            "channel_id": "channel-3",
        },
        {
            "state": "STATE_OPEN",
            "ordering": "ORDER_UNORDERED",
            "counterparty": {"port_id": "transfer", "channel_id": "channel-7"},
            "connection_hops": ["connection-5"],
            "version": "ics20-1",
            "port_id": "wasm.terra1bridge",
            "channel_id": "channel-11",
        },
    ]


@pytest.fixture()
def settings_yaml(tmp_path):
    """Write a minimal settings file and return its path."""
    path = tmp_path / "settings.yaml"
    path.write_text(
        "chains:\n"
        "  a:\n"
        "    lcd: http://terra:1317\n"
        "    address: terra1user\n"
        "  b:\n"
        "    chain_id: pion-1\n"
        "    address: neutron1user\n"
        "polling:\n"
        "  interval: 0.5\n"
        "  relay_timeout: 5\n"
        f"state_path: {tmp_path / 'state.json'}\n"
    )
    return path
