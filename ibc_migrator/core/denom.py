"""Deterministic denom naming for assets moving over ICS-20 transfer paths."""

from __future__ import annotations

import hashlib

from ibc_migrator.constants import TRANSFER_PORT

IBC_DENOM_PREFIX = "ibc/"


def derive_ibc_denom(channel: str, base_denom: str) -> str:
    """Return the IBC denom an asset receives on the chain owning ``channel``.

    The trace path ``transfer/<channel>/<base_denom>`` is hashed with SHA-256
    and rendered as uppercase hex. Must match the counterparty chain byte for
    byte, so no normalisation is applied to either argument.

    Args:
        channel: Channel id on the receiving chain.
        base_denom: Denom as known on the sending chain.

    Returns:
        The ``ibc/<HASH>`` denom.
    """
    trace_path = f"{TRANSFER_PORT}/{channel}/{base_denom}"
    digest = hashlib.sha256(trace_path.encode("utf-8")).hexdigest()
    return IBC_DENOM_PREFIX + digest.upper()


def cw20_denom(contract_address: str) -> str:
    """Denom the cw20-ics20 bridge uses for a cw20 token."""
    return f"cw20:{contract_address}"


def tokenfactory_denom(owner: str, subdenom: str) -> str:
    """Denom assigned by the token factory module to ``owner``'s ``subdenom``."""
    return f"factory/{owner}/{subdenom}"


def wasm_port(contract_address: str) -> str:
    """IBC port id bound by a wasm contract."""
    return f"wasm.{contract_address}"
