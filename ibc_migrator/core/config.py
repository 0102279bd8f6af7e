"""
Settings module for the IBC token migration tool.

This module provides functions for loading the operator's YAML settings file
(chain endpoints, signer keys, contract artifacts, token parameters and wait
timeouts) into typed dataclasses, and for writing a default settings template.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from ibc_migrator.constants import DEFAULT_IBC_TIMEOUT, DEFAULT_STATE_FILE, ICS20_VERSION
from ibc_migrator.exceptions import ConfigError
from ibc_migrator.utils.logging import log_with_context


def _from_mapping(cls: type, data: dict[str, Any] | None) -> Any:
    """Build a flat settings dataclass from ``data``, keeping defaults for missing keys."""
    if not data:
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        log_with_context(
            logging.WARNING,
            f"Ignoring unknown {cls.__name__} keys: {', '.join(sorted(unknown))}",
        )
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class ChainSettings:
    """Connection and signer settings for one chain."""

    chain_id: str = ""
    binary: str = ""
    node: str = "http://localhost:26657"
    lcd: str = "http://localhost:1317"
    key: str = "test1"
    address: str | None = None
    keyring_backend: str = "test"
    home: str | None = None
    gas_prices: str = ""
    gas_adjustment: float = 1.5
    fee_denom: str = ""


def _default_chain_a() -> ChainSettings:
    return ChainSettings(
        chain_id="localterra-1",
        binary="terrad",
        node="http://localhost:26657",
        lcd="http://localhost:1317",
        gas_prices="0.15uluna",
        fee_denom="uluna",
    )


def _default_chain_b() -> ChainSettings:
    return ChainSettings(
        chain_id="localneutron-1",
        binary="neutrond",
        node="http://localhost:26667",
        lcd="http://localhost:1318",
        key="demowallet1",
        gas_prices="0.025untrn",
        fee_denom="untrn",
    )


@dataclass
class RelayerSettings:
    """How to reach the Hermes relayer CLI."""

    command: list[str] = field(
        default_factory=lambda: ["docker", "exec", "hermes", "hermes"]
    )
    channel_version: str = ICS20_VERSION

    def __post_init__(self) -> None:
        if isinstance(self.command, str):
            self.command = shlex.split(self.command)
        if not isinstance(self.command, list) or not self.command:
            raise ConfigError(
                "relayer.command must be a non-empty list or a shell-style string"
            )
        self.command = [str(part) for part in self.command]


@dataclass
class ContractSettings:
    """Locations of the compiled wasm artifacts."""

    directory: str = "contracts"
    token: str = "cw20_oro.wasm"
    bridge: str = "cw20_ics20.wasm"
    bridge_upgrade: str = "new_cw20_ics20.wasm"
    converter_a: str = "oro_token_converter.wasm"
    converter_b: str = "oro_token_converter_neutron.wasm"

    def path(self, artifact: str) -> Path:
        """Full path of ``artifact`` (one of this dataclass's file fields)."""
        return Path(self.directory) / getattr(self, artifact)


@dataclass
class TokenSettings:
    """Parameters of the legacy cw20 token and its bridge."""

    name: str = "Oro Token"
    symbol: str = "ORO"
    decimals: int = 6
    initial_balance: int = 1_100_000_000_000000
    bridge_timeout: int = DEFAULT_IBC_TIMEOUT


@dataclass
class NativeAssetSettings:
    """Parameters of the token-factory denom minted on chain B."""

    subdenom: str = "uoro"
    mint_amount: int = 1_100_000_000_000000


@dataclass
class PollingSettings:
    """Intervals and timeouts for waiting on asynchronous effects (seconds)."""

    interval: float = 1.0
    tx_timeout: float = 30.0
    relay_timeout: float = 60.0
    channel_timeout: float = 180.0


@dataclass
class VerificationSettings:
    """Amounts used by the verification scenarios, in the asset's smallest unit."""

    transfer_amount: int = 100
    conversion_amount: int = 100
    burn_conversion_amount: int = 100_000
    bridge_prime_amount: int = 1_000_000_000000
    converter_top_up: int = 1_000_000_000000
    fee_top_up: int = 1_000000


@dataclass
class Settings:
    """Typed settings for a migration run.

    All fields have defaults matching a LocalTerra / local Neutron devnet.
    """

    chain_a: ChainSettings = field(default_factory=_default_chain_a)
    chain_b: ChainSettings = field(default_factory=_default_chain_b)
    relayer: RelayerSettings = field(default_factory=RelayerSettings)
    contracts: ContractSettings = field(default_factory=ContractSettings)
    token: TokenSettings = field(default_factory=TokenSettings)
    native_asset: NativeAssetSettings = field(default_factory=NativeAssetSettings)
    polling: PollingSettings = field(default_factory=PollingSettings)
    verification: VerificationSettings = field(default_factory=VerificationSettings)

    state_path: str = DEFAULT_STATE_FILE

    # Retry for REST queries
    max_retries: int = 3
    retry_delay: float = 1

    def __post_init__(self) -> None:
        """Validate invariants after initialization."""
        for name in ("interval", "tx_timeout", "relay_timeout", "channel_timeout"):
            if getattr(self.polling, name) <= 0:
                raise ConfigError(f"polling.{name} must be positive")
        if self.chain_a.chain_id == self.chain_b.chain_id:
            raise ConfigError("chain_a and chain_b must have different chain ids")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create Settings from a raw settings dictionary."""
        chains = data.get("chains") or {}
        chain_a = replace(_default_chain_a(), **_overrides(ChainSettings, chains.get("a")))
        chain_b = replace(_default_chain_b(), **_overrides(ChainSettings, chains.get("b")))
        return cls(
            chain_a=chain_a,
            chain_b=chain_b,
            relayer=_from_mapping(RelayerSettings, data.get("relayer")),
            contracts=_from_mapping(ContractSettings, data.get("contracts")),
            token=_from_mapping(TokenSettings, data.get("token")),
            native_asset=_from_mapping(NativeAssetSettings, data.get("native_asset")),
            polling=_from_mapping(PollingSettings, data.get("polling")),
            verification=_from_mapping(VerificationSettings, data.get("verification")),
            state_path=data.get("state_path", DEFAULT_STATE_FILE),
            max_retries=data.get("max_retries", 3),
            retry_delay=data.get("retry_delay", 1),
        )


def _overrides(cls: type, data: dict[str, Any] | None) -> dict[str, Any]:
    known = {f.name for f in fields(cls)}
    return {k: v for k, v in (data or {}).items() if k in known}


def load_settings(settings_path: Path) -> Settings:
    """
    Load settings from a YAML file and apply default values.

    A missing file yields the devnet defaults. A file that exists but cannot
    be parsed is an error.

    Args:
        settings_path: Path to the settings YAML file

    Returns:
        Settings with all necessary defaults applied

    Raises:
        ConfigError: If the file is unreadable or holds invalid values.
    """
    raw: dict[str, Any] = {}

    if settings_path.exists():
        try:
            with open(settings_path) as f:
                loaded = yaml.safe_load(f)
                # Handle None result from empty file
                if loaded is not None:
                    raw = loaded
        except (yaml.YAMLError, OSError) as e:
            raise ConfigError(f"Failed to load settings file {settings_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Settings file {settings_path} must contain a mapping")
        log_with_context(logging.INFO, f"Loaded settings from {settings_path}")
    else:
        log_with_context(
            logging.WARNING,
            f"Settings file {settings_path} not found, using devnet defaults",
        )

    try:
        return Settings.from_dict(raw)
    except TypeError as e:
        raise ConfigError(f"Invalid settings in {settings_path}: {e}") from e


def create_default_settings(output_path: Path) -> bool:
    """
    Create a default settings file for a local two-chain devnet.

    Will not overwrite an existing file.

    Args:
        output_path: Path where the default settings should be saved

    Returns:
        True if the file was created successfully, False otherwise
    """
    if output_path.exists():
        log_with_context(
            logging.WARNING,
            f"Settings file {output_path} already exists, not overwriting",
        )
        return False

    defaults = Settings()
    default_settings = {
        "chains": {
            "a": _plain(defaults.chain_a),
            "b": _plain(defaults.chain_b),
        },
        "relayer": _plain(defaults.relayer),
        "contracts": _plain(defaults.contracts),
        "token": _plain(defaults.token),
        "native_asset": _plain(defaults.native_asset),
        "polling": _plain(defaults.polling),
        "verification": _plain(defaults.verification),
        "state_path": defaults.state_path,
        "max_retries": defaults.max_retries,
        "retry_delay": defaults.retry_delay,
    }

    try:
        with open(output_path, "w") as f:
            yaml.safe_dump(default_settings, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        log_with_context(logging.ERROR, f"Failed to create default settings file: {e}")
        return False
    log_with_context(logging.INFO, f"Created default settings file at {output_path}")
    return True


def _plain(obj: Any) -> dict[str, Any]:
    return {f.name: getattr(obj, f.name) for f in fields(obj) if getattr(obj, f.name) is not None}
