"""
Accumulating migration record for the token migration.

The record is built up by one forward-only orchestration run. It is a frozen
dataclass: every phase-completion method returns a new snapshot, so a phase
can only add what it produced and the previous snapshot stays untouched.
Verification scenarios read it and never write it.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any

from ibc_migrator.exceptions import MissingConfigFieldError


class MigrationPhase(str, Enum):
    """Orchestration phases, in execution order."""

    DEPLOY_LEGACY = "deploy-legacy"
    LEGACY_CHANNEL = "legacy-channel"
    NATIVE_ASSET = "native-asset"
    CONVERTERS = "converters"


PHASE_ORDER: tuple[MigrationPhase, ...] = tuple(MigrationPhase)


@dataclass(frozen=True)
class MigrationConfig:
    """Addresses, channels and denoms produced by the orchestration phases."""

    # deploy-legacy
    source_token_address: str | None = None
    bridge_contract_address: str | None = None

    # legacy-channel
    legacy_channel_a: str | None = None
    legacy_channel_b: str | None = None
    derived_legacy_denom_on_b: str | None = None

    # native-asset
    native_denom_chain_b: str | None = None
    new_channel_a: str | None = None
    new_channel_b: str | None = None
    derived_denom_on_a: str | None = None

    # converters
    converter_address_a: str | None = None
    converter_address_b: str | None = None

    completed_phases: tuple[str, ...] = ()

    def require(self, *names: str, consumer: str = "migration") -> tuple[str, ...]:
        """Return the values of ``names``, failing fast on any missing one.

        Raises:
            MissingConfigFieldError: If a field has not been produced yet.
        """
        values = []
        for name in names:
            value = getattr(self, name)
            if not value:
                raise MissingConfigFieldError(name, consumer)
            values.append(value)
        return tuple(values)

    def is_complete(self, phase: MigrationPhase) -> bool:
        """True if ``phase`` has completed at least once."""
        return phase.value in self.completed_phases

    def _completed(self, phase: MigrationPhase, **changes: str) -> MigrationConfig:
        completed = self.completed_phases
        if phase.value not in completed:
            completed = (*completed, phase.value)
        return replace(self, completed_phases=completed, **changes)

    # ------------------------------------------------------------------
    # Phase completion
    # ------------------------------------------------------------------

    def with_legacy_contracts(
        self, source_token_address: str, bridge_contract_address: str
    ) -> MigrationConfig:
        return self._completed(
            MigrationPhase.DEPLOY_LEGACY,
            source_token_address=source_token_address,
            bridge_contract_address=bridge_contract_address,
        )

    def with_legacy_channel(
        self, channel_a: str, channel_b: str, derived_legacy_denom_on_b: str
    ) -> MigrationConfig:
        return self._completed(
            MigrationPhase.LEGACY_CHANNEL,
            legacy_channel_a=channel_a,
            legacy_channel_b=channel_b,
            derived_legacy_denom_on_b=derived_legacy_denom_on_b,
        )

    def with_native_asset(
        self,
        native_denom: str,
        channel_a: str,
        channel_b: str,
        derived_denom_on_a: str,
    ) -> MigrationConfig:
        return self._completed(
            MigrationPhase.NATIVE_ASSET,
            native_denom_chain_b=native_denom,
            new_channel_a=channel_a,
            new_channel_b=channel_b,
            derived_denom_on_a=derived_denom_on_a,
        )

    def with_converters(
        self, converter_address_a: str, converter_address_b: str
    ) -> MigrationConfig:
        return self._completed(
            MigrationPhase.CONVERTERS,
            converter_address_a=converter_address_a,
            converter_address_b=converter_address_b,
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["completed_phases"] = list(self.completed_phases)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigrationConfig:
        """Create a MigrationConfig from a persisted dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["completed_phases"] = tuple(data.get("completed_phases") or ())
        return cls(**values)
