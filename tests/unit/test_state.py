"""Unit tests for the migration record."""

from __future__ import annotations

import dataclasses

import pytest

from ibc_migrator.core.state import PHASE_ORDER, MigrationConfig, MigrationPhase
from ibc_migrator.exceptions import ConfigError, MissingConfigFieldError


class TestMigrationPhase:
    """Tests for phase ordering."""

    def test_order(self):
        assert [p.value for p in PHASE_ORDER] == [
            "deploy-legacy",
            "legacy-channel",
            "native-asset",
            "converters",
        ]


class TestRequire:
    """Tests for MigrationConfig.require()."""

    def test_returns_values_in_order(self, complete_record):
        assert complete_record.require("legacy_channel_b", "source_token_address") == (
            "channel-2",
            "terra1token",
        )

    def test_missing_field_raises(self):
        with pytest.raises(MissingConfigFieldError) as exc_info:
            MigrationConfig().require("source_token_address", consumer="legacy-channel")
        assert exc_info.value.field_name == "source_token_address"
        assert exc_info.value.consumer == "legacy-channel"
        assert "legacy-channel" in str(exc_info.value)

    def test_empty_string_counts_as_missing(self):
        with pytest.raises(MissingConfigFieldError):
            MigrationConfig(source_token_address="").require("source_token_address")

    def test_is_config_error(self):
        with pytest.raises(ConfigError):
            MigrationConfig().require("converter_address_a")


class TestPhaseCompletion:
    """Tests for the with_* snapshot methods."""

    def test_snapshots_are_new_objects(self):
        empty = MigrationConfig()
        after = empty.with_legacy_contracts("terra1token", "terra1bridge")
        assert empty.source_token_address is None
        assert after.source_token_address == "terra1token"
        assert after.bridge_contract_address == "terra1bridge"

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            MigrationConfig().source_token_address = "x"

    def test_marks_phase_complete(self):
        record = MigrationConfig().with_legacy_channel("channel-1", "channel-2", "ibc/X")
        assert record.is_complete(MigrationPhase.LEGACY_CHANNEL)
        assert not record.is_complete(MigrationPhase.DEPLOY_LEGACY)

    def test_rerun_does_not_duplicate_phase(self):
        record = MigrationConfig().with_converters("a1", "b1").with_converters("a2", "b2")
        assert record.completed_phases == ("converters",)
        assert record.converter_address_a == "a2"

    def test_keeps_earlier_fields(self):
        record = (
            MigrationConfig()
            .with_legacy_contracts("terra1token", "terra1bridge")
            .with_native_asset("factory/n/uoro", "channel-5", "channel-6", "ibc/NEW")
        )
        assert record.source_token_address == "terra1token"
        assert record.native_denom_chain_b == "factory/n/uoro"
        assert record.new_channel_a == "channel-5"
        assert record.new_channel_b == "channel-6"
        assert record.derived_denom_on_a == "ibc/NEW"


class TestSerialization:
    """Tests for to_dict()/from_dict()."""

    def test_round_trip(self, complete_record):
        assert MigrationConfig.from_dict(complete_record.to_dict()) == complete_record

    def test_completed_phases_serialised_as_list(self, complete_record):
        assert isinstance(complete_record.to_dict()["completed_phases"], list)

    def test_unknown_keys_ignored(self):
        record = MigrationConfig.from_dict(
            {"source_token_address": "terra1token", "legacy_field": 1}
        )
        assert record.source_token_address == "terra1token"
        assert record.completed_phases == ()
