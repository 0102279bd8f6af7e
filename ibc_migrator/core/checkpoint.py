"""Persistence of the migration record between orchestration phases."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from ibc_migrator.core.state import MigrationConfig
from ibc_migrator.exceptions import ConfigStoreError
from ibc_migrator.utils.logging import log_with_context

STATE_SCHEMA_VERSION = 1


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConfigStore:
    """Single JSON document holding the migration record.

    One writer (the orchestrator), any number of sequential readers. Saves go
    through a temporary file and an atomic rename so the previous record
    survives an interrupted write.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.last_updated: str | None = None

    def load(self) -> MigrationConfig:
        """Load the record, or return an empty one if nothing was saved yet.

        Raises:
            ConfigStoreError: If the file exists but cannot be used.
        """
        if not self.path.exists():
            log_with_context(
                logging.INFO,
                f"No migration record at {self.path}, starting from an empty one",
            )
            return MigrationConfig()
        try:
            raw = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            raise ConfigStoreError(
                f"Failed to read migration record {self.path}: {e}"
            ) from e

        if not isinstance(raw, dict):
            raise ConfigStoreError(f"Migration record {self.path} has invalid format")
        version = raw.get("schema_version", 0)
        if version != STATE_SCHEMA_VERSION:
            raise ConfigStoreError(
                f"Migration record schema version {version} != {STATE_SCHEMA_VERSION}"
            )

        migration = raw.get("migration") or {}
        if not isinstance(migration, dict):
            raise ConfigStoreError(
                f"Migration record {self.path} has a non-mapping \"migration\" section"
            )

        self.last_updated = raw.get("last_updated")
        return MigrationConfig.from_dict(migration)

    def save(self, config: MigrationConfig) -> None:
        """Atomically replace the persisted record (write .tmp, fsync, rename).

        Raises:
            ConfigStoreError: If the record could not be written.
        """
        self.last_updated = _now_iso()
        document = {
            "schema_version": STATE_SCHEMA_VERSION,
            "last_updated": self.last_updated,
            "migration": config.to_dict(),
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w") as f:
                f.write(json.dumps(document, indent=2) + "\n")
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(self.path)
        except OSError as e:
            raise ConfigStoreError(
                f"Failed to write migration record {self.path}: {e}"
            ) from e
        log_with_context(logging.DEBUG, f"Migration record saved to {self.path}")
