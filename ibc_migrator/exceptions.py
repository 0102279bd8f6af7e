"""Custom exception hierarchy for the IBC token migration tool."""

from __future__ import annotations


class MigratorError(Exception):
    """Base exception for all migration-related errors."""


class ConfigError(MigratorError):
    """Raised when settings are invalid or missing."""


class MissingConfigFieldError(ConfigError):
    """Raised when a phase needs a migration record field that was never produced."""

    def __init__(self, field_name: str, consumer: str) -> None:
        super().__init__(
            f"'{consumer}' requires '{field_name}', which has not been produced "
            "by an earlier phase. Run the earlier phases first."
        )
        self.field_name = field_name
        self.consumer = consumer


class ConfigStoreError(ConfigError):
    """Raised when the persisted migration record cannot be read or written."""


class APIError(MigratorError):
    """Raised when a chain REST query fails in an unrecoverable way."""


class TransactionFailedError(MigratorError):
    """Raised when a chain rejects a transaction."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        raw_log: str = "",
        txhash: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.raw_log = raw_log
        self.txhash = txhash


class DeploymentFailedError(TransactionFailedError):
    """Raised when storing, instantiating or migrating a contract fails."""


class NoChannelsFoundError(MigratorError):
    """Raised when a channel query returns nothing where a channel was expected."""


class RelayTimeoutError(MigratorError):
    """Raised when an expected cross-chain effect does not appear in time."""


class RelayerError(MigratorError):
    """Raised when the relayer CLI exits unsuccessfully."""


class VerificationFailedError(MigratorError):
    """Raised when a verification scenario observes an unexpected state."""
