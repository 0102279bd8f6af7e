"""Core migration logic including configuration, orchestration and verification."""

__all__ = [
    "channels",
    "checkpoint",
    "config",
    "context",
    "denom",
    "migrator",
    "scenarios",
    "state",
]
