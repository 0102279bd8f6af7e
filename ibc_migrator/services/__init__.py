"""Service integrations for the chain node CLIs, LCD endpoints and the relayer."""

__all__ = [
    "chain",
    "relayer",
]
