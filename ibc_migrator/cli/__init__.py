"""Command-line interface for the IBC token migration tool."""

__all__ = [
    "commands",
    "common",
    "config_cmd",
    "init_cmd",
    "verify_cmd",
]
