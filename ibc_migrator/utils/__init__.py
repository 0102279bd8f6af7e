"""Shared utilities for API access, logging and polling."""

__all__ = [
    "api",
    "logging",
    "polling",
]
