"""Shared type definitions for the IBC token migration tool."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypedDict


@dataclass(frozen=True)
class Coin:
    """An amount of a native denom."""

    denom: str
    amount: int

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


def format_coins(coins: list[Coin]) -> str:
    """Render coins the way the node CLI expects (``100uluna,5ibc/ABC``)."""
    return ",".join(str(coin) for coin in coins)


class TxEventAttribute(TypedDict, total=False):
    """A key/value attribute of a transaction event."""

    key: str
    value: str


class TxEvent(TypedDict, total=False):
    """An event emitted while executing a transaction."""

    type: str
    attributes: list[TxEventAttribute]


class TxResponse(TypedDict, total=False):
    """The ``tx_response`` body returned by the chain REST API."""

    txhash: str
    height: str
    code: int
    codespace: str
    raw_log: str
    events: list[TxEvent]
    logs: list[dict[str, Any]]


@dataclass
class ScenarioResult:
    """Outcome of one verification scenario."""

    name: str
    passed: bool
    error: str | None = None
    observations: dict[str, int] = field(default_factory=dict)
