"""Channel records and the canonical channel selection policy.

A relayer may open several channels for the same port pair over the life of
a devnet (re-runs, retries). Only the newest one is live, so selection always
takes the channel with the highest trailing sequence number.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable

from ibc_migrator.exceptions import NoChannelsFoundError
from ibc_migrator.utils.logging import log_with_context

_TRAILING_DIGITS = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class Channel:
    """One end of an IBC channel as reported by a chain."""

    channel_id: str
    port_id: str = ""
    counterparty_port_id: str = ""
    counterparty_channel_id: str = ""
    state: str = ""

    @property
    def sequence(self) -> int:
        """Numeric suffix of ``channel_id`` (``channel-12`` -> 12)."""
        match = _TRAILING_DIGITS.search(self.channel_id)
        if match is None:
            raise ValueError(
                f"Channel id '{self.channel_id}' has no numeric sequence suffix"
            )
        return int(match.group(1))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Channel:
        """Build a Channel from an ``IdentifiedChannel`` REST payload."""
        counterparty = data.get("counterparty") or {}
        return cls(
            channel_id=data["channel_id"],
            port_id=data.get("port_id", ""),
            counterparty_port_id=counterparty.get("port_id", ""),
            counterparty_channel_id=counterparty.get("channel_id", ""),
            state=data.get("state", ""),
        )


def filter_port_pair(
    channels: Iterable[Channel], port_id: str, counterparty_port_id: str
) -> list[Channel]:
    """Keep only the channels bound to ``port_id`` facing ``counterparty_port_id``."""
    return [
        ch
        for ch in channels
        if ch.port_id == port_id and ch.counterparty_port_id == counterparty_port_id
    ]


def select_canonical_channel(channels: list[Channel]) -> Channel:
    """Return the most recently created channel.

    Args:
        channels: Channels reported by one chain, typically already narrowed
            to a single port pair.

    Returns:
        The channel with the highest sequence number.

    Raises:
        NoChannelsFoundError: If ``channels`` is empty.
    """
    if not channels:
        raise NoChannelsFoundError("No IBC channels found to select from")

    selected = max(channels, key=lambda ch: ch.sequence)
    if len(channels) > 1:
        log_with_context(
            logging.DEBUG,
            f"Selected {selected.channel_id} out of {len(channels)} candidate channels",
            port=selected.port_id or None,
        )
    return selected


def latest_sequence(channels: list[Channel]) -> int:
    """Highest sequence among ``channels``, or -1 when there are none."""
    return max((ch.sequence for ch in channels), default=-1)
