"""Waiting for asynchronous chain and relayer effects."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from ibc_migrator.exceptions import RelayTimeoutError
from ibc_migrator.utils.logging import log_with_context

T = TypeVar("T")


def poll_until(
    predicate: Callable[[], T],
    interval: float,
    timeout: float,
    description: str = "condition",
    **log_kwargs: str,
) -> T:
    """Call ``predicate`` every ``interval`` seconds until it returns a truthy value.

    Args:
        predicate: Zero-argument callable; its first truthy result is returned.
        interval: Seconds between attempts.
        timeout: Seconds after which to give up.
        description: Human readable name of the awaited effect, for logs and errors.
        **log_kwargs: Extra logging context (``chain``, ``phase``, ``scenario``).

    Returns:
        The first truthy value returned by ``predicate``.

    Raises:
        RelayTimeoutError: If ``timeout`` elapses first.
    """
    deadline = time.monotonic() + timeout
    attempt = 0
    while True:
        attempt += 1
        result = predicate()
        if result:
            if attempt > 1:
                log_with_context(
                    logging.DEBUG,
                    f"{description} observed after {attempt} attempts",
                    **log_kwargs,
                )
            return result

        if time.monotonic() + interval > deadline:
            raise RelayTimeoutError(
                f"Timed out after {timeout:.1f}s waiting for {description}"
            )
        log_with_context(
            logging.DEBUG,
            f"Waiting {interval:.1f}s for {description} (attempt {attempt})",
            **log_kwargs,
        )
        time.sleep(interval)
