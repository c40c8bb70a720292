"""Bounded retry with exponential backoff for read-after-write lag.

The store may not yet show a row another writer (or this one) just
created. Callers describe how long they are willing to wait with a
RetryPolicy and pick what happens when the budget runs out:

- soft: hand back the last result, possibly empty ("not ready yet").
- hard: raise NotFoundError, the caller cannot proceed without the row.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sized
from dataclasses import dataclass, replace
from typing import Generic, Literal, TypeVar

from .config import settings
from .errors import NotFoundError

T = TypeVar("T")

RetryMode = Literal["soft", "hard"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    initial_delay_ms: int = 100
    backoff_multiplier: float = 2.0
    min_acceptable_count: int = 1
    mode: RetryMode = "soft"

    def delay_seconds(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt`` before the next one."""
        return (self.initial_delay_ms * (self.backoff_multiplier ** attempt)) / 1000.0

    def with_mode(self, mode: RetryMode) -> "RetryPolicy":
        return replace(self, mode=mode)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    value: T
    attempts: int
    satisfied: bool


def default_policy(mode: RetryMode = "soft", min_acceptable_count: int = 1) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.event_retry_max_attempts,
        initial_delay_ms=settings.event_retry_initial_delay_ms,
        backoff_multiplier=settings.event_retry_backoff,
        min_acceptable_count=min_acceptable_count,
        mode=mode,
    )


def result_count(value: object) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Sized):
        return len(value)
    return 1


def retry_with_outcome(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    what: str = "record",
    sleep: Callable[[float], None] = time.sleep,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> RetryOutcome[T]:
    log = log or logger
    attempts = max(1, policy.max_attempts)

    value: T | None = None
    for attempt in range(attempts):
        value = operation()
        count = result_count(value)
        if count >= policy.min_acceptable_count:
            if attempt > 0:
                log.info("%s visible after %d attempts", what, attempt + 1)
            return RetryOutcome(value=value, attempts=attempt + 1, satisfied=True)  # type: ignore[arg-type]

        if attempt < attempts - 1:
            delay = policy.delay_seconds(attempt)
            log.debug(
                "%s not ready on attempt %d/%d (count=%d), retrying in %.3fs",
                what,
                attempt + 1,
                attempts,
                count,
                delay,
            )
            sleep(delay)

    if policy.mode == "hard":
        log.warning("%s still missing after %d attempts", what, attempts)
        raise NotFoundError(what, attempts)

    log.info("%s not ready after %d attempts, returning partial result", what, attempts)
    return RetryOutcome(value=value, attempts=attempts, satisfied=False)  # type: ignore[arg-type]


def retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    *,
    what: str = "record",
    sleep: Callable[[float], None] = time.sleep,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> T:
    return retry_with_outcome(operation, policy, what=what, sleep=sleep, log=log).value
