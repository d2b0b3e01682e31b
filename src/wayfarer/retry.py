"""Bounded async retry with explicit error contracts.

Design goals:
- Small API surface
- Explicit state (policy + attempt counters local to one call)
- Retry decisions switch on ``WayfarerError.kind``, never on message text
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
from typing import TYPE_CHECKING, TypeVar

from wayfarer.errors import ErrorKind, HTTPError, WayfarerError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Deterministic failures: replaying the same input cannot help.
_FATAL_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.CONFIGURATION,
        ErrorKind.REQUEST_VALIDATION,
        ErrorKind.JSON_VALIDATION,
        ErrorKind.STREAMING,
    }
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with capped exponential backoff.

    A call makes at most ``max_retries + 1`` attempts. The delay before retry
    ``n`` (1-based) is ``min(initial_delay_s * backoff_multiplier**(n-1),
    max_delay_s)``, i.e. 1s, 2s, 4s, 8s, then 10s with the defaults.

    Worst-case wall-clock time for one logical call is
    ``(max_retries + 1) * timeout_s + sum(backoff delays)``; with client
    defaults that is 4 * 60s + 7s. Timeouts are not retried by default, so in
    practice a timed-out attempt ends the call.
    """

    max_retries: int = 3
    initial_delay_s: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay_s: float = 10.0
    jitter: bool = False  # "full jitter" when enabled
    #: ``APIError`` cannot be told apart from a transient provider condition
    #: without inspecting its code, so it is retried unless disabled here.
    retry_api_errors: bool = True
    #: Opt-in: a timed-out attempt normally ends the call.
    retry_timeouts: bool = False

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_retries < 0:
            raise ValueError("RetryPolicy.max_retries must be >= 0")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")

    @property
    def max_attempts(self) -> int:
        """Total attempts including the first one."""
        return self.max_retries + 1

    def delay_before(
        self,
        retry: int,
        *,
        rand: Callable[[], float] = random.random,
    ) -> float:
        """Seconds to sleep before retry number ``retry`` (1-based)."""
        if retry < 1:
            raise ValueError(f"retry numbers start at 1, got {retry}")
        ceiling = min(
            self.max_delay_s,
            self.initial_delay_s * self.backoff_multiplier ** (retry - 1),
        )
        if ceiling <= 0:
            return 0.0
        # Full jitter draws uniformly from [0, ceiling].
        return rand() * ceiling if self.jitter else ceiling

    def worst_case_s(self, timeout_s: float) -> float:
        """Upper bound on one logical call when every attempt times out."""
        sleeps = sum(
            self.delay_before(n, rand=lambda: 1.0)
            for n in range(1, self.max_retries + 1)
        )
        return self.max_attempts * timeout_s + sleeps


def should_retry_chat(exc: BaseException, policy: RetryPolicy | None = None) -> bool:
    """Return True when a failed chat attempt may be replayed.

    Contract:
    - Cancellation is never retried.
    - Configuration, request-validation, JSON-validation and streaming errors
      are fatal.
    - Timeouts are fatal unless ``policy.retry_timeouts`` is set.
    - HTTP errors are retried for 5xx and 429 only.
    - API errors follow ``policy.retry_api_errors`` (default: retry).
    - Anything else (network failures, malformed transport state) is retried.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    policy = policy or RetryPolicy()

    if not isinstance(exc, WayfarerError):
        return True

    kind = exc.kind
    if kind in _FATAL_KINDS:
        return False
    match kind:
        case ErrorKind.TIMEOUT:
            return policy.retry_timeouts
        case ErrorKind.HTTP:
            return isinstance(exc, HTTPError) and not exc.is_client_error
        case ErrorKind.API:
            return policy.retry_api_errors
        case _:
            return True


async def _sleep(delay_s: float) -> None:
    await asyncio.sleep(delay_s)


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """Run an async factory with bounded retries.

    ``factory`` is invoked once per attempt so every attempt rebuilds its own
    request and arms its own deadline. On exhaustion the last error is
    re-raised unchanged.
    """
    decide = should_retry or (lambda exc: should_retry_chat(exc, policy))
    sleeper = sleep if sleep is not None else _sleep

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await factory()
        except Exception as exc:
            if not decide(exc) or attempt >= policy.max_attempts:
                raise

            delay = policy.delay_before(attempt)
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %.2fs",
                attempt,
                policy.max_attempts,
                exc.code if isinstance(exc, WayfarerError) else type(exc).__name__,
                delay,
            )
            if delay > 0:
                await sleeper(delay)

    # Unreachable: the loop always returns or raises.
    raise RuntimeError("retry_async exhausted without an exception")  # pragma: no cover
