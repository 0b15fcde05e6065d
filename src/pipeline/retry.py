# src/pipeline/retry.py — v1
"""Bounded retry with exponential backoff for provider calls.

The stage runner makes exactly one attempt per stage; transient provider
errors are absorbed here, composed around the provider call before it is
handed to the runner.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable

from pokefusion.logging.context import set_attempt

logger = logging.getLogger(__name__)

RetryPredicate = Callable[[BaseException], bool]


def retry_everything(error: BaseException) -> bool:
    """Default policy: every exception is worth another attempt."""
    return True


def compute_delay(base_delay_s: float, attempt: int, jitter: bool = False) -> float:
    """Delay before attempt ``attempt + 1`` (``attempt`` is 0-based)."""
    delay = base_delay_s * (2 ** attempt)
    if jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


class RetryingCall:
    """Async callable wrapping ``fn`` with bounded retries.

    Has the same call signature as ``fn``. ``last_attempts`` holds the
    number of invocations made by the most recent call.
    """

    def __init__(
        self,
        fn: Callable[..., Awaitable[Any]],
        max_retries: int,
        base_delay_s: float,
        is_retryable: RetryPredicate | None = None,
        jitter: bool = False,
        label: str = "",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay_s < 0:
            raise ValueError("base_delay_s must be >= 0")
        self._fn = fn
        self._max_retries = max_retries
        self._base_delay_s = base_delay_s
        self._is_retryable = is_retryable or retry_everything
        self._jitter = jitter
        self._label = label or getattr(fn, "__name__", "call")
        self._sleep = sleep
        self.last_attempts = 0

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        self.last_attempts = 0
        total = self._max_retries + 1

        for attempt in range(total):
            self.last_attempts = attempt + 1
            set_attempt(attempt + 1)
            try:
                return await self._fn(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if not self._is_retryable(exc):
                    logger.warning(
                        "'%s' failed with non-retryable %s: %s",
                        self._label, type(exc).__name__, exc,
                    )
                    raise
                if attempt + 1 >= total:
                    logger.warning(
                        "'%s' failed after %d attempts: %s",
                        self._label, total, exc,
                    )
                    raise

                delay = compute_delay(self._base_delay_s, attempt, self._jitter)
                logger.info(
                    "'%s' attempt %d/%d failed (%s), retrying in %.2fs",
                    self._label, attempt + 1, total, exc, delay,
                )
                await self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover


def with_retry(
    fn: Callable[..., Awaitable[Any]],
    max_retries: int,
    base_delay_s: float,
    is_retryable: RetryPredicate | None = None,
    jitter: bool = False,
    label: str = "",
) -> RetryingCall:
    """Wrap an async function with bounded retries and exponential backoff.

    Attempts ``fn`` up to ``max_retries + 1`` times, waiting
    ``base_delay_s * 2**k`` between attempt k and k+1. The last error is
    re-raised once attempts are exhausted; errors rejected by
    ``is_retryable`` are re-raised immediately.
    """
    return RetryingCall(
        fn,
        max_retries=max_retries,
        base_delay_s=base_delay_s,
        is_retryable=is_retryable,
        jitter=jitter,
        label=label,
    )
