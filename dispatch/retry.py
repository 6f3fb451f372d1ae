"""
Bounded Retry

Per-attempt timeout plus exponential backoff with jitter.

GUARANTEES:
===========
1. At most 1 + max_retries attempts
2. A timed-out attempt is cancelled, not abandoned
3. Only the final failure reaches the caller, as ExecutionError
4. Caller cancellation is never swallowed
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Tuple
import asyncio
import logging
import random

from .errors import ExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    timeout_seconds: float = 30.0
    base_backoff_seconds: float = 1.0
    max_jitter_seconds: float = 0.5

    def backoff(self, attempt: int, jitter: float = 0.0) -> float:
        """Delay before retry number `attempt` (1-based): base * 2^(attempt-1) + jitter."""
        return self.base_backoff_seconds * (2 ** (attempt - 1)) + jitter


async def execute_with_retry(
    call: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    jitter: Callable[[float], float] = lambda upper: random.uniform(0, upper),
    label: str = "call"
) -> Tuple[Any, int]:
    """
    Run `call` until it succeeds or the retry budget is spent.

    Returns (result, attempts_used).
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = await asyncio.wait_for(call(), timeout=policy.timeout_seconds)
            return result, attempt
        except asyncio.TimeoutError:
            reason = f"timed out after {policy.timeout_seconds}s"
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"

        if attempt > policy.max_retries:
            logger.error(
                "%s failed after %d attempt(s), giving up: %s", label, attempt, reason
            )
            raise ExecutionError(reason, attempts=attempt)

        delay = policy.backoff(attempt, jitter(policy.max_jitter_seconds))
        logger.warning(
            "%s failed (%s); retry %d/%d in %.0fms",
            label, reason, attempt, policy.max_retries, delay * 1000,
        )
        await sleep(delay)
