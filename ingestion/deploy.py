"""
Simulated production publish.

Runs the fixed publish sequence for a production-zone write. Each step
only logs and waits; nothing leaves the process.
"""

from __future__ import annotations
from typing import Any, Awaitable, Callable, Sequence
import asyncio
import logging

logger = logging.getLogger(__name__)

PUBLISH_STEPS = (
    "Preparing commit for {path}",
    "Creating delta patch",
)


async def simulate_publish(
    path: str,
    step_delays: Sequence[float] = (0.8, 0.5),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> None:
    for step, delay in zip(PUBLISH_STEPS, step_delays):
        logger.info("[publish] %s", step.format(path=path))
        await sleep(delay)
    logger.info("[publish] Pushed %s to production cluster", path)
