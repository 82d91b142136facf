# This project was developed with assistance from AI tools.
"""Bounded polling for asynchronous jobs.

A job is modelled as a ``check`` coroutine that returns True once settled.
``poll_until_settled`` calls it at a fixed interval up to a hard attempt
ceiling and reports whether it settled or ran out of budget. It does not
care whether the job's transport is a status endpoint or a subscription.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ..core.config import Settings

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class PollPolicy:
    """Fixed-interval poll budget."""

    interval_seconds: float = 2.0
    max_attempts: int = 30

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")

    @classmethod
    def from_settings(cls, cfg: Settings) -> "PollPolicy":
        return cls(
            interval_seconds=cfg.BATCH_POLL_INTERVAL_SECONDS,
            max_attempts=cfg.BATCH_POLL_MAX_ATTEMPTS,
        )

    @property
    def budget_seconds(self) -> float:
        return self.interval_seconds * self.max_attempts


@dataclass(frozen=True)
class PollOutcome:
    settled: bool
    attempts: int

    @property
    def timed_out(self) -> bool:
        return not self.settled


async def poll_until_settled(
    check: Callable[[int], Awaitable[bool]],
    policy: PollPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
) -> PollOutcome:
    """Wait one interval, then call ``check(attempt)``, until settled or out of attempts.

    ``check`` receives the 1-based attempt number. Exceptions from ``check``
    propagate to the caller.
    """
    for attempt in range(1, policy.max_attempts + 1):
        await sleep(policy.interval_seconds)
        if await check(attempt):
            logger.debug("Job settled after %d poll attempts", attempt)
            return PollOutcome(settled=True, attempts=attempt)

    logger.warning(
        "Job not settled after %d attempts (%.0fs budget)",
        policy.max_attempts,
        policy.budget_seconds,
    )
    return PollOutcome(settled=False, attempts=policy.max_attempts)
