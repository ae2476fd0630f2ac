"""Bounded retry for the startup bootstrap step."""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from ..core.logging import LogContext

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to run the bootstrap action and how long to wait between runs."""
    max_attempts: int = 5
    delay_between_attempts: float = 3.0  # seconds

    def __post_init__(self):
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise TypeError(f"max_attempts must be an int, got {self.max_attempts!r}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay_between_attempts < 0:
            raise ValueError(
                f"delay_between_attempts must be >= 0, got {self.delay_between_attempts}"
            )


@dataclass(frozen=True)
class BootstrapOutcome:
    """Result of running the bootstrap action under a RetryPolicy."""
    succeeded: bool
    attempts: int
    cause: Optional[BaseException] = None

    @classmethod
    def success(cls, attempts: int) -> "BootstrapOutcome":
        return cls(succeeded=True, attempts=attempts)

    @classmethod
    def failure(cls, attempts: int, cause: BaseException) -> "BootstrapOutcome":
        return cls(succeeded=False, attempts=attempts, cause=cause)


async def run_with_retry(
    action: Callable[[], Awaitable[None]],
    policy: RetryPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
    name: str = "bootstrap",
) -> BootstrapOutcome:
    """
    Run ``action`` until it succeeds or ``policy.max_attempts`` runs have failed.

    Attempts are strictly sequential. Each failure is logged and followed by
    ``policy.delay_between_attempts`` of sleep, except the last one. Running
    out of attempts is reported through the outcome, never raised.

    Args:
        action: Zero-argument coroutine function; must tolerate re-invocation
        policy: Attempt count and inter-attempt delay
        sleep: Awaitable sleep, injectable for tests
        name: Label for log events

    Returns:
        BootstrapOutcome.success on the first successful attempt,
        BootstrapOutcome.failure carrying the last cause otherwise
    """
    last_cause: Optional[BaseException] = None

    for attempt in range(1, policy.max_attempts + 1):
        with LogContext(bootstrap=name, attempt=attempt):
            logger.info("bootstrap_attempt_started", max_attempts=policy.max_attempts)
            try:
                await action()
            except Exception as e:
                last_cause = e
                logger.error(
                    "bootstrap_attempt_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            else:
                logger.info("bootstrap_attempt_succeeded")
                return BootstrapOutcome.success(attempt)

        if attempt < policy.max_attempts:
            await sleep(policy.delay_between_attempts)

    logger.warning(
        "bootstrap_attempts_exhausted",
        bootstrap=name,
        attempts=policy.max_attempts,
        error=str(last_cause),
    )
    return BootstrapOutcome.failure(policy.max_attempts, last_cause)


__all__ = ["RetryPolicy", "BootstrapOutcome", "run_with_retry"]
