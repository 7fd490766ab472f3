from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from src.verifier.errors import CgroupNotFoundError, ConvergenceTimeoutError

logger = logging.getLogger(__name__)

Predicate = Callable[[], Tuple[bool, Any]]

# reads that fail like this mean the cgroup is not there yet
TRANSIENT_ERRORS = (CgroupNotFoundError, FileNotFoundError)


@dataclass(frozen=True)
class PollResult:
    elapsed: float
    value: Any
    converged: bool
    attempts: int = 0

    def raise_for_status(self, description: str = "condition") -> None:
        if not self.converged:
            raise ConvergenceTimeoutError(
                f"{description} not reached after {self.elapsed:.1f}s, last value: {self.value!r}",
                last_value=self.value,
                elapsed=self.elapsed,
            )


def poll_until(predicate: Predicate, interval: float, deadline: float,
               clock: Callable[[], float] = time.monotonic,
               sleep: Callable[[float], None] = time.sleep) -> PollResult:
    """
    Re-evaluate `predicate` until it reports done or `deadline` seconds pass.

    `predicate` returns (done, value). It is evaluated before the first sleep,
    so an already true condition converges without waiting. Transient
    not-found errors count as "not yet"; anything else (malformed kernel data
    included) propagates. On timeout the last successfully observed value is
    returned, not raised.
    """
    if interval < 0 or deadline < 0:
        raise ValueError("interval and deadline must be >= 0")

    start = clock()
    last_value: Optional[Any] = None
    attempts = 0
    while True:
        attempts += 1
        try:
            done, value = predicate()
        except TRANSIENT_ERRORS as e:
            logger.debug("poll attempt %d: not ready: %s", attempts, e)
        else:
            last_value = value
            if done:
                elapsed = clock() - start
                logger.debug("converged after %d attempts (%.2fs): %r", attempts, elapsed, value)
                return PollResult(elapsed=elapsed, value=value, converged=True, attempts=attempts)
            logger.debug("poll attempt %d: %r", attempts, value)

        elapsed = clock() - start
        if elapsed >= deadline:
            return PollResult(elapsed=elapsed, value=last_value, converged=False, attempts=attempts)
        # the last sleep is cut short so one more attempt lands on the deadline
        sleep(min(interval, deadline - elapsed))
