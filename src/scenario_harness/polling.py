"""
Retry wrapper for eventually-consistent assertions.

poll_step() re-invokes a step until it passes or the deadline elapses. Only
AssertionFailed is retried; any other error propagates at once. When the
deadline passes, the last AssertionFailed is re-raised unchanged.
"""

import logging
import time
from typing import Callable, Optional

from .errors import AssertionFailed

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5


def poll_step(
    invoke: Callable[[str], None],
    max_seconds: float,
    step_text: str,
    interval: float = DEFAULT_POLL_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Invoke step_text until it passes or max_seconds elapse.

    The step is always attempted at least once.

    Args:
        invoke: Callable running one step by text (usually ScenarioContext.step)
        max_seconds: Deadline, measured from the first attempt
        step_text: Step to run
        interval: Pause between attempts in seconds
        clock: Monotonic clock (injectable for tests)
        sleep: Sleep function (injectable for tests)

    Returns:
        Number of attempts made

    Raises:
        AssertionFailed: The last failure, once the deadline has elapsed
    """
    if interval <= 0:
        raise ValueError(f"Poll interval must be positive, got {interval}")

    deadline = clock() + max_seconds
    attempts = 0
    last_failure: Optional[AssertionFailed] = None

    while True:
        attempts += 1
        try:
            invoke(step_text)
        except AssertionFailed as e:
            last_failure = e
        else:
            if attempts > 1:
                logger.info("%r passed after %d attempts", step_text, attempts)
            return attempts

        remaining = deadline - clock()
        if remaining <= 0:
            logger.warning(
                "%r still failing after %d attempts over %ss",
                step_text, attempts, max_seconds,
            )
            raise last_failure
        logger.debug("Attempt %d of %r failed: %s", attempts, step_text, last_failure)
        sleep(min(interval, remaining))
