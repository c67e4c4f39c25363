"""Fixed-interval polling.

Centralised polling loop for everything in a bridge operation that we
must wait for: guardian attestations, wrapped asset registration,
relayer delivery and Executor status.

Polling is fixed-interval, not exponential backoff. Waits are dominated by
block finality on the source chain, not by contention, so backing off
would only delay noticing the result.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from wormhole_bridge.constants import (
    DEFAULT_ATTESTATION_TIMEOUT,
    DEFAULT_EXECUTOR_STATUS_ATTEMPTS,
    DEFAULT_EXECUTOR_STATUS_INTERVAL,
    DEFAULT_POLL_INTERVAL,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class PollingPolicy:
    """How long and how often to poll.

    A wait ends when ``timeout`` seconds have elapsed or ``max_attempts``
    fetches have been made, whichever comes first.
    Setting both to ``None`` polls forever, see :py:meth:`unbounded`.

    Example:

    .. code-block:: python

        # Production attestation wait (default): 25 minutes at 5 second interval
        policy = PollingPolicy()

        # Fast-fail for tests
        policy = PollingPolicy.create_test_config()
    """

    #: Maximum seconds to wait, or ``None`` for no time limit
    timeout: float | None = DEFAULT_ATTESTATION_TIMEOUT

    #: Seconds to sleep between attempts
    poll_interval: float = DEFAULT_POLL_INTERVAL

    #: Maximum fetch attempts, or ``None`` for no attempt limit
    max_attempts: int | None = None

    @property
    def is_bounded(self) -> bool:
        return self.timeout is not None or self.max_attempts is not None

    @classmethod
    def unbounded(cls, poll_interval: float = 2.0) -> "PollingPolicy":
        """Poll until the result appears, however long it takes.

        Only meant for interactive use where a human can interrupt the wait.
        """
        return cls(timeout=None, poll_interval=poll_interval, max_attempts=None)

    @classmethod
    def executor_status(cls) -> "PollingPolicy":
        """Short attempt-bounded policy for Executor delivery status checks."""
        return cls(
            timeout=None,
            poll_interval=DEFAULT_EXECUTOR_STATUS_INTERVAL,
            max_attempts=DEFAULT_EXECUTOR_STATUS_ATTEMPTS,
        )

    @classmethod
    def create_test_config(cls) -> "PollingPolicy":
        """Create a policy tuned for fast test feedback."""
        return cls(timeout=0.5, poll_interval=0.01, max_attempts=None)


class PollTimeout(TimeoutError):
    """Polling gave up before the awaited result appeared."""

    def __init__(self, message: str, attempts: int, elapsed: float):
        super().__init__(message)

        #: How many fetches were made
        self.attempts = attempts

        #: Seconds elapsed when we gave up
        self.elapsed = elapsed


def poll_until(
    fetch: Callable[[], T | None],
    policy: PollingPolicy,
    description: str,
    exception_class: type[PollTimeout] = PollTimeout,
    on_attempt: Callable[[int, float], None] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fetch`` at a fixed interval until it returns something other than ``None``.

    - Any exception raised by ``fetch`` counts as "not yet available"
      and is retried like ``None``
    - A fetch that has started is allowed to finish, the deadline is checked
      only between attempts
    - The first attempt is logged at INFO, later attempts at DEBUG

    :param fetch:
        One-shot lookup. Return ``None`` when the result is not yet there.

    :param policy:
        Timeout, interval and attempt bounds.

    :param description:
        Human-readable name of what we are waiting for, used in logs and errors.

    :param exception_class:
        :py:class:`PollTimeout` subclass raised when we give up.

    :param on_attempt:
        Optional callback receiving ``(attempt, elapsed)`` before each fetch.

    :param clock:
        Monotonic clock. Replaced with a fake in tests.

    :param sleep:
        Sleep function. Replaced with a fake in tests.

    :return:
        The first non-``None`` value returned by ``fetch``.

    :raise PollTimeout:
        As ``exception_class``, when the policy bounds are exhausted.
    """
    start = clock()
    attempt = 0

    while True:
        elapsed = clock() - start

        if policy.timeout is not None and elapsed >= policy.timeout:
            raise exception_class(
                f"{description}: not available after {elapsed:.1f}s ({attempt} attempts, timeout {policy.timeout}s)",
                attempts=attempt,
                elapsed=elapsed,
            )

        if policy.max_attempts is not None and attempt >= policy.max_attempts:
            raise exception_class(
                f"{description}: not available after {attempt} attempts ({elapsed:.1f}s)",
                attempts=attempt,
                elapsed=elapsed,
            )

        attempt += 1
        log_level = logging.INFO if attempt == 1 else logging.DEBUG
        logger.log(log_level, "Polling %s, attempt=%d, elapsed=%.1fs", description, attempt, elapsed)

        if on_attempt is not None:
            on_attempt(attempt, elapsed)

        try:
            result = fetch()
        except Exception as e:
            logger.debug("%s: attempt %d failed, treating as not yet available: %s", description, attempt, e)
            result = None

        if result is not None:
            logger.info("%s: available after %d attempts (%.1fs)", description, attempt, clock() - start)
            return result

        delay = policy.poll_interval
        if policy.timeout is not None:
            remaining = policy.timeout - (clock() - start)
            delay = max(0.0, min(delay, remaining))

        sleep(delay)
