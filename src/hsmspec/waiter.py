"""Poll a refresh function until a resource converges on a target state."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Collection
from dataclasses import dataclass, field
from typing import Any

from .errors import UnexpectedStateError, WaitTimeoutError
from .retry import MUTATE_RETRY_TIMEOUT, retry_mutate
from .status import Transition

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120 * 60.0
DEFAULT_MIN_INTERVAL = 30.0
DEFAULT_DELAY = 30.0

type RefreshFunc = Callable[[], tuple[Any, str]]


def wait_for(
    pending: Collection[str],
    target: Collection[str],
    refresh: RefreshFunc,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    min_interval: float = DEFAULT_MIN_INTERVAL,
    delay: float = DEFAULT_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """Wait for `refresh` to report a state in `target` and return its entity.

    Waits `delay` before the first poll and `min_interval` between polls. A
    state outside both `pending` and `target` raises UnexpectedStateError right
    away; errors raised by `refresh` propagate. If `timeout` elapses while the
    state is still pending, WaitTimeoutError carries the last observed state.
    """
    deadline = clock() + timeout
    last_state: str | None = None

    sleep(delay)
    while True:
        if clock() >= deadline:
            raise WaitTimeoutError(last_state, timeout)

        entity, state = refresh()
        last_state = state

        if state in target:
            logger.debug("Reached target state '%s'", state)
            return entity
        if state not in pending:
            raise UnexpectedStateError(state, target)

        logger.debug("Still pending in state '%s'; polling again in %gs", state, min_interval)
        sleep(min_interval)


@dataclass(frozen=True)
class WaitSettings:
    """Polling cadence shared by every wait and mutating retry."""

    delay: float = DEFAULT_DELAY
    min_interval: float = DEFAULT_MIN_INTERVAL
    retry_timeout: float = MUTATE_RETRY_TIMEOUT
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def mutate[R](self, operation: Callable[[], R]) -> R:
        """Run a mutating call through `retry_mutate`."""
        return retry_mutate(self.retry_timeout, operation, sleep=self.sleep, clock=self.clock)

    def wait(self, transition: Transition, refresh: RefreshFunc, timeout: float) -> Any:
        """Run `wait_for` over the states of a transition."""
        logger.debug("Waiting on %s for up to %gs", transition.name, timeout)
        return wait_for(
            transition.pending,
            transition.target,
            refresh,
            timeout=timeout,
            min_interval=self.min_interval,
            delay=self.delay,
            sleep=self.sleep,
            clock=self.clock,
        )
