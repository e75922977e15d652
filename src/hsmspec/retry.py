"""Bounded retry of mutating calls that fail with a transient internal error."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

MUTATE_RETRY_TIMEOUT = 180.0

INTERNAL_FAILURE_CODE = "CloudHsmInternalFailureException"
INTERNAL_FAILURE_MESSAGE = "request was rejected because of an AWS CloudHSM internal failure"

_INITIAL_BACKOFF = 0.5
_MAX_BACKOFF = 10.0


def is_internal_failure(exc: BaseException) -> bool:
    """Return True if the error is the CloudHSM "internal failure, try again" kind."""
    if not isinstance(exc, ClientError):
        return False
    error = exc.response.get("Error", {})
    return error.get("Code") == INTERNAL_FAILURE_CODE and INTERNAL_FAILURE_MESSAGE in error.get("Message", "")


def retry_mutate[R](
    max_elapsed: float,
    operation: Callable[[], R],
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> R:
    """Invoke `operation`, retrying while it fails with an internal failure.

    Backoff starts at half a second and doubles up to ten seconds. A retry is
    only attempted if it can start before `max_elapsed` runs out; the last
    error is raised otherwise. Any other error is raised immediately.
    """
    deadline = clock() + max_elapsed
    backoff = _INITIAL_BACKOFF
    attempt = 1

    while True:
        try:
            return operation()
        except ClientError as exc:
            if not is_internal_failure(exc):
                raise
            remaining = deadline - clock()
            if backoff > remaining:
                logger.warning("Giving up after %d attempt(s); %s", attempt, exc)
                raise
            logger.debug("Attempt %d failed with internal failure; retrying in %.1fs", attempt, backoff)
            sleep(backoff)
            backoff = min(backoff * 2, _MAX_BACKOFF)
            attempt += 1
