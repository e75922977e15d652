"""Error types raised while converging CloudHSM resources."""

from __future__ import annotations

from collections.abc import Iterable


class HsmSpecError(Exception):
    """Base class for all hsmspec errors."""


class WaitError(HsmSpecError):
    """A state-convergence wait did not reach its target."""


class WaitTimeoutError(WaitError):
    """The wait timed out while the resource was still pending."""

    def __init__(self, last_state: str | None, timeout: float) -> None:
        self.last_state = last_state
        self.timeout = timeout
        super().__init__(
            f"timeout while waiting for state to become target "
            f"(last state: '{last_state}', timeout: {timeout:g}s)"
        )


class UnexpectedStateError(WaitError):
    """The resource reported a status that is neither pending nor target."""

    def __init__(self, state: str, expected: Iterable[str]) -> None:
        self.state = state
        self.expected = sorted(expected)
        super().__init__(f"unexpected state '{state}', wanted target '{', '.join(self.expected)}'")


class ResourceNotFoundError(HsmSpecError):
    """A resource required by an operation does not exist remotely."""


class PlacementError(HsmSpecError):
    """An HSM placement does not resolve within its owning cluster."""
