"""Runtime execution context for the build pipeline."""

from __future__ import annotations

from .client import HsmClient
from .state import StateFile
from .waiter import WaitSettings


class Context[P]:
    """Runtime state passed through the build chain."""

    def __init__(
        self,
        target: P,
        *,
        dry_run: bool = False,
        client: HsmClient | None = None,
        state: StateFile | None = None,
        settings: WaitSettings | None = None,
    ) -> None:
        self.target = target
        self.dry_run = dry_run
        self.client = client
        self.state = state if state is not None else StateFile()
        self.settings = settings or WaitSettings()

    def require_client(self) -> HsmClient:
        if self.client is None:
            raise ValueError("No CloudHSM client configured for this context")
        return self.client
