"""Project model: a deployment target with its own region and state file."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from .blueprints import Blueprint
from .client import HsmClient, connect
from .context import Context
from .specop import Change, summarize
from .state import StateFile
from .waiter import WaitSettings

logger = logging.getLogger(__name__)


class Project(BaseModel):
    """A named set of blueprints applied against one AWS account and region."""

    model_config = {"arbitrary_types_allowed": True}

    name: str
    description: str = ""
    region: str | None = None
    profile: str | None = None
    endpoint_url: str | None = None
    state_file: Path | None = None
    blueprints: list[Blueprint] = Field(default_factory=list)

    def connect(self) -> HsmClient:
        return connect(self.region, self.profile, self.endpoint_url)

    def load_state(self) -> StateFile:
        return StateFile.load(self.state_file) if self.state_file else StateFile()

    def _run(self, ctx: Context[Project]) -> list[Change]:
        changes: list[Change] = []
        try:
            for blueprint in self.blueprints:
                changes.extend(blueprint.build(ctx))
        finally:
            if self.state_file and not ctx.dry_run:
                ctx.state.save(self.state_file)
        return changes

    def _context(
        self,
        dry_run: bool,
        client: HsmClient | None,
        state: StateFile | None,
        settings: WaitSettings | None,
    ) -> Context[Project]:
        if state is None:
            state = self.load_state()
        if client is None:
            client = self.connect()
        return Context(target=self, dry_run=dry_run, client=client, state=state, settings=settings)

    def build(
        self,
        *,
        dry_run: bool = False,
        client: HsmClient | None = None,
        state: StateFile | None = None,
        settings: WaitSettings | None = None,
    ) -> StateFile:
        """Build all blueprints and return the resulting state.

        The state is saved to `state_file` (if set) even when a blueprint
        fails, so identities of partially created resources are kept.
        """
        ctx = self._context(dry_run, client, state, settings)
        logger.info("Building project '%s'", self.name)
        changes = self._run(ctx)
        if dry_run:
            logger.info("Plan for '%s': %s", self.name, summarize(changes))
        else:
            logger.info("Applied '%s': %s", self.name, summarize(changes))
        return ctx.state

    def plan(
        self,
        *,
        client: HsmClient | None = None,
        state: StateFile | None = None,
        settings: WaitSettings | None = None,
    ) -> list[Change]:
        """Dry-run the project and return only the changes a build would make."""
        ctx = self._context(True, client, state, settings)
        logger.info("Planning project '%s'", self.name)
        return [change for change in self._run(ctx) if change.pending]
