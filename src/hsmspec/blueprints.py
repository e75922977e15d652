"""Blueprint model: an ordered group of resource operations."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, Field

from .context import Context
from .specop import Change, SpecOp

logger = logging.getLogger(__name__)


class Blueprint(BaseModel):
    """A named list of resource operations, run in declaration order.

    Included blueprints contribute their operations ahead of the including
    blueprint's own, so a cluster declared in a shared blueprint is in state
    before any HSM that references it by name.
    """

    model_config = {"arbitrary_types_allowed": True}

    name: str
    ops: list[SpecOp[Any]] = Field(default_factory=list)

    def __iter__(self) -> Iterator[SpecOp[Any]]:
        return iter(self.ops)

    def build(self, ctx: Context) -> list[Change]:
        """Run every operation; stops at the first failure."""
        logger.debug("Building blueprint '%s' (%d op(s))", self.name, len(self.ops))
        return [op(ctx) for op in self.ops]
