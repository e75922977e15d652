"""SpecOp strategies and the changes they report."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from .context import Context
from .spec import Specification

logger = logging.getLogger(__name__)


class Action(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NONE = "none"


@dataclass(frozen=True)
class Change:
    """What one operation did (or, in a dry run, would do) to one resource."""

    action: Action
    label: str
    applied: bool = False

    @property
    def pending(self) -> bool:
        return self.action is not Action.NONE and not self.applied


def summarize(changes: Iterable[Change]) -> str:
    """Render changes as '<n> to create, <n> to update, <n> to delete'."""
    counts = Counter(change.action for change in changes)
    return ", ".join(f"{counts[action]} to {action}" for action in (Action.CREATE, Action.UPDATE, Action.DELETE))


class SpecOp[P](ABC):
    """Wraps a Specification with conditional execution logic."""

    def __init__(self, spec: Specification[P]) -> None:
        self.spec = spec

    def _run(self, ctx: Context[P], action: Action) -> Change:
        label = self.spec.label
        if ctx.dry_run:
            logger.info("[DRY RUN] Would %s %s", action, label)
            return Change(action, label)
        logger.info("%s %s", action.capitalize(), label)
        if action is Action.DELETE:
            self.spec.remove(ctx)
        else:
            self.spec.apply(ctx)
        return Change(action, label, applied=True)

    @abstractmethod
    def __call__(self, ctx: Context[P]) -> Change: ...


class Present[P](SpecOp[P]):
    """Create only if the resource doesn't exist; finish a create left unsettled."""

    def __call__(self, ctx: Context[P]) -> Change:
        seen = self.spec.observe(ctx)
        if seen.exists and seen.settled:
            logger.debug("Skipping %s; already exists", self.spec.label)
            return Change(Action.NONE, self.spec.label)
        return self._run(ctx, Action.CREATE)


class Ensure[P](SpecOp[P]):
    """Create or update until the current state matches."""

    def __call__(self, ctx: Context[P]) -> Change:
        seen = self.spec.observe(ctx)
        if seen.equal:
            logger.debug("Skipping %s; up to date", self.spec.label)
            return Change(Action.NONE, self.spec.label)
        action = Action.UPDATE if seen.exists and seen.settled else Action.CREATE
        return self._run(ctx, action)


class Absent[P](SpecOp[P]):
    """Remove if the resource exists."""

    def __call__(self, ctx: Context[P]) -> Change:
        if not self.spec.exists(ctx):
            logger.debug("Skipping removal of %s; not present", self.spec.label)
            return Change(Action.NONE, self.spec.label)
        return self._run(ctx, Action.DELETE)
