"""Resource: a Specification backed by remote CRUD calls and persisted state."""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any, ClassVar

from .context import Context
from .models import Timeouts
from .spec import Observation, Specification
from .state import ResourceData
from .status import Transition

logger = logging.getLogger(__name__)


class Resource(Specification[Any]):
    """Base class for remote resources tracked in the context's state file.

    Subclasses provide the create/read/update/delete hooks; this class maps
    them onto the exists/equals/apply/remove contract. The identity recorded
    by `create` is persisted even when a later step fails, so the next run
    picks the resource up again instead of orphaning it; if its last read
    status is still pending on the create transition, `apply` resumes the
    wait before updating.
    """

    type_name: ClassVar[str]
    state_key: ClassVar[str] = ""
    immutable: ClassVar[tuple[str, ...]] = ()
    mutable: ClassVar[tuple[str, ...]] = ()

    def __init__(self, name: str, timeouts: dict[str, Any] | Timeouts | None = None) -> None:
        if not name:
            raise ValueError(f"{type(self).__name__} requires a name")
        self.name = name
        self.timeouts = timeouts if isinstance(timeouts, Timeouts) else Timeouts.model_validate(timeouts or {})

    @property
    def address(self) -> str:
        return f"{self.type_name}.{self.name}"

    @property
    def label(self) -> str:
        return self.address

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"

    # -- hooks --

    @abstractmethod
    def desired(self, ctx: Context[Any]) -> dict[str, Any]:
        """Desired attributes, overlaid on the persisted ones."""

    @abstractmethod
    def create(self, ctx: Context[Any], data: ResourceData) -> None: ...

    @abstractmethod
    def read(self, ctx: Context[Any], data: ResourceData) -> Any: ...

    @abstractmethod
    def update(self, ctx: Context[Any], data: ResourceData) -> None: ...

    @abstractmethod
    def delete(self, ctx: Context[Any], data: ResourceData) -> None: ...

    def drifted(self, ctx: Context[Any], data: ResourceData) -> bool:
        """True if a mutable attribute differs from the desired value."""
        return False

    def create_transition(self, data: ResourceData) -> Transition | None:
        """The transition a new resource converges through, if it has one."""
        return None

    def resume(self, ctx: Context[Any], data: ResourceData) -> None:
        """Wait out a create that an earlier run started but did not finish."""

    def creating(self, data: ResourceData) -> bool:
        """True while the last read status is still pending on the create transition."""
        transition = self.create_transition(data)
        return transition is not None and data.get(self.state_key) in transition.pending

    # -- Specification --

    def _commit(self, ctx: Context[Any], data: ResourceData) -> None:
        ctx.state.commit(self.address, self.type_name, data)

    def refresh(self, ctx: Context[Any]) -> ResourceData | None:
        """Re-read the persisted resource; None if it is untracked or gone."""
        data = ctx.state.data(self.address)
        if not data.id:
            return None
        self.read(ctx, data)
        self._commit(ctx, data)
        return data if data.id else None

    def observe(self, ctx: Context[Any]) -> Observation:
        """Read the resource once and compare it with the declaration.

        Raises ValueError if the declaration changes an immutable field.
        """
        data = self.refresh(ctx)
        if data is None:
            return Observation(exists=False, equal=False)
        self.check_immutable(ctx.state.data(self.address, self.desired(ctx)))
        settled = not self.creating(data)
        return Observation(exists=True, equal=settled and not self.drifted(ctx, data), settled=settled)

    def exists(self, ctx: Context[Any]) -> bool:
        return self.refresh(ctx) is not None

    def equals(self, ctx: Context[Any]) -> bool:
        return self.observe(ctx).equal

    def check_immutable(self, data: ResourceData) -> None:
        """Reject a declared value that differs from the recorded one.

        An undeclared value is never a change; a declared value replacing an
        unset one is.
        """
        for key in self.immutable:
            old, new = data.get_change(key)
            if new is not None and old != new:
                raise ValueError(f"{self.address}: '{key}' cannot be changed once created ({old!r} -> {new!r})")

    def apply(self, ctx: Context[Any]) -> None:
        data = ctx.state.data(self.address, self.desired(ctx))
        if data.id:
            self.check_immutable(data)

        try:
            if not data.id:
                logger.debug("Creating %s", self.address)
                self.create(ctx, data)
            else:
                if self.creating(data):
                    logger.info("Resuming create of %s (%s)", self.address, data.id)
                    self.resume(ctx, data)
                logger.debug("Updating %s (%s)", self.address, data.id)
                self.update(ctx, data)
        except Exception:
            # mutable attributes were not applied; keep them out of state
            for key in self.mutable:
                data.set(key, data.get_change(key)[0])
            raise
        finally:
            self._commit(ctx, data)

    def remove(self, ctx: Context[Any]) -> None:
        data = ctx.state.data(self.address)
        if not data.id:
            return
        self.delete(ctx, data)
        data.clear_id()
        self._commit(ctx, data)

    def import_(self, ctx: Context[Any], resource_id: str) -> None:
        """Start tracking an existing remote resource by its bare identifier."""
        data = ResourceData(id=resource_id)
        self.import_state(data)
        self.read(ctx, data)
        if not data.id:
            raise ValueError(f"{self.address}: cannot import '{resource_id}'; resource not found")
        self._commit(ctx, data)

    @abstractmethod
    def import_state(self, data: ResourceData) -> None: ...
