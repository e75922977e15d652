"""Persisted resource state and the attribute bag operations work against."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ResourceState(BaseModel):
    """The durable record of one managed resource."""

    type: str
    id: str
    attributes: dict[str, Any] = Field(default_factory=dict)


class ResourceData:
    """Attribute bag for one resource during a single operation.

    Values start from the persisted attributes, overlaid with the desired
    configuration. `get_change` compares the persisted value with the current
    one, which is how tag differences are detected.
    """

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        state: ResourceState | None = None,
        *,
        id: str = "",
    ) -> None:
        self._prior: dict[str, Any] = dict(state.attributes) if state else {}
        self._values: dict[str, Any] = {**self._prior, **(config or {})}
        self._id = state.id if state else id

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: str) -> None:
        self._id = value

    def clear_id(self) -> None:
        self._id = ""

    def get(self, key: str, default: Any = None) -> Any:
        value = self._values.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get_change(self, key: str) -> tuple[Any, Any]:
        return self._prior.get(key), self._values.get(key)

    def has_change(self, key: str) -> bool:
        old, new = self.get_change(key)
        return old != new

    def attributes(self) -> dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"ResourceData(id={self._id!r}, keys={sorted(self._values)})"


class StateFile(BaseModel):
    """All resources managed by a project, keyed by address (`<type>.<name>`)."""

    version: int = 1
    resources: dict[str, ResourceState] = Field(default_factory=dict)

    @classmethod
    def load(cls, path: str | Path) -> StateFile:
        """Load state from a JSON file; a missing file is an empty state."""
        path = Path(path)
        if not path.exists():
            logger.debug("No state at %s; starting empty", path)
            return cls()
        logger.debug("Loading state from %s", path)
        return cls.model_validate_json(path.read_text())

    def save(self, path: str | Path) -> None:
        path = Path(path)
        logger.debug("Saving %d resource(s) to %s", len(self.resources), path)
        path.write_text(self.model_dump_json(indent=2))

    def data(self, address: str, config: Mapping[str, Any] | None = None) -> ResourceData:
        """Return a ResourceData seeded with the persisted state at `address`."""
        return ResourceData(config, self.resources.get(address))

    def commit(self, address: str, type_name: str, data: ResourceData) -> None:
        """Store `data` at `address`, or drop the entry if its identity was cleared."""
        if not data.id:
            if self.resources.pop(address, None) is not None:
                logger.debug("Dropped state for %s", address)
            return
        self.resources[address] = ResourceState(type=type_name, id=data.id, attributes=data.attributes())

    def find_id(self, address: str) -> str | None:
        entry = self.resources.get(address)
        return entry.id if entry else None
