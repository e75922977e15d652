"""Specification ABC and the resource type registry used by HCL decoding."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .context import Context

_spec_registry: dict[str, type[Specification]] = {}


def spec(name: str):
    """Register a Specification class under an HCL resource block type.

    Raises ValueError if a different class already claims `name`.
    """

    def decorator(cls):
        existing = _spec_registry.get(name)
        if existing is not None and existing is not cls:
            raise ValueError(f"Resource type '{name}' is already registered by {existing.__name__}")
        _spec_registry[name] = cls
        return cls

    return decorator


@dataclass(frozen=True)
class Observation:
    """One look at the current state of a specification.

    `settled` is False while an earlier create has not finished converging.
    """

    exists: bool
    equal: bool
    settled: bool = True


class Specification[P](ABC):
    """Base class for everything a blueprint can declare."""

    @property
    def label(self) -> str:
        """Name used in log messages and change reports."""
        return type(self).__name__

    @abstractmethod
    def equals(self, ctx: Context[P]) -> bool:
        """Current state matches desired state."""

    def exists(self, ctx: Context[P]) -> bool:
        """Resource exists (defaults to equals)."""
        return self.equals(ctx)

    def observe(self, ctx: Context[P]) -> Observation:
        """Existence and equality together; override to answer from a single read."""
        equal = self.equals(ctx)
        return Observation(exists=equal or self.exists(ctx), equal=equal)

    @abstractmethod
    def apply(self, ctx: Context[P]) -> None:
        """Create or update the resource."""

    @abstractmethod
    def remove(self, ctx: Context[P]) -> None:
        """Delete the resource."""
