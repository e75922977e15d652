"""Lifecycle states and the transitions the waiter converges on."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

# Reported by refresh functions when the entity is missing from the listing.
DESTROYED = "destroyed"


class ClusterState(StrEnum):
    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZE_IN_PROGRESS = "INITIALIZE_IN_PROGRESS"
    INITIALIZED = "INITIALIZED"
    ACTIVE = "ACTIVE"
    UPDATE_IN_PROGRESS = "UPDATE_IN_PROGRESS"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETED = "DELETED"
    DEGRADED = "DEGRADED"
    DESTROYED = DESTROYED


class HsmState(StrEnum):
    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    ACTIVE = "ACTIVE"
    DEGRADED = "DEGRADED"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETED = "DELETED"
    DESTROYED = DESTROYED


@dataclass(frozen=True)
class Transition:
    """The pending and target states of one entity/operation pair."""

    name: str
    pending: frozenset[str]
    target: frozenset[str]

    def describe(self) -> str:
        return " or ".join(sorted(self.target))


CLUSTER_CREATE = Transition(
    name="cluster-create",
    pending=frozenset({ClusterState.CREATE_IN_PROGRESS, ClusterState.INITIALIZE_IN_PROGRESS}),
    target=frozenset({ClusterState.UNINITIALIZED}),
)

CLUSTER_RESTORE = Transition(
    name="cluster-restore",
    pending=CLUSTER_CREATE.pending,
    target=frozenset({ClusterState.ACTIVE}),
)

# Clusters normally linger as DELETED, but may drop out of the listing first.
CLUSTER_DELETE = Transition(
    name="cluster-delete",
    pending=frozenset({ClusterState.DELETE_IN_PROGRESS}),
    target=frozenset({ClusterState.DELETED, ClusterState.DESTROYED}),
)

# A new HSM may be missing from the first few describe calls.
HSM_CREATE = Transition(
    name="hsm-create",
    pending=frozenset({HsmState.CREATE_IN_PROGRESS, HsmState.DESTROYED}),
    target=frozenset({HsmState.ACTIVE}),
)

HSM_DELETE = Transition(
    name="hsm-delete",
    pending=frozenset({HsmState.DELETE_IN_PROGRESS}),
    target=frozenset({HsmState.DESTROYED}),
)


def cluster_create_transition(backup_id: str | None) -> Transition:
    """Clusters restored from a backup come up ACTIVE instead of UNINITIALIZED."""
    return CLUSTER_RESTORE if backup_id else CLUSTER_CREATE
