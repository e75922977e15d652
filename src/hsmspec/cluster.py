"""CloudHSM v2 cluster lifecycle: create, read, update, delete and import."""

from __future__ import annotations

import logging
from typing import Any

from .client import HsmClient
from .context import Context
from .errors import WaitError
from .models import Cluster, ClusterConfig
from .resource import Resource
from .spec import spec
from .state import ResourceData
from .status import CLUSTER_DELETE, DESTROYED, Transition, cluster_create_transition
from .tags import sync_tags
from .waiter import DEFAULT_TIMEOUT, RefreshFunc, WaitSettings

logger = logging.getLogger(__name__)

_DEFAULT_SETTINGS = WaitSettings()


def cluster_refresh_func(client: HsmClient, cluster_id: str) -> RefreshFunc:
    """Return a refresh function reporting the cluster and its state.

    A cluster missing from the listing reports the `destroyed` state rather
    than an error.
    """

    def refresh() -> tuple[dict[str, Any] | None, str]:
        cluster = client.describe_cluster(cluster_id)
        if cluster is None:
            return None, DESTROYED
        state = cluster.get("State") or ""
        logger.debug("CloudHSMv2 Cluster status (%s): %s", cluster_id, state)
        return cluster, state

    return refresh


def create_cluster(
    client: HsmClient,
    data: ResourceData,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    settings: WaitSettings = _DEFAULT_SETTINGS,
) -> Cluster | None:
    config = ClusterConfig.from_data(data)

    created = settings.mutate(
        lambda: client.create_cluster(config.hsm_type, config.subnet_ids, config.backup_identifier)
    )

    data.set_id(created["ClusterId"])
    data.set("cluster_id", data.id)
    logger.info("CloudHSMv2 Cluster ID: %s", data.id)

    wait_cluster_created(client, data.id, config.backup_identifier, timeout=timeout, settings=settings)

    sync_tags(client, data)

    return read_cluster(client, data)


def wait_cluster_created(
    client: HsmClient,
    cluster_id: str,
    backup_identifier: str | None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    settings: WaitSettings = _DEFAULT_SETTINGS,
) -> None:
    transition = cluster_create_transition(backup_identifier)
    logger.info("Waiting for CloudHSMv2 Cluster %s to be %s", cluster_id, transition.describe())
    try:
        settings.wait(transition, cluster_refresh_func(client, cluster_id), timeout)
    except WaitError as exc:
        logger.error("Error waiting for CloudHSMv2 Cluster %s state to be %s: %s", cluster_id, transition.describe(), exc)
        raise


def read_cluster(client: HsmClient, data: ResourceData) -> Cluster | None:
    """Copy the remote cluster into `data`; clears the identity if it is gone."""
    raw = client.describe_cluster(data.id)
    if raw is None:
        logger.warning("CloudHSMv2 Cluster (%s) not found", data.id)
        data.clear_id()
        return None

    logger.info("Reading CloudHSMv2 Cluster information: %s", data.id)
    cluster = Cluster.from_api(raw)
    cluster.write(data)
    return cluster


def update_cluster(client: HsmClient, data: ResourceData) -> Cluster | None:
    """Only tags can change on an existing cluster."""
    sync_tags(client, data)
    return read_cluster(client, data)


def delete_cluster(
    client: HsmClient,
    data: ResourceData,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    settings: WaitSettings = _DEFAULT_SETTINGS,
) -> None:
    cluster_id = data.id
    logger.debug("CloudHSMv2 delete cluster: %s", cluster_id)
    settings.mutate(lambda: client.delete_cluster(cluster_id))

    logger.info("Waiting for CloudHSMv2 Cluster %s to be deleted", cluster_id)
    try:
        settings.wait(CLUSTER_DELETE, cluster_refresh_func(client, cluster_id), timeout)
    except WaitError as exc:
        logger.error("Error waiting for CloudHSMv2 Cluster %s to be deleted: %s", cluster_id, exc)
        raise


def import_cluster(data: ResourceData) -> None:
    data.set("cluster_id", data.id)


@spec("cloudhsm_v2_cluster")
class ClusterResource(Resource):
    """A declared CloudHSM v2 cluster."""

    type_name = "cloudhsm_v2_cluster"
    state_key = "cluster_state"
    immutable = ("hsm_type", "subnet_ids", "backup_identifier")
    mutable = ("tags",)

    def __init__(
        self,
        name: str,
        *,
        timeouts: dict[str, Any] | None = None,
        **attrs: Any,
    ) -> None:
        super().__init__(name, timeouts)
        self.config = ClusterConfig(**attrs)

    def desired(self, ctx: Context[Any]) -> dict[str, Any]:
        return self.config.model_dump(exclude_none=True)

    def drifted(self, ctx: Context[Any], data: ResourceData) -> bool:
        return (data.get("tags") or {}) != self.config.tags

    def create_transition(self, data: ResourceData) -> Transition:
        return cluster_create_transition(data.get("backup_identifier"))

    def resume(self, ctx: Context[Any], data: ResourceData) -> None:
        wait_cluster_created(
            ctx.require_client(),
            data.id,
            data.get("backup_identifier"),
            timeout=self.timeouts.create,
            settings=ctx.settings,
        )

    def create(self, ctx: Context[Any], data: ResourceData) -> None:
        create_cluster(ctx.require_client(), data, timeout=self.timeouts.create, settings=ctx.settings)

    def read(self, ctx: Context[Any], data: ResourceData) -> Cluster | None:
        return read_cluster(ctx.require_client(), data)

    def update(self, ctx: Context[Any], data: ResourceData) -> None:
        update_cluster(ctx.require_client(), data)

    def delete(self, ctx: Context[Any], data: ResourceData) -> None:
        delete_cluster(ctx.require_client(), data, timeout=self.timeouts.delete, settings=ctx.settings)

    def import_state(self, data: ResourceData) -> None:
        import_cluster(data)
