"""CloudHSM v2 HSM lifecycle: create, read, update, delete and import."""

from __future__ import annotations

import logging
from typing import Any

from .client import HsmClient
from .context import Context
from .errors import PlacementError, ResourceNotFoundError, WaitError
from .models import Cluster, Hsm, HsmConfig
from .resource import Resource
from .spec import spec
from .state import ResourceData
from .status import DESTROYED, HSM_CREATE, HSM_DELETE, Transition
from .waiter import DEFAULT_TIMEOUT, RefreshFunc, WaitSettings

logger = logging.getLogger(__name__)

_DEFAULT_SETTINGS = WaitSettings()

CLUSTER_TYPE = "cloudhsm_v2_cluster"


def _hsm_in(cluster: dict[str, Any], hsm_id: str) -> dict[str, Any] | None:
    for hsm in cluster.get("Hsms") or []:
        if hsm.get("HsmId") == hsm_id:
            return {"ClusterId": cluster.get("ClusterId"), **hsm}
    return None


def find_hsm(client: HsmClient, cluster_id: str, hsm_id: str) -> dict[str, Any] | None:
    """Look up an HSM through its owning cluster."""
    cluster = client.describe_cluster(cluster_id)
    if cluster is None:
        return None
    return _hsm_in(cluster, hsm_id)


def locate_hsm(client: HsmClient, hsm_id: str) -> dict[str, Any] | None:
    """Search every cluster for an HSM whose owner is unknown."""
    for cluster in client.iter_clusters():
        hsm = _hsm_in(cluster, hsm_id)
        if hsm is not None:
            return hsm
    return None


def hsm_refresh_func(client: HsmClient, cluster_id: str, hsm_id: str) -> RefreshFunc:
    """Return a refresh function reporting the HSM and its state.

    An HSM missing from its cluster's listing reports `destroyed`.
    """

    def refresh() -> tuple[dict[str, Any] | None, str]:
        hsm = find_hsm(client, cluster_id, hsm_id)
        if hsm is None:
            return None, DESTROYED
        state = hsm.get("State") or ""
        logger.debug("CloudHSMv2 HSM status (%s): %s", hsm_id, state)
        return hsm, state

    return refresh


def resolve_placement(
    cluster: Cluster,
    availability_zone: str | None,
    subnet_id: str | None,
) -> tuple[str, str]:
    """Resolve an HSM placement to an (availability zone, subnet) pair of the cluster."""
    mapping = cluster.subnet_mapping

    if availability_zone:
        subnet = mapping.get(availability_zone)
        if subnet is None:
            raise PlacementError(
                f"availability zone {availability_zone} has no subnet in cluster {cluster.cluster_id}"
            )
        if subnet_id and subnet_id != subnet:
            raise PlacementError(
                f"subnet {subnet_id} is not the subnet of cluster {cluster.cluster_id} "
                f"in availability zone {availability_zone} ({subnet})"
            )
        return availability_zone, subnet

    for zone, subnet in mapping.items():
        if subnet == subnet_id:
            return zone, subnet

    raise PlacementError(f"subnet {subnet_id} does not belong to cluster {cluster.cluster_id}")


def create_hsm(
    client: HsmClient,
    data: ResourceData,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    settings: WaitSettings = _DEFAULT_SETTINGS,
) -> Hsm | None:
    config = HsmConfig.from_data(data)

    raw_cluster = client.describe_cluster(config.cluster_id)
    if raw_cluster is None:
        raise ResourceNotFoundError(f"CloudHSMv2 Cluster {config.cluster_id} not found")
    zone, _ = resolve_placement(Cluster.from_api(raw_cluster), config.availability_zone, config.subnet_id)

    created = settings.mutate(lambda: client.create_hsm(config.cluster_id, zone, config.ip_address))

    data.set_id(created["HsmId"])
    data.set("hsm_id", data.id)
    logger.info("CloudHSMv2 HSM ID: %s", data.id)

    wait_hsm_created(client, config.cluster_id, data.id, timeout=timeout, settings=settings)

    return read_hsm(client, data)


def wait_hsm_created(
    client: HsmClient,
    cluster_id: str,
    hsm_id: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    settings: WaitSettings = _DEFAULT_SETTINGS,
) -> None:
    logger.info("Waiting for CloudHSMv2 HSM %s to be available", hsm_id)
    try:
        settings.wait(HSM_CREATE, hsm_refresh_func(client, cluster_id, hsm_id), timeout)
    except WaitError as exc:
        logger.error("Error waiting for CloudHSMv2 HSM %s state to be %s: %s", hsm_id, HSM_CREATE.describe(), exc)
        raise


def read_hsm(client: HsmClient, data: ResourceData) -> Hsm | None:
    """Copy the remote HSM into `data`; clears the identity if it is gone."""
    cluster_id = data.get("cluster_id")
    raw = find_hsm(client, cluster_id, data.id) if cluster_id else locate_hsm(client, data.id)
    if raw is None:
        logger.warning("CloudHSMv2 HSM (%s) not found", data.id)
        data.clear_id()
        return None

    logger.info("Reading CloudHSMv2 HSM information: %s", data.id)
    hsm = Hsm.from_api(raw)
    hsm.write(data)
    return hsm


def delete_hsm(
    client: HsmClient,
    data: ResourceData,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    settings: WaitSettings = _DEFAULT_SETTINGS,
) -> None:
    cluster_id = data.get("cluster_id")
    hsm_id = data.id
    logger.debug("CloudHSMv2 HSM delete %s %s", cluster_id, hsm_id)
    settings.mutate(lambda: client.delete_hsm(cluster_id, hsm_id))

    logger.info("Waiting for CloudHSMv2 HSM %s to be deleted", hsm_id)
    try:
        settings.wait(HSM_DELETE, hsm_refresh_func(client, cluster_id, hsm_id), timeout)
    except WaitError as exc:
        logger.error("Error waiting for CloudHSMv2 HSM %s to be deleted: %s", hsm_id, exc)
        raise


def import_hsm(data: ResourceData) -> None:
    data.set("hsm_id", data.id)


@spec("cloudhsm_v2_hsm")
class HsmResource(Resource):
    """A declared HSM, owned by a cluster given by id or by state name."""

    type_name = "cloudhsm_v2_hsm"
    state_key = "hsm_state"
    immutable = ("cluster_id", "availability_zone", "subnet_id", "ip_address")

    def __init__(
        self,
        name: str,
        *,
        cluster: str | None = None,
        cluster_id: str | None = None,
        timeouts: dict[str, Any] | None = None,
        **attrs: Any,
    ) -> None:
        super().__init__(name, timeouts)
        if not cluster and not cluster_id:
            raise ValueError(f"{self.address}: one of cluster or cluster_id is required")
        self.cluster = cluster
        self.config = HsmConfig(cluster_id=cluster_id or "", **attrs)

    def cluster_id(self, ctx: Context[Any]) -> str:
        if self.config.cluster_id:
            return self.config.cluster_id
        found = ctx.state.find_id(f"{CLUSTER_TYPE}.{self.cluster}")
        if not found:
            raise ValueError(f"{self.address}: cluster '{self.cluster}' is not in state")
        return found

    def desired(self, ctx: Context[Any]) -> dict[str, Any]:
        attrs = self.config.model_dump(exclude_none=True)
        attrs["cluster_id"] = self.cluster_id(ctx)
        return attrs

    def create_transition(self, data: ResourceData) -> Transition:
        return HSM_CREATE

    def resume(self, ctx: Context[Any], data: ResourceData) -> None:
        wait_hsm_created(
            ctx.require_client(),
            data.get("cluster_id"),
            data.id,
            timeout=self.timeouts.create,
            settings=ctx.settings,
        )

    def create(self, ctx: Context[Any], data: ResourceData) -> None:
        create_hsm(ctx.require_client(), data, timeout=self.timeouts.create, settings=ctx.settings)

    def read(self, ctx: Context[Any], data: ResourceData) -> Hsm | None:
        return read_hsm(ctx.require_client(), data)

    def update(self, ctx: Context[Any], data: ResourceData) -> None:
        read_hsm(ctx.require_client(), data)

    def delete(self, ctx: Context[Any], data: ResourceData) -> None:
        delete_hsm(ctx.require_client(), data, timeout=self.timeouts.delete, settings=ctx.settings)

    def import_state(self, data: ResourceData) -> None:
        import_hsm(data)
