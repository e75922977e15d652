"""Thin wrapper over the boto3 CloudHSM v2 client."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

import boto3

logger = logging.getLogger(__name__)

SERVICE_NAME = "cloudhsmv2"

# describe calls filtered by a single cluster id never need more than one item
DESCRIBE_PAGE_SIZE = 1
SCAN_PAGE_SIZE = 25


def connect(
    region: str | None = None,
    profile: str | None = None,
    endpoint_url: str | None = None,
) -> HsmClient:
    """Build an HsmClient from a boto3 session, using the default credential chain."""
    kwargs: dict[str, Any] = {}
    if region:
        kwargs["region_name"] = region
    if profile:
        kwargs["profile_name"] = profile
    session = boto3.Session(**kwargs)

    client_kwargs: dict[str, Any] = {}
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url
    logger.debug("Connecting to %s (region=%s, profile=%s)", SERVICE_NAME, region, profile)
    return HsmClient(session.client(SERVICE_NAME, **client_kwargs))


class HsmClient:
    """The CloudHSM v2 calls needed to manage clusters and HSMs.

    Responses are the plain dicts returned by boto3. Errors are raised as
    botocore ClientError and are never translated here.
    """

    def __init__(self, api: Any) -> None:
        self.api = api

    def create_cluster(
        self,
        hsm_type: str,
        subnet_ids: list[str],
        backup_id: str | None = None,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {"HsmType": hsm_type, "SubnetIds": subnet_ids}
        if backup_id:
            request["SourceBackupId"] = backup_id
        logger.debug("CreateCluster %s", request)
        return self.api.create_cluster(**request)["Cluster"]

    def delete_cluster(self, cluster_id: str) -> dict[str, Any]:
        logger.debug("DeleteCluster %s", cluster_id)
        return self.api.delete_cluster(ClusterId=cluster_id)["Cluster"]

    def create_hsm(
        self,
        cluster_id: str,
        availability_zone: str,
        ip_address: str | None = None,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {"ClusterId": cluster_id, "AvailabilityZone": availability_zone}
        if ip_address:
            request["IpAddress"] = ip_address
        logger.debug("CreateHsm %s", request)
        return self.api.create_hsm(**request)["Hsm"]

    def delete_hsm(self, cluster_id: str, hsm_id: str) -> str:
        logger.debug("DeleteHsm %s %s", cluster_id, hsm_id)
        return self.api.delete_hsm(ClusterId=cluster_id, HsmId=hsm_id)["HsmId"]

    def describe_clusters(
        self,
        cluster_ids: list[str] | None = None,
        max_results: int = SCAN_PAGE_SIZE,
        next_token: str | None = None,
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Return one page of clusters and the token for the next page."""
        request: dict[str, Any] = {"MaxResults": max_results}
        if cluster_ids:
            request["Filters"] = {"clusterIds": cluster_ids}
        if next_token:
            request["NextToken"] = next_token
        out = self.api.describe_clusters(**request)
        return out.get("Clusters", []), out.get("NextToken")

    def describe_cluster(self, cluster_id: str) -> dict[str, Any] | None:
        """Return the cluster with the given id, or None if it is not listed."""
        clusters, _ = self.describe_clusters([cluster_id], max_results=DESCRIBE_PAGE_SIZE)
        for cluster in clusters:
            if cluster.get("ClusterId") == cluster_id:
                return cluster
        return None

    def iter_clusters(self) -> Iterator[dict[str, Any]]:
        """Yield every cluster visible to the account, one page at a time."""
        token: str | None = None
        while True:
            clusters, token = self.describe_clusters(max_results=SCAN_PAGE_SIZE, next_token=token)
            yield from clusters
            if not token:
                return

    def tag_resource(self, resource_id: str, tags: Mapping[str, str]) -> None:
        tag_list = [{"Key": k, "Value": v} for k, v in tags.items()]
        self.api.tag_resource(ResourceId=resource_id, TagList=tag_list)

    def untag_resource(self, resource_id: str, keys: list[str]) -> None:
        self.api.untag_resource(ResourceId=resource_id, TagKeyList=keys)
