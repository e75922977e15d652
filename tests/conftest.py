"""Shared fixtures: an in-memory CloudHSM v2 API and a fake clock."""

from __future__ import annotations

import copy
from typing import Any

import pytest
from botocore.exceptions import ClientError

from hsmspec.client import HsmClient
from hsmspec.waiter import WaitSettings

INTERNAL_FAILURE = (
    "CloudHsmInternalFailureException",
    "The request was rejected because of an AWS CloudHSM internal failure. The request can be retried.",
)

SUBNETS = {
    "subnet-aaa": "us-east-1a",
    "subnet-bbb": "us-east-1b",
    "subnet-ccc": "us-east-1c",
}


def client_error(code: str, message: str = "", operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def internal_failure(operation: str = "Operation") -> ClientError:
    return client_error(*INTERNAL_FAILURE, operation=operation)


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class _Entity:
    """A remote object whose state advances one step per describe call.

    A `None` step means the object is missing from the listing.
    """

    def __init__(self, body: dict[str, Any], steps: list[str | None]) -> None:
        self.body = body
        self.steps = list(steps)

    def advance(self) -> str | None:
        if len(self.steps) > 1:
            return self.steps.pop(0)
        return self.steps[0]

    def reset(self, steps: list[str | None]) -> None:
        self.steps = list(steps)


class FakeCloudHsmApi:
    """Stands in for a boto3 `cloudhsmv2` client."""

    def __init__(self) -> None:
        self.clusters: dict[str, _Entity] = {}
        self.hsms: dict[str, dict[str, _Entity]] = {}
        self.tags: dict[str, dict[str, str]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.create_steps: list[str | None] | None = None
        self.delete_steps: list[str | None] | None = None
        self.hsm_create_steps: list[str | None] = [None, "CREATE_IN_PROGRESS", "ACTIVE"]
        self.hsm_delete_steps: list[str | None] = ["DELETE_IN_PROGRESS", None]
        self._counter = 0

    # -- helpers --

    def _record(self, name: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((name, kwargs))
        queued = self.failures.get(name)
        if queued:
            raise queued.pop(0)

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter:04d}"

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    def fail(self, name: str, *errors: Exception) -> None:
        self.failures.setdefault(name, []).extend(errors)

    def add_cluster(
        self,
        steps: list[str | None],
        subnets: list[str] | None = None,
        cluster_id: str | None = None,
        backup_id: str | None = None,
    ) -> str:
        cluster_id = cluster_id or self._next_id("cluster")
        subnet_ids = subnets or ["subnet-aaa", "subnet-bbb"]
        body: dict[str, Any] = {
            "ClusterId": cluster_id,
            "HsmType": "hsm1.medium",
            "SubnetMapping": {SUBNETS[s]: s for s in subnet_ids},
            "VpcId": "vpc-1234",
            "SecurityGroup": "sg-1234",
            "Certificates": {
                "ClusterCsr": "csr-pem",
                "AwsHardwareCertificate": "aws-hw-pem",
                "HsmCertificate": "hsm-pem",
                "ManufacturerHardwareCertificate": "mfr-pem",
                "ClusterCertificate": "cluster-pem",
            },
        }
        if backup_id:
            body["SourceBackupId"] = backup_id
        self.clusters[cluster_id] = _Entity(body, steps)
        self.hsms[cluster_id] = {}
        return cluster_id

    def add_hsm(self, cluster_id: str, steps: list[str | None], availability_zone: str = "us-east-1a") -> str:
        hsm_id = self._next_id("hsm")
        mapping = self.clusters[cluster_id].body["SubnetMapping"]
        body = {
            "HsmId": hsm_id,
            "ClusterId": cluster_id,
            "AvailabilityZone": availability_zone,
            "SubnetId": mapping[availability_zone],
            "EniId": f"eni-{hsm_id}",
            "EniIp": "10.0.0.10",
        }
        self.hsms[cluster_id][hsm_id] = _Entity(body, steps)
        return hsm_id

    def _snapshot(self, cluster_id: str) -> dict[str, Any] | None:
        entity = self.clusters[cluster_id]
        state = entity.advance()
        if state is None:
            return None
        body = copy.deepcopy(entity.body)
        body["State"] = state
        body["Hsms"] = []
        for hsm in self.hsms[cluster_id].values():
            hsm_state = hsm.advance()
            if hsm_state is not None:
                body["Hsms"].append({**copy.deepcopy(hsm.body), "State": hsm_state})
        return body

    # -- boto3 surface --

    def create_cluster(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_cluster", kwargs)
        backup_id = kwargs.get("SourceBackupId")
        steps = self.create_steps or [
            "CREATE_IN_PROGRESS",
            "ACTIVE" if backup_id else "UNINITIALIZED",
        ]
        cluster_id = self.add_cluster(steps, kwargs["SubnetIds"], backup_id=backup_id)
        return {"Cluster": {"ClusterId": cluster_id, "State": "CREATE_IN_PROGRESS"}}

    def delete_cluster(self, **kwargs: Any) -> dict[str, Any]:
        self._record("delete_cluster", kwargs)
        cluster_id = kwargs["ClusterId"]
        self.clusters[cluster_id].reset(self.delete_steps or ["DELETE_IN_PROGRESS", "DELETED"])
        return {"Cluster": {"ClusterId": cluster_id, "State": "DELETE_IN_PROGRESS"}}

    def create_hsm(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_hsm", kwargs)
        hsm_id = self.add_hsm(kwargs["ClusterId"], self.hsm_create_steps, kwargs["AvailabilityZone"])
        return {"Hsm": {"HsmId": hsm_id, "State": "CREATE_IN_PROGRESS"}}

    def delete_hsm(self, **kwargs: Any) -> dict[str, Any]:
        self._record("delete_hsm", kwargs)
        self.hsms[kwargs["ClusterId"]][kwargs["HsmId"]].reset(self.hsm_delete_steps)
        return {"HsmId": kwargs["HsmId"]}

    def describe_clusters(self, **kwargs: Any) -> dict[str, Any]:
        self._record("describe_clusters", kwargs)
        wanted = kwargs.get("Filters", {}).get("clusterIds")
        ids = [c for c in self.clusters if wanted is None or c in wanted]
        start = int(kwargs.get("NextToken") or 0)
        end = start + kwargs.get("MaxResults", 25)
        page = [snap for c in ids[start:end] if (snap := self._snapshot(c)) is not None]
        out: dict[str, Any] = {"Clusters": page}
        if end < len(ids):
            out["NextToken"] = str(end)
        return out

    def tag_resource(self, **kwargs: Any) -> dict[str, Any]:
        self._record("tag_resource", kwargs)
        tags = self.tags.setdefault(kwargs["ResourceId"], {})
        tags.update({t["Key"]: t["Value"] for t in kwargs["TagList"]})
        return {}

    def untag_resource(self, **kwargs: Any) -> dict[str, Any]:
        self._record("untag_resource", kwargs)
        tags = self.tags.setdefault(kwargs["ResourceId"], {})
        for key in kwargs["TagKeyList"]:
            tags.pop(key, None)
        return {}


@pytest.fixture
def api() -> FakeCloudHsmApi:
    return FakeCloudHsmApi()


@pytest.fixture
def client(api: FakeCloudHsmApi) -> HsmClient:
    return HsmClient(api)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(clock: FakeClock) -> WaitSettings:
    return WaitSettings(sleep=clock.sleep, clock=clock)
