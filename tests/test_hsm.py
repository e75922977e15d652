"""Tests for hsmspec.hsm."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import internal_failure
from hsmspec.cluster import ClusterResource
from hsmspec.context import Context
from hsmspec.errors import PlacementError, ResourceNotFoundError, UnexpectedStateError, WaitTimeoutError
from hsmspec.hsm import (
    HsmResource,
    create_hsm,
    delete_hsm,
    hsm_refresh_func,
    import_hsm,
    read_hsm,
    resolve_placement,
)
from hsmspec.models import Cluster
from hsmspec.specop import Action, Ensure, Present
from hsmspec.state import ResourceData, StateFile

CLUSTER = Cluster(
    cluster_id="cluster-1",
    subnet_mapping={"us-east-1a": "subnet-aaa", "us-east-1b": "subnet-bbb"},
)


class TestResolvePlacement:
    def test_subnet_resolves_zone(self):
        assert resolve_placement(CLUSTER, None, "subnet-bbb") == ("us-east-1b", "subnet-bbb")

    def test_zone_resolves_subnet(self):
        assert resolve_placement(CLUSTER, "us-east-1a", None) == ("us-east-1a", "subnet-aaa")

    def test_matching_pair(self):
        assert resolve_placement(CLUSTER, "us-east-1a", "subnet-aaa") == ("us-east-1a", "subnet-aaa")

    def test_mismatched_pair(self):
        with pytest.raises(PlacementError, match="us-east-1a"):
            resolve_placement(CLUSTER, "us-east-1a", "subnet-bbb")

    def test_foreign_subnet(self):
        with pytest.raises(PlacementError, match="does not belong"):
            resolve_placement(CLUSTER, None, "subnet-zzz")

    def test_foreign_zone(self):
        with pytest.raises(PlacementError, match="no subnet"):
            resolve_placement(CLUSTER, "us-west-2a", None)


class TestRefreshFunc:
    def test_reports_state(self, api, client):
        cluster_id = api.add_cluster(["ACTIVE"])
        hsm_id = api.add_hsm(cluster_id, ["ACTIVE"])
        hsm, state = hsm_refresh_func(client, cluster_id, hsm_id)()
        assert state == "ACTIVE"
        assert hsm["HsmId"] == hsm_id

    def test_missing_hsm_is_destroyed(self, api, client):
        cluster_id = api.add_cluster(["ACTIVE"])
        assert hsm_refresh_func(client, cluster_id, "hsm-none")() == (None, "destroyed")

    def test_missing_cluster_is_destroyed(self, client):
        assert hsm_refresh_func(client, "cluster-none", "hsm-none")() == (None, "destroyed")


class TestCreateHsm:
    def test_subnet_only_resolves_zone(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"], subnets=["subnet-aaa", "subnet-bbb"])
        data = ResourceData({"cluster_id": cluster_id, "subnet_id": "subnet-bbb"})
        create_hsm(client, data, settings=settings)
        assert api.calls_to("create_hsm")[0]["AvailabilityZone"] == "us-east-1b"

    def test_waits_through_missing_listing(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        data = ResourceData({"cluster_id": cluster_id, "availability_zone": "us-east-1a"})
        hsm = create_hsm(client, data, settings=settings)
        assert hsm.hsm_state == "ACTIVE"
        assert data.id == hsm.hsm_id
        assert data.get("hsm_eni_id") == f"eni-{hsm.hsm_id}"
        assert data.get("subnet_id") == "subnet-aaa"
        assert data.get("ip_address") == "10.0.0.10"
        assert data.get("cluster_id") == cluster_id

    def test_passes_ip_address(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        data = ResourceData({"cluster_id": cluster_id, "subnet_id": "subnet-aaa", "ip_address": "10.0.0.42"})
        create_hsm(client, data, settings=settings)
        assert api.calls_to("create_hsm")[0]["IpAddress"] == "10.0.0.42"

    def test_bad_placement_before_create(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        data = ResourceData({"cluster_id": cluster_id, "subnet_id": "subnet-ccc"})
        with pytest.raises(PlacementError):
            create_hsm(client, data, settings=settings)
        assert api.calls_to("create_hsm") == []

    def test_missing_cluster(self, api, client, settings):
        data = ResourceData({"cluster_id": "cluster-none", "subnet_id": "subnet-aaa"})
        with pytest.raises(ResourceNotFoundError):
            create_hsm(client, data, settings=settings)
        assert api.calls_to("create_hsm") == []

    def test_retries_internal_failure(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        api.fail("create_hsm", internal_failure("CreateHsm"))
        create_hsm(client, ResourceData({"cluster_id": cluster_id, "subnet_id": "subnet-aaa"}), settings=settings)
        assert len(api.calls_to("create_hsm")) == 2


class TestReadHsm:
    def test_absent_clears_id(self, api, client):
        cluster_id = api.add_cluster(["ACTIVE"])
        data = ResourceData({"cluster_id": cluster_id}, id="hsm-gone")
        assert read_hsm(client, data) is None
        assert data.id == ""

    def test_locates_cluster_when_unknown(self, api, client):
        api.add_cluster(["ACTIVE"])
        cluster_id = api.add_cluster(["ACTIVE"])
        hsm_id = api.add_hsm(cluster_id, ["ACTIVE"])
        data = ResourceData(id=hsm_id)
        import_hsm(data)
        hsm = read_hsm(client, data)
        assert hsm.cluster_id == cluster_id
        assert data.get("cluster_id") == cluster_id


class TestDeleteHsm:
    def test_targets_destroyed(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        hsm_id = api.add_hsm(cluster_id, ["ACTIVE"])
        delete_hsm(client, ResourceData({"cluster_id": cluster_id}, id=hsm_id), settings=settings)
        assert api.calls_to("delete_hsm") == [{"ClusterId": cluster_id, "HsmId": hsm_id}]

    def test_literal_deleted_is_unexpected(self, api, client, settings):
        api.hsm_delete_steps = ["DELETE_IN_PROGRESS", "DELETED"]
        cluster_id = api.add_cluster(["ACTIVE"])
        hsm_id = api.add_hsm(cluster_id, ["ACTIVE"])
        with pytest.raises(UnexpectedStateError) as exc_info:
            delete_hsm(client, ResourceData({"cluster_id": cluster_id}, id=hsm_id), settings=settings)
        assert exc_info.value.state == "DELETED"


class TestHsmResource:
    def _ctx(self, client, settings):
        return Context(target=None, client=client, state=StateFile(), settings=settings)

    def test_requires_owner(self):
        with pytest.raises(ValueError, match="cluster or cluster_id"):
            HsmResource(name="hsm0", subnet_id="subnet-aaa")

    def test_requires_placement(self):
        with pytest.raises(ValidationError):
            HsmResource(name="hsm0", cluster_id="cluster-1")

    def test_cluster_reference_resolves_from_state(self, api, client, settings):
        ctx = self._ctx(client, settings)
        ClusterResource(name="main", hsm_type="hsm1.medium", subnet_ids=["subnet-aaa", "subnet-bbb"]).apply(ctx)
        cluster_id = ctx.state.find_id("cloudhsm_v2_cluster.main")

        hsm = HsmResource(name="hsm0", cluster="main", subnet_id="subnet-aaa")
        hsm.apply(ctx)
        entry = ctx.state.resources["cloudhsm_v2_hsm.hsm0"]
        assert entry.attributes["cluster_id"] == cluster_id
        assert entry.attributes["hsm_state"] == "ACTIVE"
        assert hsm.exists(ctx) is True

    def test_unknown_cluster_reference(self, client, settings):
        ctx = self._ctx(client, settings)
        with pytest.raises(ValueError, match="not in state"):
            HsmResource(name="hsm0", cluster="missing", subnet_id="subnet-aaa").apply(ctx)

    def test_update_only_rereads(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        ctx = self._ctx(client, settings)
        res = HsmResource(name="hsm0", cluster_id=cluster_id, availability_zone="us-east-1a")
        res.apply(ctx)
        api.calls.clear()
        res.apply(ctx)
        assert {name for name, _ in api.calls} == {"describe_clusters"}

    def test_remove(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        ctx = self._ctx(client, settings)
        res = HsmResource(name="hsm0", cluster_id=cluster_id, availability_zone="us-east-1a")
        res.apply(ctx)
        res.remove(ctx)
        assert "cloudhsm_v2_hsm.hsm0" not in ctx.state.resources
        assert res.exists(ctx) is False

    def test_import(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        hsm_id = api.add_hsm(cluster_id, ["ACTIVE"])
        ctx = self._ctx(client, settings)
        HsmResource(name="hsm0", cluster_id=cluster_id, availability_zone="us-east-1a").import_(ctx, hsm_id)
        entry = ctx.state.resources["cloudhsm_v2_hsm.hsm0"]
        assert entry.id == hsm_id
        assert entry.attributes["cluster_id"] == cluster_id


class TestHsmOps:
    """HSMs driven through the present/ensure strategies."""

    def _ctx(self, client, settings):
        return Context(target=None, client=client, state=StateFile(), settings=settings)

    def test_present_resumes_interrupted_create(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        api.hsm_create_steps = ["CREATE_IN_PROGRESS"]
        ctx = self._ctx(client, settings)
        res = HsmResource(
            name="hsm0",
            cluster_id=cluster_id,
            availability_zone="us-east-1a",
            timeouts={"create": 300},
        )
        with pytest.raises(WaitTimeoutError):
            Present(res)(ctx)
        hsm_id = ctx.state.find_id("cloudhsm_v2_hsm.hsm0")
        assert hsm_id

        api.hsms[cluster_id][hsm_id].reset(["CREATE_IN_PROGRESS", "ACTIVE"])
        change = Present(res)(ctx)
        assert change.action is Action.CREATE
        assert change.applied is True
        assert ctx.state.resources["cloudhsm_v2_hsm.hsm0"].attributes["hsm_state"] == "ACTIVE"
        assert len(api.calls_to("create_hsm")) == 1
        assert Present(res)(ctx).action is Action.NONE

    def test_ensure_rejects_subnet_move(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        ctx = self._ctx(client, settings)
        Ensure(HsmResource(name="hsm0", cluster_id=cluster_id, subnet_id="subnet-aaa"))(ctx)

        moved = HsmResource(name="hsm0", cluster_id=cluster_id, subnet_id="subnet-bbb")
        with pytest.raises(ValueError, match="subnet_id"):
            Ensure(moved)(ctx)
        assert len(api.calls_to("create_hsm")) == 1

    def test_ensure_rejects_zone_move(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        ctx = self._ctx(client, settings)
        Ensure(HsmResource(name="hsm0", cluster_id=cluster_id, availability_zone="us-east-1a"))(ctx)

        moved = HsmResource(name="hsm0", cluster_id=cluster_id, availability_zone="us-east-1b")
        with pytest.raises(ValueError, match="availability_zone"):
            Present(moved)(ctx)

    def test_unchanged_placement_is_up_to_date(self, api, client, settings):
        cluster_id = api.add_cluster(["ACTIVE"])
        ctx = self._ctx(client, settings)
        res = HsmResource(name="hsm0", cluster_id=cluster_id, subnet_id="subnet-aaa")
        Ensure(res)(ctx)
        assert Ensure(res)(ctx).action is Action.NONE
