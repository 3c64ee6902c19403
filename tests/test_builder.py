"""
Tests for the aggregation builder
"""
import logging

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from capacity.builder import build_cluster_metric
from capacity.resources import ENI

MIB = 1024 ** 2
GIB = 1024 ** 3


@pytest.fixture
def built(small_cluster):
    return build_cluster_metric(
        small_cluster["pods"], small_cluster["pod_metrics"],
        small_cluster["nodes"], small_cluster["node_metrics"],
    )


class TestAggregation:
    """Tests for request/limit/allocatable aggregation"""

    def test_nodes_and_workloads(self, built):
        assert list(built.nodes) == ["node-a", "node-b"]
        assert set(built.workloads) == {
            "default/api-1", "default/api-2", "batch/worker-1", "default/debug",
        }

    def test_node_requests_and_limits(self, built):
        node_a = built.nodes["node-a"]
        assert node_a.cpu.request == 650
        assert node_a.cpu.limit == 1200
        assert node_a.memory.request == 608 * MIB
        node_b = built.nodes["node-b"]
        assert node_b.cpu.request == 2500
        assert node_b.cpu.limit == 5000

    def test_allocatable_copied_down_and_summed_up(self, built):
        node_a = built.nodes["node-a"]
        wm = node_a.workloads["default/api-1"]
        assert wm.cpu.allocatable == 4000
        assert wm.subunits["api"].memory.allocatable == 8 * GIB
        assert built.cpu.allocatable == 12000
        assert built.memory.allocatable == 24 * GIB

    def test_sum_invariant(self, built):
        for attr in ("cpu", "memory", "third"):
            assert getattr(built, attr).request == sum(
                getattr(nm, attr).request for nm in built.nodes.values()
            )
            assert getattr(built, attr).limit == sum(
                getattr(nm, attr).limit for nm in built.nodes.values()
            )
            for nm in built.nodes.values():
                assert getattr(nm, attr).request == sum(
                    getattr(wm, attr).request for wm in nm.workloads.values()
                )
                for wm in nm.workloads.values():
                    assert getattr(wm, attr).request == sum(
                        getattr(sc, attr).request for sc in wm.subunits.values()
                    )

    def test_pod_counts(self, built):
        assert built.nodes["node-a"].pod_count.current == 2
        assert built.nodes["node-a"].pod_count.allocatable == 10
        assert built.pod_count.current == 4
        assert built.pod_count.allocatable == 30

    def test_terminal_pods_excluded(self, built):
        assert "default/migrate-job" not in built.workloads
        # a 3 CPU finished job would otherwise dominate node-a
        assert built.nodes["node-a"].cpu.request < 3000

    def test_failed_pod_excluded(self, make_node, make_pod):
        cm = build_cluster_metric(
            [make_pod("crashed", "n1", phase="Failed")], None, [make_node("n1")], None,
        )
        assert cm.workloads == {}
        assert cm.pod_count.current == 0
        assert cm.cpu.request == 0

    def test_pod_on_unknown_node_dropped(self, built):
        assert "default/orphan" not in built.workloads
        assert built.cpu.request == 3150

    def test_unscheduled_pod_dropped(self, make_node, make_pod):
        pod = make_pod("pending", None)
        cm = build_cluster_metric([pod], None, [make_node("n1")], None)
        assert cm.workloads == {}

    def test_duplicate_pod_kept_once(self, make_node, make_pod, caplog):
        pods = [make_pod("api", "n1"), make_pod("api", "n1")]
        with caplog.at_level(logging.WARNING):
            cm = build_cluster_metric(pods, None, [make_node("n1")], None)
        assert cm.nodes["n1"].pod_count.current == 1
        assert cm.cpu.request == 1000
        assert "Duplicate pod default/api" in caplog.text

    def test_same_name_in_other_namespace_is_distinct(self, make_node, make_pod):
        pods = [make_pod("api", "n1"), make_pod("api", "n1", namespace="staging")]
        cm = build_cluster_metric(pods, None, [make_node("n1")], None)
        assert set(cm.workloads) == {"default/api", "staging/api"}

    def test_nameless_entries_skipped(self, make_node, make_pod):
        nameless_node = {"status": {"allocatable": {"cpu": "2"}}}
        nameless_pod = make_pod("x", "n1")
        nameless_pod["metadata"].pop("name")
        cm = build_cluster_metric([nameless_pod], None, [make_node("n1"), nameless_node], None)
        assert list(cm.nodes) == ["n1"]
        assert cm.workloads == {}

    def test_third_resource(self, make_node, make_pod):
        node = make_node("n1", extra={ENI: "4"})
        pod = make_pod("trunk", "n1", containers=[("app", {"cpu": "1", ENI: "1"}, {ENI: "1"})])
        cm = build_cluster_metric([pod], None, [node], None)
        assert cm.nodes["n1"].third.allocatable == 4
        assert cm.nodes["n1"].third.request == 1
        assert cm.third.limit == 1
        assert cm.third_resource_name == ENI

    def test_custom_third_resource(self, make_node, make_pod):
        node = make_node("n1", extra={"nvidia.com/gpu": "2"})
        pod = make_pod("train", "n1", containers=[("app", {"nvidia.com/gpu": "1"}, {})])
        cm = build_cluster_metric([pod], None, [node], None, third_resource="nvidia.com/gpu")
        assert cm.third.request == 1
        assert cm.third.allocatable == 2


class TestUtilization:
    """Tests for pod and node utilization policies"""

    def test_container_utilization(self, built):
        wm = built.workloads["default/api-1"]
        assert wm.subunits["api"].cpu.utilization == 250
        assert wm.subunits["sidecar"].cpu.utilization == 10
        assert wm.cpu.utilization == 260
        assert wm.memory.utilization == 320 * MIB

    def test_node_utilization_from_node_samples(self, built):
        assert built.nodes["node-a"].cpu.utilization == 1200
        assert built.nodes["node-b"].memory.utilization == 6 * GIB
        assert built.cpu.utilization == 4200

    def test_node_utilization_summed_without_node_samples(self, small_cluster):
        cm = build_cluster_metric(
            small_cluster["pods"], small_cluster["pod_metrics"], small_cluster["nodes"], None,
        )
        assert cm.nodes["node-a"].cpu.utilization == 260
        assert cm.nodes["node-b"].cpu.utilization == 1800
        assert cm.cpu.utilization == 2060

    def test_node_without_sample_keeps_zero(self, small_cluster, make_node_metrics):
        cm = build_cluster_metric(
            small_cluster["pods"], small_cluster["pod_metrics"], small_cluster["nodes"],
            [make_node_metrics("node-a", cpu="1", memory="1Gi")],
        )
        assert cm.nodes["node-a"].cpu.utilization == 1000
        assert cm.nodes["node-b"].cpu.utilization == 0

    def test_sample_for_unknown_node_skipped(self, small_cluster, make_node_metrics):
        cm = build_cluster_metric(
            small_cluster["pods"], None, small_cluster["nodes"],
            [make_node_metrics("node-x", cpu="9")],
        )
        assert "node-x" not in cm.nodes
        assert cm.cpu.utilization == 0

    def test_undeclared_container_samples_ignored(self, make_node, make_pod, make_pod_metrics):
        pod = make_pod("api", "n1", containers=[("app", {"cpu": "1"}, {})])
        sample = make_pod_metrics("api", usage={"app": {"cpu": "100m"}, "ghost": {"cpu": "900m"}})
        cm = build_cluster_metric([pod], [sample], [make_node("n1")], None)
        assert cm.workloads["default/api"].cpu.utilization == 100
        assert "ghost" not in cm.workloads["default/api"].subunits

    def test_no_pod_samples(self, small_cluster):
        cm = build_cluster_metric(small_cluster["pods"], None, small_cluster["nodes"], None)
        assert all(wm.cpu.utilization == 0 for wm in cm.workloads.values())


class TestFamiliesOnBuild:
    def test_families_from_active_pods(self, built):
        assert [(f.key, f.value, f.unlabeled) for f in built.families] == [
            ("app", "api", False),
            ("app.kubernetes.io/name", "worker", False),
            ("", "", True),
        ]
        api = built.families[0]
        # the finished job and the stray pod are not members
        assert api.pod_count == 2
        assert api.cpu.request == 1100
        assert api.cpu.utilization == 560

    def test_select_pod_labels(self, small_cluster):
        cm = build_cluster_metric(
            small_cluster["pods"], None, small_cluster["nodes"], None,
            select_pod_labels="app.kubernetes.io/name",
        )
        assert cm.family_labels == ["app.kubernetes.io/name"]
        assert [f.value for f in cm.families] == ["worker", ""]
        assert cm.families[-1].pod_count == 3


class TestMalformedInput:
    """A single bad entry never aborts the build"""

    @pytest.mark.parametrize("bad", ["NaN", "Infinity", "1e999999Ki", "lots"])
    def test_bad_quantity_reads_as_zero(self, make_node, make_pod, bad):
        pods = [
            make_pod("bad", "n1", containers=[("app", {"cpu": bad, "memory": bad}, {"cpu": bad})]),
            make_pod("good", "n1", containers=[("app", {"cpu": "250m"}, {})]),
        ]
        cm = build_cluster_metric(pods, None, [make_node("n1")], None)
        assert cm.workloads["default/bad"].cpu.request == 0
        assert cm.workloads["default/bad"].memory.request == 0
        assert cm.cpu.request == 250

    def test_bad_node_allocatable(self, make_node):
        cm = build_cluster_metric([], None, [make_node("n1", cpu="NaN", memory="Infinity")], None)
        assert cm.nodes["n1"].cpu.allocatable == 0
        assert cm.memory.allocatable == 0


class TestContainerSelection:
    """Families and workloads sum the same containers"""

    def test_unnamed_container_skipped(self, make_node, make_pod):
        pod = make_pod("api", "n1", labels={"app": "api"},
                       containers=[("app", {"cpu": "1"}, {}), (None, {"cpu": "2"}, {})])
        cm = build_cluster_metric([pod], None, [make_node("n1")], None)
        wm = cm.workloads["default/api"]
        assert list(wm.subunits) == ["app"]
        assert wm.cpu.request == 1000
        assert cm.families[0].cpu.request == wm.cpu.request

    def test_duplicate_container_keeps_first(self, make_node, make_pod, make_pod_metrics):
        pod = make_pod("api", "n1", labels={"app": "api"},
                       containers=[("app", {"cpu": "1"}, {"cpu": "2"}), ("app", {"cpu": "2"}, {})])
        sample = make_pod_metrics("api", usage={"app": {"cpu": "300m"}})
        cm = build_cluster_metric([pod], [sample], [make_node("n1")], None)
        wm = cm.workloads["default/api"]
        assert wm.subunits["app"].cpu.request == 1000
        assert wm.cpu.request == 1000
        assert wm.cpu.limit == 2000
        family = cm.families[0]
        assert (family.cpu.request, family.cpu.limit) == (wm.cpu.request, wm.cpu.limit)
        assert family.cpu.utilization == wm.cpu.utilization == 300

    def test_family_sums_match_member_workloads(self, small_cluster):
        cm = build_cluster_metric(
            small_cluster["pods"], small_cluster["pod_metrics"], small_cluster["nodes"], None,
        )
        for family in cm.families:
            members = [cm.workloads[f"{p['metadata']['namespace']}/{p['metadata']['name']}"]
                       for p in family.items]
            for attr in ("cpu", "memory", "third"):
                assert getattr(family, attr).request == sum(getattr(w, attr).request for w in members)
                assert getattr(family, attr).limit == sum(getattr(w, attr).limit for w in members)
