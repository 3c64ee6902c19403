"""
Test fixtures and configuration for pytest
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


def _make_node(name, cpu="4", memory="8Gi", pods="10", labels=None, extra=None):
    allocatable = {"cpu": cpu, "memory": memory, "pods": pods}
    allocatable.update(extra or {})
    return {
        "kind": "Node",
        "metadata": {"name": name, "labels": dict(labels or {})},
        "status": {"allocatable": allocatable},
    }


def _make_pod(name, node, namespace="default", containers=None, phase="Running", labels=None):
    if containers is None:
        containers = [("app", {"cpu": "1000m", "memory": "2Gi"}, {})]
    return {
        "kind": "Pod",
        "metadata": {"name": name, "namespace": namespace, "labels": dict(labels or {})},
        "spec": {
            "nodeName": node,
            "containers": [
                {"name": cname, "resources": {"requests": dict(req), "limits": dict(lim)}}
                for cname, req, lim in containers
            ],
        },
        "status": {"phase": phase},
    }


def _make_pod_metrics(name, namespace="default", usage=None):
    usage = usage or {"app": {"cpu": "500m", "memory": "1Gi"}}
    return {
        "metadata": {"name": name, "namespace": namespace},
        "containers": [{"name": cname, "usage": dict(u)} for cname, u in usage.items()],
    }


def _make_node_metrics(name, cpu="0", memory="0"):
    return {"metadata": {"name": name}, "usage": {"cpu": cpu, "memory": memory}}


@pytest.fixture
def make_node():
    return _make_node


@pytest.fixture
def make_pod():
    return _make_pod


@pytest.fixture
def make_pod_metrics():
    return _make_pod_metrics


@pytest.fixture
def make_node_metrics():
    return _make_node_metrics


@pytest.fixture
def small_cluster():
    """Two labelled nodes, four running pods, one finished pod, one stray pod"""
    nodes = [
        _make_node("node-a", cpu="4", memory="8Gi", pods="10",
                   labels={"zone": "us-east-1a", "pool": "general"}),
        _make_node("node-b", cpu="8", memory="16Gi", pods="20",
                   labels={"zone": "us-east-1b", "pool": "general", "gpu": "false"}),
    ]
    pods = [
        _make_pod("api-1", "node-a", labels={"app": "api"},
                  containers=[("api", {"cpu": "500m", "memory": "512Mi"}, {"cpu": "1", "memory": "1Gi"}),
                              ("sidecar", {"cpu": "100m", "memory": "64Mi"}, {"cpu": "200m", "memory": "128Mi"})]),
        _make_pod("api-2", "node-b", labels={"app": "api"},
                  containers=[("api", {"cpu": "500m", "memory": "512Mi"}, {"cpu": "1", "memory": "1Gi"})]),
        _make_pod("worker-1", "node-b", namespace="batch", labels={"app.kubernetes.io/name": "worker"},
                  containers=[("worker", {"cpu": "2", "memory": "4Gi"}, {"cpu": "4", "memory": "8Gi"})]),
        _make_pod("debug", "node-a", containers=[("shell", {"cpu": "50m", "memory": "32Mi"}, {})]),
        _make_pod("migrate-job", "node-a", phase="Succeeded", labels={"app": "api"},
                  containers=[("job", {"cpu": "3", "memory": "6Gi"}, {})]),
        _make_pod("orphan", "node-gone", labels={"app": "api"},
                  containers=[("x", {"cpu": "1", "memory": "1Gi"}, {})]),
    ]
    pod_metrics = [
        _make_pod_metrics("api-1", usage={"api": {"cpu": "250m", "memory": "300Mi"},
                                          "sidecar": {"cpu": "10m", "memory": "20Mi"}}),
        _make_pod_metrics("api-2", usage={"api": {"cpu": "300m", "memory": "400Mi"}}),
        _make_pod_metrics("worker-1", namespace="batch",
                          usage={"worker": {"cpu": "1500m", "memory": "3Gi"}}),
    ]
    node_metrics = [
        _make_node_metrics("node-a", cpu="1200m", memory="2Gi"),
        _make_node_metrics("node-b", cpu="3", memory="6Gi"),
    ]
    return {
        "nodes": nodes,
        "pods": pods,
        "pod_metrics": pod_metrics,
        "node_metrics": node_metrics,
    }
