"""
Aggregation builder - turns raw node/pod lists into the metrics tree.

Rules:
- Succeeded/Failed pods are ignored everywhere (counts and sums).
- A pod only counts if its node is in the node list.
- requests/limits flow container -> pod -> node -> cluster.
- allocatable flows node -> cluster only; pods and containers get a copy
  of their node's allocatable for percentage display.
- With node samples, node utilization comes from them. Without node samples
  (namespace-restricted view) a node's utilization is the sum of its pods'.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from analysis.families import group_workload_families
from capacity.descriptors import (
    container_requests_and_limits, index_pod_metrics, is_terminal, node_allocatable,
    node_pod_slots, node_usage, object_key, object_labels, object_name,
    object_namespace, pod_containers, pod_node_name,
)
from capacity.resources import (
    ENI, ClusterMetric, NodeMetric, PodCount, ResourceMetric, ResourceType,
    SubunitMetric, WorkloadMetric,
)
from normalize.quantity import CPU, MEMORY, resource_from_list

logger = logging.getLogger(__name__)


def build_cluster_metric(
    pods: Iterable[Dict[str, Any]],
    pod_metrics: Optional[Iterable[Dict[str, Any]]],
    nodes: Iterable[Dict[str, Any]],
    node_metrics: Optional[Iterable[Dict[str, Any]]],
    select_pod_labels: Any = None,
    third_resource: str = ENI,
) -> ClusterMetric:
    """Build the ClusterMetric tree from a point-in-time snapshot.

    Args:
        pods: Pod objects
        pod_metrics: PodMetrics objects, or None when utilization was not fetched
        nodes: Node objects
        node_metrics: NodeMetrics objects, or None when whole-node samples are
            not reliable (namespace filtering); node utilization is then summed
            from the node's pods
        select_pod_labels: Ordered candidate labels for workload families
            (comma-separated string or list, empty for the defaults)
        third_resource: Resource name tracked as the third resource

    Returns:
        ClusterMetric with node/pod/container scopes and workload families
    """
    pods = list(pods or [])
    nodes = list(nodes or [])
    resource_names = {
        ResourceType.CPU: CPU,
        ResourceType.MEMORY: MEMORY,
        ResourceType.THIRD: third_resource,
    }

    cm = ClusterMetric(raw_pods=pods, third_resource_name=third_resource)

    # Nodes: allocatable and pod slots
    for node in nodes:
        name = object_name(node)
        if name is None:
            logger.debug("Skipping node without a name")
            continue
        cm.nodes[name] = NodeMetric(
            name=name,
            cpu=ResourceMetric(ResourceType.CPU, allocatable=node_allocatable(node, CPU)),
            memory=ResourceMetric(ResourceType.MEMORY, allocatable=node_allocatable(node, MEMORY)),
            third=ResourceMetric(ResourceType.THIRD, allocatable=node_allocatable(node, third_resource)),
            pod_count=PodCount(allocatable=node_pod_slots(node)),
            labels=object_labels(node),
        )

    active_pods: List[Dict[str, Any]] = []
    seen = set()
    for pod in pods:
        if is_terminal(pod):
            continue
        node_name = pod_node_name(pod)
        if node_name not in cm.nodes:
            logger.debug(f"Skipping pod {object_key(pod)}: node {node_name!r} not in node list")
            continue
        key = object_key(pod)
        if key is None:
            logger.debug("Skipping pod without a name")
            continue
        if key in seen:
            logger.warning(f"Duplicate pod {key} in snapshot, keeping the first entry")
            continue
        seen.add(key)
        active_pods.append(pod)

    # Pod counts
    for pod in active_pods:
        cm.nodes[pod_node_name(pod)].pod_count.current += 1
    for nm in cm.nodes.values():
        cm.pod_count.current += nm.pod_count.current
        cm.pod_count.allocatable += nm.pod_count.allocatable

    # Whole-node utilization samples
    if node_metrics is not None:
        for sample in node_metrics:
            nm = cm.nodes.get(object_name(sample))
            if nm is None:
                logger.debug(f"Ignoring node sample for unknown node {object_name(sample)!r}")
                continue
            nm.cpu.utilization = node_usage(sample, CPU)
            nm.memory.utilization = node_usage(sample, MEMORY)
            nm.third.utilization = node_usage(sample, third_resource)

    samples = index_pod_metrics(pod_metrics)

    for pod in active_pods:
        _add_pod_metric(cm, pod, samples.get(object_key(pod), {}), resource_names)

    # Roll nodes up into the cluster
    for nm in cm.nodes.values():
        if node_metrics is None:
            nm.add_workload_utilization()
        cm.add_node_metric(nm)

    cm.families, cm.family_labels = group_workload_families(
        active_pods, select_pod_labels, pod_metrics, third_resource
    )

    logger.info(
        f"Built cluster metrics: {len(cm.nodes)} nodes, {len(cm.workloads)} pods, "
        f"{len(cm.families)} pod families"
    )
    return cm


def _add_pod_metric(cm: ClusterMetric, pod: Dict[str, Any],
                    container_usage: Dict[str, Dict[str, Any]],
                    resource_names: Dict[ResourceType, str]) -> None:
    nm = cm.nodes[pod_node_name(pod)]

    wm = WorkloadMetric(
        name=object_name(pod),
        namespace=object_namespace(pod),
        node=nm.name,
        cpu=ResourceMetric(ResourceType.CPU, allocatable=nm.cpu.allocatable),
        memory=ResourceMetric(ResourceType.MEMORY, allocatable=nm.memory.allocatable),
        third=ResourceMetric(ResourceType.THIRD, allocatable=nm.third.allocatable),
        labels=object_labels(pod),
    )

    for container in pod_containers(pod):
        cname = container['name']
        sc = SubunitMetric(
            name=cname,
            cpu=ResourceMetric(ResourceType.CPU, allocatable=nm.cpu.allocatable),
            memory=ResourceMetric(ResourceType.MEMORY, allocatable=nm.memory.allocatable),
            third=ResourceMetric(ResourceType.THIRD, allocatable=nm.third.allocatable),
        )
        usage = container_usage.get(cname)
        for rtype, resource_name in resource_names.items():
            metric = getattr(sc, rtype.name.lower())
            metric.request, metric.limit = container_requests_and_limits(container, resource_name)
            if usage is not None:
                metric.utilization = resource_from_list(usage, resource_name)
        wm.subunits[cname] = sc

    for sc in wm.subunits.values():
        for attr in ('cpu', 'memory', 'third'):
            child = getattr(sc, attr)
            parent = getattr(wm, attr)
            parent.request += child.request
            parent.limit += child.limit
            parent.utilization += child.utilization

    for attr in ('cpu', 'memory', 'third'):
        getattr(nm, attr).request += getattr(wm, attr).request
        getattr(nm, attr).limit += getattr(wm, attr).limit

    nm.workloads[wm.key] = wm
    cm.workloads[wm.key] = wm
