"""Accessors for Kubernetes-shaped node, pod and metrics dicts.

Inputs are the objects the API returns (``kubectl get ... -o json``):
nodes, pods, ``metrics.k8s.io`` NodeMetrics and PodMetrics. Missing fields
read as empty values so a partial snapshot never breaks aggregation.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from normalize.quantity import PODS, resource_from_list
from capacity.resources import workload_key

logger = logging.getLogger(__name__)

TERMINAL_PHASES = ("Succeeded", "Failed")


def _metadata(obj: Dict[str, Any]) -> Dict[str, Any]:
    md = obj.get('metadata') if isinstance(obj, dict) else None
    return md if isinstance(md, dict) else {}


def object_name(obj: Dict[str, Any]) -> Optional[str]:
    return _metadata(obj).get('name') or None


def object_namespace(obj: Dict[str, Any]) -> str:
    return _metadata(obj).get('namespace') or 'default'


def object_labels(obj: Dict[str, Any]) -> Dict[str, str]:
    labels = _metadata(obj).get('labels')
    return dict(labels) if isinstance(labels, dict) else {}


def object_key(obj: Dict[str, Any]) -> Optional[str]:
    name = object_name(obj)
    if name is None:
        return None
    return workload_key(object_namespace(obj), name)


# =============================================================================
# Pods
# =============================================================================
def pod_node_name(pod: Dict[str, Any]) -> Optional[str]:
    spec = pod.get('spec') or {}
    return spec.get('nodeName') or None


def pod_phase(pod: Dict[str, Any]) -> str:
    status = pod.get('status') or {}
    return status.get('phase') or ''


def is_terminal(pod: Dict[str, Any]) -> bool:
    return pod_phase(pod) in TERMINAL_PHASES


def pod_containers(pod: Dict[str, Any]) -> List[Dict[str, Any]]:
    """The pod's containers that take part in aggregation.

    Unnamed containers are skipped and only the first container of a given
    name is kept, so every consumer sums the same set.
    """
    spec = pod.get('spec') or {}
    containers: Dict[str, Dict[str, Any]] = {}
    for c in spec.get('containers') or []:
        if not isinstance(c, dict):
            continue
        name = c.get('name')
        if not name:
            logger.debug(f"Skipping unnamed container in pod {object_key(pod)}")
            continue
        if name in containers:
            logger.debug(f"Skipping duplicate container {name!r} in pod {object_key(pod)}")
            continue
        containers[name] = c
    return list(containers.values())


def container_requests_and_limits(container: Dict[str, Any], resource_name: str) -> Tuple[int, int]:
    resources = container.get('resources') or {}
    return (
        resource_from_list(resources.get('requests'), resource_name),
        resource_from_list(resources.get('limits'), resource_name),
    )


def pod_requests_and_limits(pod: Dict[str, Any], resource_name: str) -> Tuple[int, int]:
    """Sum of the pod's container requests and limits for one resource."""
    request = 0
    limit = 0
    for container in pod_containers(pod):
        r, l = container_requests_and_limits(container, resource_name)
        request += r
        limit += l
    return request, limit


# =============================================================================
# Nodes
# =============================================================================
def node_allocatable(node: Dict[str, Any], resource_name: str) -> int:
    status = node.get('status') or {}
    return resource_from_list(status.get('allocatable'), resource_name)


def node_pod_slots(node: Dict[str, Any]) -> int:
    return node_allocatable(node, PODS)


# =============================================================================
# metrics.k8s.io samples
# =============================================================================
def index_pod_metrics(pod_metrics: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """``namespace/name`` -> container name -> usage ResourceList."""
    index: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for pm in pod_metrics or []:
        key = object_key(pm)
        if key is None:
            continue
        containers: Dict[str, Dict[str, Any]] = {}
        for c in pm.get('containers') or []:
            if not isinstance(c, dict) or not c.get('name'):
                continue
            containers[c['name']] = c.get('usage') or {}
        index[key] = containers
    return index


def pod_usage(pod: Dict[str, Any], container_usage: Dict[str, Dict[str, Any]], resource_name: str) -> int:
    """Sampled usage of one resource across the pod's declared containers."""
    total = 0
    for container in pod_containers(pod):
        usage = container_usage.get(container.get('name'))
        if usage is not None:
            total += resource_from_list(usage, resource_name)
    return total


def node_usage(node_metric: Dict[str, Any], resource_name: str) -> int:
    return resource_from_list(node_metric.get('usage'), resource_name)
