"""
Snapshot discovery - reads cluster objects dumped with kubectl.

Expected files (JSON or YAML, `kind: List` or a bare list):
  - nodes:        kubectl get nodes -o json
  - pods:         kubectl get pods -A -o json
  - node metrics: kubectl get --raw /apis/metrics.k8s.io/v1beta1/nodes
  - pod metrics:  kubectl get --raw /apis/metrics.k8s.io/v1beta1/pods

Missing metrics files mean "no live samples". When a namespace restriction
is active node metrics are withheld, so node utilization is summed from the
node's visible pods instead.
"""
import logging
import os
from typing import Any, Dict, List, Optional

import yaml

from capacity.descriptors import object_namespace

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    pass


def load_items(path: str) -> Optional[List[Dict[str, Any]]]:
    """Load the object list stored at ``path``.

    Returns None when the file does not exist.

    Raises:
        DiscoveryError: If the file cannot be read or parsed
    """
    if not os.path.exists(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            # YAML is a superset of JSON, one loader covers both dump formats
            doc = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise DiscoveryError(f"failed to read {path}: {e}")

    if doc is None:
        return []
    if isinstance(doc, list):
        items = doc
    elif isinstance(doc, dict) and isinstance(doc.get('items'), list):
        items = doc['items']
    elif isinstance(doc, dict):
        items = [doc]
    else:
        raise DiscoveryError(f"unexpected document in {path}: {type(doc).__name__}")
    return [item for item in items if isinstance(item, dict)]


def _namespaces(namespace: str = "", namespace_allow: str = "") -> List[str]:
    if namespace:
        return [namespace]
    return [s.strip() for s in (namespace_allow or "").split(',') if s.strip()]


def _filter_namespace(items: List[Dict[str, Any]], allowed: List[str]) -> List[Dict[str, Any]]:
    if not allowed:
        return items
    return [item for item in items if object_namespace(item) in allowed]


def discover_nodes(path: str) -> List[Dict[str, Any]]:
    nodes = load_items(path)
    if nodes is None:
        raise DiscoveryError(f"node list not found: {path}")
    logger.info(f"Discovered {len(nodes)} nodes from {path}")
    return nodes


def discover_pods(path: str, namespace: str = "", namespace_allow: str = "") -> List[Dict[str, Any]]:
    pods = load_items(path)
    if pods is None:
        raise DiscoveryError(f"pod list not found: {path}")
    allowed = _namespaces(namespace, namespace_allow)
    filtered = _filter_namespace(pods, allowed)
    logger.info(f"Discovered {len(filtered)} pods from {path} (namespaces={allowed or 'all'})")
    return filtered


def discover_pod_metrics(path: str, namespace: str = "",
                         namespace_allow: str = "") -> Optional[List[Dict[str, Any]]]:
    samples = load_items(path)
    if samples is None:
        logger.info(f"No pod metrics at {path}, pod utilization unavailable")
        return None
    return _filter_namespace(samples, _namespaces(namespace, namespace_allow))


def discover_node_metrics(path: str, namespace: str = "",
                          namespace_allow: str = "") -> Optional[List[Dict[str, Any]]]:
    """Node samples, or None when they would not match a namespace-restricted view."""
    if _namespaces(namespace, namespace_allow):
        logger.info("Namespace restriction active, node utilization summed from pods")
        return None
    samples = load_items(path)
    if samples is None:
        logger.info(f"No node metrics at {path}, node utilization summed from pods")
    return samples
