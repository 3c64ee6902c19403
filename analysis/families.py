"""
Workload families - groups pods by their application-name label.

Each pod joins the family named by the FIRST label in the candidate list
that it carries (candidate order wins over the pod's own label order).
Pods carrying none of the candidates share one unlabeled family.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from capacity.descriptors import (
    index_pod_metrics, object_key, object_labels, pod_requests_and_limits, pod_usage
)
from capacity.resources import ENI, WorkloadFamily
from normalize.quantity import CPU, MEMORY

logger = logging.getLogger(__name__)

# Conventional app-name labels, most specific first.
DEFAULT_POD_APP_LABELS = "app.kubernetes.io/name,app,k8s-app,name,appname"


def parse_selector_labels(selector: Optional[Any]) -> List[str]:
    """Comma-separated selector (or list) -> ordered label names.

    An empty selector falls back to DEFAULT_POD_APP_LABELS.
    """
    if isinstance(selector, str):
        labels = [s.strip() for s in selector.split(',') if s.strip()]
    elif selector:
        labels = [str(s).strip() for s in selector if str(s).strip()]
    else:
        labels = []
    if not labels:
        labels = DEFAULT_POD_APP_LABELS.split(',')
    return labels


def _match_label(labels: Dict[str, str], candidates: Sequence[str]) -> Optional[Tuple[str, str]]:
    for name in candidates:
        if name in labels:
            return name, labels[name]
    return None


def group_workload_families(
    pods: Iterable[Dict[str, Any]],
    candidate_labels: Any,
    pod_metrics: Optional[Iterable[Dict[str, Any]]] = None,
    third_resource: str = ENI,
) -> Tuple[List[WorkloadFamily], List[str]]:
    """Bucket ``pods`` into families and sum their resources.

    Returns the families (first-appearance order, unlabeled bucket last) and
    the candidate label list actually used. Utilization is summed only when
    ``pod_metrics`` is supplied.
    """
    candidates = parse_selector_labels(candidate_labels)
    samples = index_pod_metrics(pod_metrics) if pod_metrics is not None else None

    families: Dict[Tuple[str, str], WorkloadFamily] = {}
    unlabeled = WorkloadFamily(key='', value='', unlabeled=True)

    for pod in pods:
        match = _match_label(object_labels(pod), candidates)
        if match is None:
            family = unlabeled
        else:
            family = families.get(match)
            if family is None:
                family = WorkloadFamily(key=match[0], value=match[1])
                families[match] = family
        family.items.append(pod)
        _add_pod(family, pod, samples, third_resource)

    result = list(families.values())
    if unlabeled.items:
        result.append(unlabeled)

    logger.debug(f"Grouped pods into {len(result)} families using labels {candidates}")
    return result, candidates


def _add_pod(family: WorkloadFamily, pod: Dict[str, Any],
             samples: Optional[Dict[str, Dict[str, Dict[str, Any]]]],
             third_resource: str) -> None:
    for metric, resource_name in ((family.cpu, CPU), (family.memory, MEMORY),
                                  (family.third, third_resource)):
        request, limit = pod_requests_and_limits(pod, resource_name)
        metric.request += request
        metric.limit += limit
        if samples is not None:
            metric.utilization += pod_usage(pod, samples.get(object_key(pod), {}), resource_name)
