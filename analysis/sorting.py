"""Ordering of nodes, pods and containers for display."""
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from capacity.resources import (
    ClusterMetric, NodeMetric, ResourceMetric, SubunitMetric, WorkloadMetric,
)

SUPPORTED_SORT_ATTRIBUTES = (
    "cpu.util",
    "cpu.request",
    "cpu.limit",
    "mem.util",
    "mem.request",
    "mem.limit",
    "cpu.util.percentage",
    "cpu.request.percentage",
    "cpu.limit.percentage",
    "mem.util.percentage",
    "mem.request.percentage",
    "mem.limit.percentage",
    "name",
)

DEFAULT_SORT = "name"

Scope = Union[NodeMetric, WorkloadMetric, SubunitMetric]

_FIELDS = {'util': 'utilization', 'request': 'request', 'limit': 'limit'}
_RESOURCES = {'cpu': 'cpu', 'mem': 'memory'}


def _numeric_getter(sort_by: str) -> Optional[Callable[[Scope], int]]:
    parts = sort_by.split('.')
    if len(parts) not in (2, 3) or parts[0] not in _RESOURCES or parts[1] not in _FIELDS:
        return None
    if len(parts) == 3 and parts[2] != 'percentage':
        return None
    resource_attr = _RESOURCES[parts[0]]
    field_attr = _FIELDS[parts[1]]
    as_percent = len(parts) == 3

    def getter(scope: Scope) -> int:
        metric: ResourceMetric = getattr(scope, resource_attr)
        value = getattr(metric, field_attr)
        return metric.percent(value) if as_percent else value

    return getter


def sort_key(sort_by: Optional[str], group_by_labels: Sequence[str] = ()) -> Callable[[Scope], Tuple]:
    """Key function: group-by label values ascending, then the sort attribute.

    Numeric attributes sort largest first, ``name`` and unknown attributes
    sort by name ascending. Ties fall back to the name.
    """
    getter = _numeric_getter(sort_by or DEFAULT_SORT)

    def key(scope: Scope) -> Tuple:
        labels: Dict[str, str] = getattr(scope, 'labels', None) or {}
        label_part = tuple(labels.get(label, '') for label in group_by_labels)
        if getter is None:
            return label_part + (scope.name,)
        return label_part + (-getter(scope), scope.name)

    return key


def sorted_nodes(cm: ClusterMetric, group_by_labels: Sequence[str] = (),
                 sort_by: Optional[str] = DEFAULT_SORT) -> List[NodeMetric]:
    return sorted(cm.nodes.values(), key=sort_key(sort_by, group_by_labels))


def sorted_workloads(nm: NodeMetric, sort_by: Optional[str] = DEFAULT_SORT) -> List[WorkloadMetric]:
    return sorted(nm.workloads.values(), key=sort_key(sort_by))


def sorted_subunits(wm: WorkloadMetric, sort_by: Optional[str] = DEFAULT_SORT) -> List[SubunitMetric]:
    return sorted(wm.subunits.values(), key=sort_key(sort_by))
