"""
Label selection - which node labels to group by, display, or append.

Label names are kept in the order they were first observed (nodes in input
order, each node's labels in its own order) so output columns are stable
from run to run.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from capacity.descriptors import object_labels
from capacity.resources import ClusterMetric

logger = logging.getLogger(__name__)


class LabelSelectionError(Exception):
    """Raised when a selection names labels the cluster does not have"""

    def __init__(self, kind: str, unknown_labels: List[str]):
        self.kind = kind
        self.unknown_labels = list(unknown_labels)
        super().__init__(f"unknown ({kind}) node label(s): {self.unknown_labels}")


@dataclass
class LabelSelection:
    group_by: List[str] = field(default_factory=list)
    display: List[str] = field(default_factory=list)
    remainder: List[str] = field(default_factory=list)

    def all_labels(self) -> List[str]:
        return self.group_by + self.display + self.remainder


def _ordered_keys(label_maps: Iterable[Dict[str, str]]) -> List[str]:
    seen: Dict[str, None] = {}
    for labels in label_maps:
        for k in labels:
            seen.setdefault(k, None)
    return list(seen)


def unique_node_labels(cm: ClusterMetric) -> List[str]:
    return _ordered_keys(nm.labels for nm in cm.nodes.values())


def unique_pod_labels(cm: ClusterMetric) -> List[str]:
    return _ordered_keys(object_labels(pod) for pod in cm.raw_pods)


def parse_label_list(value: Any) -> List[str]:
    """Comma-separated string or list -> label names, blanks dropped."""
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(',')
    else:
        items = list(value)
    return [str(s).strip() for s in items if str(s).strip()]


def _select(kind: str, requested: Sequence[str], known: Dict[str, None]) -> List[str]:
    selected: List[str] = []
    unknown: List[str] = []
    for label in requested:
        if label not in known:
            if label not in unknown:
                unknown.append(label)
        elif label not in selected:
            selected.append(label)
    if unknown:
        raise LabelSelectionError(kind, unknown)
    return selected


def resolve_label_selection(cluster_labels: Iterable[str], group_by: Any = None,
                            display: Any = None, show_all: bool = False) -> LabelSelection:
    """Split the observed labels into group-by, display and remainder lists.

    Args:
        cluster_labels: Observed label names in first-seen order
        group_by: Labels to group nodes by (list or comma-separated string)
        display: Labels to show as extra columns
        show_all: Append every other observed label as well

    Returns:
        LabelSelection; a label requested for both group-by and display is
        only listed under group_by

    Raises:
        LabelSelectionError: listing every unknown name of the first
            offending selection (group-by is checked first)
    """
    group_by = parse_label_list(group_by)
    display = parse_label_list(display)

    if not group_by and not display and not show_all:
        return LabelSelection()

    known: Dict[str, None] = dict.fromkeys(cluster_labels)

    selection = LabelSelection()
    selection.group_by = _select('group by', group_by, known)
    selection.display = [label for label in _select('display', display, known)
                         if label not in selection.group_by]

    if show_all:
        taken = set(selection.group_by) | set(selection.display)
        selection.remainder = [label for label in known if label not in taken]

    logger.debug(
        f"Label selection: group_by={selection.group_by} display={selection.display} "
        f"remainder={selection.remainder}"
    )
    return selection


def resolve_node_labels(cm: ClusterMetric, group_by: Any = None, display: Any = None,
                        show_all: bool = False) -> LabelSelection:
    return resolve_label_selection(unique_node_labels(cm), group_by, display, show_all)
