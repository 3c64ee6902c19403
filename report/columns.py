"""Column layout for tabular and delimited views.

build_columns() is a pure function of the display options and the resolved
label selection; nothing is cached between calls.
"""
from dataclasses import dataclass
from typing import List, Optional

from analysis.binpack import BIN_HEADERS
from analysis.labels import LabelSelection
from analysis.sorting import DEFAULT_SORT


@dataclass
class DisplayOptions:
    show_pods: bool = False
    show_containers: bool = False
    show_util: bool = False
    show_pod_count: bool = False
    show_namespace: bool = True
    show_pod_families: bool = False
    binpack_analysis: bool = False
    available_format: bool = False
    sort_by: str = DEFAULT_SORT
    group_by_labels: str = ""
    display_labels: str = ""
    show_all_labels: bool = False

    def __post_init__(self):
        # containers are listed under their pods
        if self.show_containers:
            self.show_pods = True


@dataclass(frozen=True)
class Column:
    key: str
    header: str


def _label_columns(prefix: str, labels: List[str]) -> List[Column]:
    return [Column(f"{prefix}:{label}", label.upper()) for label in labels]


def build_columns(options: DisplayOptions, labels: Optional[LabelSelection] = None,
                  third_resource_label: str = "ENI") -> List[Column]:
    """Ordered columns for the given options.

    Layout: node, group-by labels, display labels, namespace/pod, container,
    CPU, memory and third-resource blocks, pod count, bin-pack fields,
    remaining labels.
    """
    labels = labels or LabelSelection()
    columns = [Column('node', 'NODE')]
    columns += _label_columns('group_by', labels.group_by)
    columns += _label_columns('display', labels.display)

    if options.show_pods:
        if options.show_namespace:
            columns.append(Column('namespace', 'NAMESPACE'))
        columns.append(Column('pod', 'POD'))
    if options.show_containers:
        columns.append(Column('container', 'CONTAINER'))

    for key, title in (('cpu', 'CPU'), ('memory', 'MEMORY'), ('third', third_resource_label)):
        columns.append(Column(f'{key}_requests', f'{title} REQUESTS'))
        columns.append(Column(f'{key}_limits', f'{title} LIMITS'))
        if options.show_util:
            columns.append(Column(f'{key}_util', f'{title} UTIL'))

    if options.show_pod_count:
        columns.append(Column('pod_count', 'POD COUNT'))

    if options.binpack_analysis:
        columns += [Column(key, header) for key, header in BIN_HEADERS.items()]

    columns += _label_columns('remainder', labels.remainder)
    return columns


def headers(columns: List[Column]) -> List[str]:
    return [c.header for c in columns]
