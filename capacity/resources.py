"""Resource metrics tree: cluster -> node -> workload (pod) -> subunit (container).

Quantities are plain ints: CPU in milli-units, memory in bytes, the third
resource as a count. Each ResourceMetric picks its formatter once, from its
resource type, when it is created.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from normalize.math import percent_raw, to_mebibytes

# Default name of the pluggable third resource (AWS VPC trunk ENIs).
ENI = "vpc.amazonaws.com/pod-eni"


class ResourceType(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    THIRD = "third"


class NodeClassification(str, Enum):
    WELL_UTILIZED = "well-utilized"
    UNDERUTILIZED = "underutilized"
    UNBALANCED = "unbalanced"


# =============================================================================
# Value formatters
# =============================================================================
class CpuFormat:
    """CPU values are shown in milli-units: ``250m``."""

    def value(self, quantity: int) -> str:
        return f"{quantity}m"

    def available(self, allocatable: int, quantity: int) -> str:
        return f"{allocatable - quantity}m"


class MemoryFormat:
    """Memory values are shown in whole mebibytes, rounded up: ``512Mi``."""

    def value(self, quantity: int) -> str:
        return f"{to_mebibytes(quantity)}Mi"

    def available(self, allocatable: int, quantity: int) -> str:
        return f"{to_mebibytes(allocatable) - to_mebibytes(quantity)}Mi"


class CountFormat:
    """Countable resources are shown as bare integers."""

    def value(self, quantity: int) -> str:
        return str(quantity)

    def available(self, allocatable: int, quantity: int) -> str:
        return str(allocatable - quantity)


_FORMATS = {
    ResourceType.CPU: CpuFormat(),
    ResourceType.MEMORY: MemoryFormat(),
    ResourceType.THIRD: CountFormat(),
}


# =============================================================================
# ResourceMetric / PodCount
# =============================================================================
@dataclass
class ResourceMetric:
    resource_type: ResourceType
    allocatable: int = 0
    request: int = 0
    limit: int = 0
    utilization: int = 0
    formatter: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self.resource_type = ResourceType(self.resource_type)
        self.formatter = _FORMATS[self.resource_type]

    def add(self, other: "ResourceMetric") -> None:
        self.allocatable += other.allocatable
        self.request += other.request
        self.limit += other.limit
        self.utilization += other.utilization

    def percent(self, quantity: int) -> int:
        return percent_raw(quantity, self.allocatable)

    def request_percent(self) -> int:
        return self.percent(self.request)

    def limit_percent(self) -> int:
        return self.percent(self.limit)

    def utilization_percent(self) -> int:
        return self.percent(self.utilization)

    def value_string(self, quantity: int) -> str:
        return self.formatter.value(quantity)

    def available_string(self, quantity: int) -> str:
        return self.formatter.available(self.allocatable, quantity)

    def percent_string(self, quantity: int) -> str:
        return f"{self.percent(quantity)}%"

    def resource_string(self, quantity: int, available_format: bool = False,
                        pod_summary: bool = False) -> str:
        """Display form of ``quantity``: ``"250m (6%)"`` or ``"3750m/4000m"``."""
        if pod_summary and self.allocatable == 0:
            return self.value_string(quantity)
        if available_format:
            return f"{self.available_string(quantity)}/{self.value_string(self.allocatable)}"
        return f"{self.value_string(quantity)} ({self.percent_string(quantity)})"

    def request_string(self, available_format: bool = False) -> str:
        return self.resource_string(self.request, available_format)


@dataclass
class PodCount:
    current: int = 0
    allocatable: int = 0

    def percent(self) -> int:
        return percent_raw(self.current, self.allocatable)

    def __str__(self) -> str:
        return f"{self.current}/{self.allocatable} ({self.percent()}%)"


# =============================================================================
# Tree scopes
# =============================================================================
@dataclass
class NodeAnalysis:
    """Per-class node tally filled in by the bin-pack analyzer."""
    well_utilized: int = 0
    underutilized: int = 0
    unbalanced: int = 0

    def record(self, classification: NodeClassification) -> None:
        if classification is NodeClassification.UNDERUTILIZED:
            self.underutilized += 1
        elif classification is NodeClassification.UNBALANCED:
            self.unbalanced += 1
        else:
            self.well_utilized += 1

    def total(self) -> int:
        return self.well_utilized + self.underutilized + self.unbalanced

    def as_dict(self) -> Dict[str, int]:
        return {
            'wellUtilized': self.well_utilized,
            'underutilized': self.underutilized,
            'unbalanced': self.unbalanced,
        }


@dataclass
class SubunitMetric:
    name: str
    cpu: ResourceMetric
    memory: ResourceMetric
    third: ResourceMetric


@dataclass
class WorkloadMetric:
    name: str
    namespace: str
    node: str
    cpu: ResourceMetric
    memory: ResourceMetric
    third: ResourceMetric
    labels: Dict[str, str] = field(default_factory=dict)
    subunits: Dict[str, SubunitMetric] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return workload_key(self.namespace, self.name)


@dataclass
class NodeMetric:
    name: str
    cpu: ResourceMetric
    memory: ResourceMetric
    third: ResourceMetric
    pod_count: PodCount = field(default_factory=PodCount)
    labels: Dict[str, str] = field(default_factory=dict)
    workloads: Dict[str, WorkloadMetric] = field(default_factory=dict)
    analysis: NodeAnalysis = field(default_factory=NodeAnalysis)
    classification: Optional[NodeClassification] = None

    def add_workload_utilization(self) -> None:
        """Node utilization as the sum of its workloads' utilization."""
        for wm in self.workloads.values():
            self.cpu.utilization += wm.cpu.utilization
            self.memory.utilization += wm.memory.utilization
            self.third.utilization += wm.third.utilization


@dataclass
class WorkloadFamily:
    """Workloads sharing the first matching app-name label."""
    key: str
    value: str
    unlabeled: bool = False
    items: List[Dict[str, Any]] = field(default_factory=list)
    cpu: ResourceMetric = field(default_factory=lambda: ResourceMetric(ResourceType.CPU))
    memory: ResourceMetric = field(default_factory=lambda: ResourceMetric(ResourceType.MEMORY))
    third: ResourceMetric = field(default_factory=lambda: ResourceMetric(ResourceType.THIRD))

    @property
    def pod_count(self) -> int:
        return len(self.items)


@dataclass
class ClusterMetric:
    cpu: ResourceMetric = field(default_factory=lambda: ResourceMetric(ResourceType.CPU))
    memory: ResourceMetric = field(default_factory=lambda: ResourceMetric(ResourceType.MEMORY))
    third: ResourceMetric = field(default_factory=lambda: ResourceMetric(ResourceType.THIRD))
    pod_count: PodCount = field(default_factory=PodCount)
    nodes: Dict[str, NodeMetric] = field(default_factory=dict)
    workloads: Dict[str, WorkloadMetric] = field(default_factory=dict)
    raw_pods: List[Dict[str, Any]] = field(default_factory=list)
    family_labels: List[str] = field(default_factory=list)
    families: List[WorkloadFamily] = field(default_factory=list)
    analysis: NodeAnalysis = field(default_factory=NodeAnalysis)
    third_resource_name: str = ENI

    def add_node_metric(self, nm: NodeMetric) -> None:
        self.cpu.add(nm.cpu)
        self.memory.add(nm.memory)
        self.third.add(nm.third)


def workload_key(namespace: str, name: str) -> str:
    return f"{namespace}/{name}"
