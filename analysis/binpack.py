"""
Bin-pack analysis - headroom, waste and memory:CPU ratios per scope.

For cluster and node scope the request percentages of CPU, memory and pod
slots are compared:
- max: the binding dimension (highest request percentage)
- idle headroom: headroom(max), unused capacity left on the binding dimension
- waste(dim): headroom(dim) - idle headroom, capacity stranded on a
  non-binding dimension

Nodes are then classified with fixed thresholds:
- idle headroom > 20           -> underutilized
- CPU or memory waste > 20     -> unbalanced
- otherwise                    -> well-utilized
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

from capacity.resources import (
    ClusterMetric, NodeClassification, NodeMetric, PodCount, ResourceMetric,
    SubunitMetric, WorkloadMetric,
)
from normalize.math import headroom, max_of_three, memory_to_cpu_ratio, waste

logger = logging.getLogger(__name__)

UNDERUTILIZED_HEADROOM_THRESHOLD = 20
UNBALANCED_WASTE_THRESHOLD = 20

BIN_HEADERS = {
    'idle_headroom': 'IDLE HEADROOM %',
    'waste_cpu': 'IDLE WASTE CPU %',
    'waste_memory': 'IDLE WASTE MEM %',
    'waste_pods': 'IDLE WASTE PODS %',
    'request_ratio': 'CPU:MEM REQUESTS',
    'limit_ratio': 'CPU:MEM LIMITS',
    'utilization_ratio': 'CPU:MEM UTIL',
}


@dataclass
class AnalysisData:
    cpu_percent: int
    memory_percent: int
    pods_percent: int
    max_percent: int
    overall_headroom: int
    waste_cpu: int
    waste_memory: int
    waste_pods: int


@dataclass
class BinAnalysis:
    """Bin-pack record for one scope; None marks a field that does not apply."""
    idle_headroom: Optional[int] = None
    waste_cpu: Optional[int] = None
    waste_memory: Optional[int] = None
    waste_pods: Optional[int] = None
    request_ratio: Optional[int] = None
    limit_ratio: Optional[int] = None
    utilization_ratio: Optional[int] = None

    def as_strings(self) -> Dict[str, str]:
        out = {}
        for key in ('idle_headroom', 'waste_cpu', 'waste_memory', 'waste_pods'):
            value = getattr(self, key)
            out[key] = '' if value is None else f"{value}%"
        for key in ('request_ratio', 'limit_ratio', 'utilization_ratio'):
            value = getattr(self, key)
            out[key] = '' if value is None else str(value)
        return out

    def as_dict(self) -> Dict[str, str]:
        """camelCase keys for structured output, empty fields dropped."""
        names = {
            'idle_headroom': 'idleHeadroomPercentage',
            'waste_cpu': 'idleCpuWastePercentage',
            'waste_memory': 'idleMemoryWastePercentage',
            'waste_pods': 'idlePodCountWastePercentage',
            'request_ratio': 'requestMemoryToCpuCoreRatio',
            'limit_ratio': 'limitMemoryToCpuCoreRatio',
            'utilization_ratio': 'utilizationMemoryToCpuCoreRatio',
        }
        return {names[k]: v for k, v in self.as_strings().items() if v != ''}


def analysis_data(cpu: ResourceMetric, memory: ResourceMetric, pod_count: PodCount) -> AnalysisData:
    cpu_pct = cpu.request_percent()
    mem_pct = memory.request_percent()
    pods_pct = pod_count.percent()

    max_pct = max_of_three(cpu_pct, mem_pct, pods_pct)
    overall = headroom(max_pct)

    return AnalysisData(
        cpu_percent=cpu_pct,
        memory_percent=mem_pct,
        pods_percent=pods_pct,
        max_percent=max_pct,
        overall_headroom=overall,
        waste_cpu=waste(cpu_pct, overall),
        waste_memory=waste(mem_pct, overall),
        waste_pods=waste(pods_pct, overall),
    )


def _ratios(cpu: ResourceMetric, memory: ResourceMetric) -> Dict[str, int]:
    return {
        'request_ratio': memory_to_cpu_ratio(memory.request, cpu.request),
        'limit_ratio': memory_to_cpu_ratio(memory.limit, cpu.limit),
        'utilization_ratio': memory_to_cpu_ratio(memory.utilization, cpu.utilization),
    }


def get_bin_analysis(scope: Union[ClusterMetric, NodeMetric, WorkloadMetric, SubunitMetric]) -> BinAnalysis:
    """Bin-pack record for a cluster, node, pod or container scope.

    Headroom and waste only apply where pod slots exist (cluster, node);
    pods get the memory:CPU ratios only; containers get an empty record.
    """
    if isinstance(scope, SubunitMetric):
        return BinAnalysis()
    if isinstance(scope, WorkloadMetric):
        return BinAnalysis(**_ratios(scope.cpu, scope.memory))

    data = analysis_data(scope.cpu, scope.memory, scope.pod_count)
    return BinAnalysis(
        idle_headroom=data.overall_headroom,
        waste_cpu=data.waste_cpu,
        waste_memory=data.waste_memory,
        waste_pods=data.waste_pods,
        **_ratios(scope.cpu, scope.memory),
    )


def classify_node(nm: NodeMetric) -> NodeClassification:
    data = analysis_data(nm.cpu, nm.memory, nm.pod_count)
    if data.overall_headroom > UNDERUTILIZED_HEADROOM_THRESHOLD:
        return NodeClassification.UNDERUTILIZED
    if data.waste_cpu > UNBALANCED_WASTE_THRESHOLD or data.waste_memory > UNBALANCED_WASTE_THRESHOLD:
        return NodeClassification.UNBALANCED
    return NodeClassification.WELL_UTILIZED


def analyze_cluster(cm: ClusterMetric) -> ClusterMetric:
    """Classify every node and tally the classes at node and cluster scope."""
    cm.analysis.well_utilized = 0
    cm.analysis.underutilized = 0
    cm.analysis.unbalanced = 0

    for nm in cm.nodes.values():
        nm.analysis.well_utilized = 0
        nm.analysis.underutilized = 0
        nm.analysis.unbalanced = 0

        nm.classification = classify_node(nm)
        nm.analysis.record(nm.classification)
        cm.analysis.record(nm.classification)
        logger.debug(f"Node {nm.name} classified as {nm.classification.value}")

    logger.info(
        f"Node classification: {cm.analysis.well_utilized} well-utilized, "
        f"{cm.analysis.underutilized} underutilized, {cm.analysis.unbalanced} unbalanced"
    )
    return cm
