"""Structured (JSON / YAML) view of the cluster metrics tree."""
import json
import logging
from typing import Any, Dict, List, Optional

import yaml

from analysis.binpack import get_bin_analysis
from analysis.labels import LabelSelection, resolve_node_labels, unique_pod_labels
from analysis.sorting import sorted_nodes, sorted_subunits, sorted_workloads
from capacity.resources import (
    ENI, ClusterMetric, NodeMetric, ResourceMetric, WorkloadFamily, WorkloadMetric,
)
from report.columns import DisplayOptions, build_columns, headers

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("json", "yaml")


def _resource_block(rm: ResourceMetric, options: DisplayOptions) -> Dict[str, str]:
    out = {
        'requests': rm.value_string(rm.request),
        'requestsPercent': f"{rm.request_percent()}%",
        'limits': rm.value_string(rm.limit),
        'limitsPercent': f"{rm.limit_percent()}%",
    }
    if options.show_util:
        out['utilization'] = rm.value_string(rm.utilization)
        out['utilizationPercent'] = f"{rm.utilization_percent()}%"
    if options.available_format:
        out['available'] = rm.request_string(available_format=True)
    return out


def _node_labels(nm: NodeMetric, selection: LabelSelection) -> Dict[str, str]:
    return {label: nm.labels.get(label, '') for label in selection.all_labels()}


def third_resource_label(resource_name: str) -> str:
    """Short column title for the third resource (``vpc.amazonaws.com/pod-eni`` -> ``ENI``)."""
    if resource_name == ENI:
        return 'ENI'
    return resource_name.rsplit('/', 1)[-1].upper()


def _pod_entry(wm: WorkloadMetric, options: DisplayOptions) -> Dict[str, Any]:
    pod: Dict[str, Any] = {
        'name': wm.name,
        'namespace': wm.namespace,
        'cpu': _resource_block(wm.cpu, options),
        'memory': _resource_block(wm.memory, options),
        'thirdResource': _resource_block(wm.third, options),
    }
    if options.binpack_analysis:
        pod['binpackAnalysis'] = get_bin_analysis(wm).as_dict()
    if options.show_containers:
        pod['containers'] = [
            {
                'name': sc.name,
                'cpu': _resource_block(sc.cpu, options),
                'memory': _resource_block(sc.memory, options),
                'thirdResource': _resource_block(sc.third, options),
            }
            for sc in sorted_subunits(wm, options.sort_by)
        ]
    return pod


def _summary_block(rm: ResourceMetric, options: DisplayOptions) -> Dict[str, str]:
    # families span nodes, so there is no allocatable to take a percentage of
    out = {
        'requests': rm.resource_string(rm.request, pod_summary=True),
        'limits': rm.resource_string(rm.limit, pod_summary=True),
    }
    if options.show_util:
        out['utilization'] = rm.resource_string(rm.utilization, pod_summary=True)
    return out


def _family_entry(family: WorkloadFamily, options: DisplayOptions) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        'label': family.key,
        'value': family.value,
        'podCount': family.pod_count,
        'cpu': _summary_block(family.cpu, options),
        'memory': _summary_block(family.memory, options),
        'thirdResource': _summary_block(family.third, options),
    }
    if family.unlabeled:
        entry['label'] = None
        entry['value'] = None
    return entry


def build_report(cm: ClusterMetric, options: Optional[DisplayOptions] = None) -> Dict[str, Any]:
    """Nested dict of cluster totals, sorted nodes and (optionally) pods.

    Raises:
        LabelSelectionError: If the group-by or display labels are unknown
    """
    options = options or DisplayOptions()
    selection = resolve_node_labels(
        cm, options.group_by_labels, options.display_labels, options.show_all_labels
    )

    totals: Dict[str, Any] = {
        'cpu': _resource_block(cm.cpu, options),
        'memory': _resource_block(cm.memory, options),
        'thirdResource': _resource_block(cm.third, options),
    }
    if options.show_pod_count:
        totals['podCount'] = str(cm.pod_count)
    if options.binpack_analysis:
        totals['binpackAnalysis'] = get_bin_analysis(cm).as_dict()
        totals['nodeClassification'] = cm.analysis.as_dict()

    nodes: List[Dict[str, Any]] = []
    for nm in sorted_nodes(cm, selection.group_by, options.sort_by):
        node: Dict[str, Any] = {
            'name': nm.name,
            'cpu': _resource_block(nm.cpu, options),
            'memory': _resource_block(nm.memory, options),
            'thirdResource': _resource_block(nm.third, options),
            'nodeLabels': _node_labels(nm, selection),
        }
        if options.show_pod_count:
            node['podCount'] = str(nm.pod_count)
        if options.binpack_analysis:
            node['binpackAnalysis'] = get_bin_analysis(nm).as_dict()
            if nm.classification is not None:
                node['classification'] = nm.classification.value
        if options.show_pods:
            node['pods'] = [_pod_entry(wm, options) for wm in sorted_workloads(nm, options.sort_by)]
        nodes.append(node)

    columns = build_columns(options, selection, third_resource_label(cm.third_resource_name))
    report: Dict[str, Any] = {
        'columns': headers(columns),
        'nodes': nodes,
        'clusterTotals': totals,
    }
    if options.show_pod_families:
        report['podFamilies'] = {
            'selectorLabels': list(cm.family_labels),
            'observedPodLabels': unique_pod_labels(cm),
            'families': [_family_entry(f, options) for f in cm.families],
        }
    return report


def dump_report(report: Dict[str, Any], output_format: str = "json") -> str:
    if output_format == "json":
        return json.dumps(report, indent=2)
    if output_format == "yaml":
        return yaml.safe_dump(report, sort_keys=False, default_flow_style=False)
    raise ValueError(f"unsupported output format '{output_format}', expected one of {SUPPORTED_FORMATS}")
