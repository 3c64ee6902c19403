"""Orchestrator: run discovery -> build -> analyze -> report -> atomic write.
Reads a cluster snapshot from disk; nothing here talks to the cluster. All configuration from config.py.
"""
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict

import config
from analysis.binpack import analyze_cluster
from analysis.labels import LabelSelectionError
from capacity.builder import build_cluster_metric
from metrics import discovery as discovery_mod
from metrics.discovery import DiscoveryError
from report.listing import build_report, dump_report

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _atomic_write(path: str, data: str) -> None:
    dirp = os.path.dirname(path) or '.'
    fd, tmp = tempfile.mkstemp(prefix='.tmp_report_', dir=dirp)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(data)
        # Atomic replace
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


def run_once() -> Dict[str, Any]:
    """Build, analyze and render the report for the configured snapshot

    Raises:
        DiscoveryError: If the node or pod list cannot be loaded
        LabelSelectionError: If configured node labels do not exist
    """
    ns, ns_allow = config.NAMESPACE, config.NAMESPACE_ALLOW

    nodes = discovery_mod.discover_nodes(config.get_snapshot_path(config.NODES_FILE))
    pods = discovery_mod.discover_pods(config.get_snapshot_path(config.PODS_FILE), ns, ns_allow)
    pod_metrics = discovery_mod.discover_pod_metrics(
        config.get_snapshot_path(config.POD_METRICS_FILE), ns, ns_allow
    )
    node_metrics = discovery_mod.discover_node_metrics(
        config.get_snapshot_path(config.NODE_METRICS_FILE), ns, ns_allow
    )

    cm = build_cluster_metric(
        pods, pod_metrics, nodes, node_metrics,
        select_pod_labels=config.SELECT_POD_LABELS,
        third_resource=config.THIRD_RESOURCE_NAME,
    )
    analyze_cluster(cm)

    report = build_report(cm, config.get_display_options())
    report['generatedAt'] = _now_iso()
    return report


def main() -> int:
    # Setup logging first
    config.setup_logging()

    # Validate configuration
    try:
        config.validate_config()
        logger.info("Configuration validated successfully")
    except config.ConfigValidationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    os.makedirs(config.OUTPUT_DIR, exist_ok=True)
    output_path = config.get_report_output_path()

    logger.info(f"Starting capacity report from snapshot {config.SNAPSHOT_DIR}")
    try:
        report = run_once()
    except (DiscoveryError, LabelSelectionError) as e:
        logger.error(f"Capacity report failed: {e}")
        return 1

    _atomic_write(output_path, dump_report(report, config.OUTPUT_FORMAT))
    logger.info(f"Wrote capacity report to {output_path}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
