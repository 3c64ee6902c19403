import os
import logging
import sys
from typing import List


# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


def setup_logging():
    """Configure application-wide logging"""
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


# =============================================================================
# Snapshot Inputs
# =============================================================================
# Directory holding `kubectl get ... -o json|yaml` dumps of the cluster
SNAPSHOT_DIR: str = os.getenv("SNAPSHOT_DIR", "snapshot")
NODES_FILE: str = os.getenv("NODES_FILE", "nodes.json")
PODS_FILE: str = os.getenv("PODS_FILE", "pods.json")
# Optional metrics.k8s.io dumps; a missing file means "no live samples"
NODE_METRICS_FILE: str = os.getenv("NODE_METRICS_FILE", "node-metrics.json")
POD_METRICS_FILE: str = os.getenv("POD_METRICS_FILE", "pod-metrics.json")

# Namespace restriction. Whole-node samples are ignored when either is set.
NAMESPACE: str = os.getenv("NAMESPACE", "")
NAMESPACE_ALLOW: str = os.getenv("NAMESPACE_ALLOW", "")

# Resource tracked as the third resource next to CPU and memory
THIRD_RESOURCE_NAME: str = os.getenv("THIRD_RESOURCE_NAME", "vpc.amazonaws.com/pod-eni")


def get_snapshot_path(file_name: str) -> str:
    return os.path.join(SNAPSHOT_DIR, file_name)


# =============================================================================
# Report Configuration
# =============================================================================
OUTPUT_DIR: str = os.getenv("OUTPUT_DIR", "output")
OUTPUT_FORMAT: str = os.getenv("OUTPUT_FORMAT", "json").lower()
REPORT_NAME: str = os.getenv("REPORT_NAME", "capacity")
SORT_BY: str = os.getenv("SORT_BY", "name")

GROUP_BY_NODE_LABELS: str = os.getenv("GROUP_BY_NODE_LABELS", "")
DISPLAY_NODE_LABELS: str = os.getenv("DISPLAY_NODE_LABELS", "")
SHOW_ALL_NODE_LABELS: bool = _env_bool("SHOW_ALL_NODE_LABELS", False)
# Ordered candidate labels naming a pod's application (empty -> defaults)
SELECT_POD_LABELS: str = os.getenv("SELECT_POD_LABELS", "")

SHOW_PODS: bool = _env_bool("SHOW_PODS", False)
SHOW_CONTAINERS: bool = _env_bool("SHOW_CONTAINERS", False)
SHOW_UTIL: bool = _env_bool("SHOW_UTIL", False)
SHOW_POD_COUNT: bool = _env_bool("SHOW_POD_COUNT", False)
SHOW_POD_FAMILIES: bool = _env_bool("SHOW_POD_FAMILIES", False)
BINPACK_ANALYSIS: bool = _env_bool("BINPACK_ANALYSIS", False)
AVAILABLE_FORMAT: bool = _env_bool("AVAILABLE_FORMAT", False)

SUPPORTED_OUTPUT_FORMATS = ("json", "yaml")


def get_report_output_path() -> str:
    """Report path: {OUTPUT_DIR}/{REPORT_NAME}_report.{json|yaml}"""
    return os.path.join(OUTPUT_DIR, f"{REPORT_NAME}_report.{OUTPUT_FORMAT}")


def namespace_filtered() -> bool:
    return bool(NAMESPACE or NAMESPACE_ALLOW)


def get_display_options():
    """DisplayOptions built from the environment"""
    from report.columns import DisplayOptions
    return DisplayOptions(
        show_pods=SHOW_PODS,
        show_containers=SHOW_CONTAINERS,
        show_util=SHOW_UTIL,
        show_pod_count=SHOW_POD_COUNT,
        show_namespace=not NAMESPACE,
        show_pod_families=SHOW_POD_FAMILIES,
        binpack_analysis=BINPACK_ANALYSIS,
        available_format=AVAILABLE_FORMAT,
        sort_by=SORT_BY,
        group_by_labels=GROUP_BY_NODE_LABELS,
        display_labels=DISPLAY_NODE_LABELS,
        show_all_labels=SHOW_ALL_NODE_LABELS,
    )


__all__ = [
    "LOG_LEVEL",
    "LOG_FORMAT",
    "setup_logging",
    "SNAPSHOT_DIR",
    "NODES_FILE",
    "PODS_FILE",
    "NODE_METRICS_FILE",
    "POD_METRICS_FILE",
    "NAMESPACE",
    "NAMESPACE_ALLOW",
    "THIRD_RESOURCE_NAME",
    "get_snapshot_path",
    "OUTPUT_DIR",
    "OUTPUT_FORMAT",
    "REPORT_NAME",
    "SORT_BY",
    "GROUP_BY_NODE_LABELS",
    "DISPLAY_NODE_LABELS",
    "SHOW_ALL_NODE_LABELS",
    "SELECT_POD_LABELS",
    "SHOW_PODS",
    "SHOW_CONTAINERS",
    "SHOW_UTIL",
    "SHOW_POD_COUNT",
    "SHOW_POD_FAMILIES",
    "BINPACK_ANALYSIS",
    "AVAILABLE_FORMAT",
    "get_report_output_path",
    "namespace_filtered",
    "get_display_options",
    "validate_config",
]


# =============================================================================
# Configuration Validation
# =============================================================================
class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


def _validate_choice(name: str, value: str, choices) -> None:
    if value not in choices:
        raise ConfigValidationError(
            f"{name} must be one of {list(choices)}, got '{value}'"
        )


def _validate_non_empty(name: str, value: str) -> None:
    if not value or not value.strip():
        raise ConfigValidationError(f"{name} must not be empty")


def validate_config() -> None:
    """Validate all configuration values on startup

    Raises:
        ConfigValidationError: If any configuration value is invalid
    """
    from analysis.sorting import SUPPORTED_SORT_ATTRIBUTES

    errors: List[str] = []

    try:
        _validate_choice("OUTPUT_FORMAT", OUTPUT_FORMAT, SUPPORTED_OUTPUT_FORMATS)
    except ConfigValidationError as e:
        errors.append(str(e))

    try:
        _validate_choice("SORT_BY", SORT_BY, SUPPORTED_SORT_ATTRIBUTES)
    except ConfigValidationError as e:
        errors.append(str(e))

    for name, value in (("NODES_FILE", NODES_FILE), ("PODS_FILE", PODS_FILE),
                        ("REPORT_NAME", REPORT_NAME), ("THIRD_RESOURCE_NAME", THIRD_RESOURCE_NAME)):
        try:
            _validate_non_empty(name, value)
        except ConfigValidationError as e:
            errors.append(str(e))

    if NAMESPACE and NAMESPACE_ALLOW:
        errors.append("NAMESPACE and NAMESPACE_ALLOW are mutually exclusive")

    if errors:
        raise ConfigValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )
