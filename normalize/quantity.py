"""Kubernetes quantity parsing.

Turns resource strings such as ``"250m"``, ``"1.5"``, ``"512Mi"`` or ``"1e3"``
into integers in the unit the metrics tree stores:

- CPU: milli-units ("1" -> 1000)
- memory: bytes ("1Ki" -> 1024)
- anything else (pods, ENIs, ...): plain count

Fractions round up, matching how the API server reports Value()/MilliValue().
"""
import logging
import math
from decimal import Decimal
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CPU = "cpu"
MEMORY = "memory"
PODS = "pods"

_BINARY_SUFFIXES = (
    ("Ki", 1024),
    ("Mi", 1024 ** 2),
    ("Gi", 1024 ** 3),
    ("Ti", 1024 ** 4),
    ("Pi", 1024 ** 5),
    ("Ei", 1024 ** 6),
)

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

# Kubernetes quantities are bounded by int64, larger values are rejected.
MAX_QUANTITY = Decimal(2 ** 63 - 1)


def parse_quantity(value: Any) -> Decimal:
    """Parse a quantity into base units. Unparsable input yields 0."""
    if value is None or value == "":
        return Decimal(0)
    if isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, (int, float)):
        text = str(value)
    else:
        text = str(value).strip()
    if not text:
        return Decimal(0)

    try:
        quantity = _parse_text(text)
    except (ArithmeticError, ValueError):
        logger.debug(f"Unparsable quantity {value!r}, treating as 0")
        return Decimal(0)

    if not quantity.is_finite() or quantity.copy_abs() > MAX_QUANTITY:
        logger.debug(f"Quantity {value!r} out of range, treating as 0")
        return Decimal(0)
    return quantity


def _parse_text(text: str) -> Decimal:
    for suffix, mult in _BINARY_SUFFIXES:
        if text.endswith(suffix):
            return Decimal(text[:-2]) * mult
    last = text[-1]
    if last in _DECIMAL_SUFFIXES and not text[:-1].lower().endswith("e"):
        return Decimal(text[:-1]) * _DECIMAL_SUFFIXES[last]
    # plain number, possibly with an exponent ("1e3", "12E2")
    return Decimal(text)


def to_milli(value: Any) -> int:
    """Quantity -> integer milli-units, rounding up."""
    return int(math.ceil(parse_quantity(value) * 1000))


def to_units(value: Any) -> int:
    """Quantity -> integer base units, rounding up."""
    return int(math.ceil(parse_quantity(value)))


def parse_resource(resource_name: str, value: Any) -> int:
    """Parse a quantity in the unit used for ``resource_name``.

    CPU is kept in milli-units, every other resource in whole units.
    """
    if resource_name == CPU:
        return to_milli(value)
    return to_units(value)


def resource_from_list(resources: Optional[Dict[str, Any]], resource_name: str) -> int:
    """Look up ``resource_name`` in a ResourceList-shaped dict and parse it."""
    if not isinstance(resources, dict):
        return 0
    return parse_resource(resource_name, resources.get(resource_name))
