MEBIBYTE = 1024 * 1024

# Whole-percentage bounds used by the headroom helpers.
PERCENT_MIN = 0
PERCENT_MAX = 100


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division that truncates toward zero (19.9 -> 19, -19.9 -> -19)."""
    if denominator == 0:
        raise ZeroDivisionError("denominator must not be zero")
    q = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -q
    return q


def percent_raw(numerator: int, denominator: int) -> int:
    """Truncated ``100 * numerator / denominator``.

    A zero or negative denominator reports 0 instead of failing.
    """
    if denominator <= 0:
        return 0
    return trunc_div(100 * numerator, denominator)


def to_mebibytes(quantity_bytes: int) -> int:
    """Whole mebibytes, a partial mebibyte rounds up (1Mi + 1 byte -> 2)."""
    value = trunc_div(quantity_bytes, MEBIBYTE)
    if quantity_bytes % MEBIBYTE != 0 and quantity_bytes > 0:
        value += 1
    return value


def whole_units(milli_value: int) -> int:
    """Milli-units to whole units, rounding a fraction up (1500m -> 2)."""
    value = trunc_div(milli_value, 1000)
    if milli_value % 1000 != 0 and milli_value > 0:
        value += 1
    return value


def memory_to_cpu_ratio(memory_bytes: int, cpu_milli: int) -> int:
    """MiB of memory per whole CPU core; 0 when there is no CPU."""
    if cpu_milli == 0:
        return 0
    cores = whole_units(cpu_milli)
    if cores == 0:
        return 0
    return trunc_div(to_mebibytes(memory_bytes), cores)


def max_of_three(a: int, b: int, c: int) -> int:
    return max(a, b, c)


def headroom(percent: int) -> int:
    """Unused share of a dimension, clamped to [0, 100]."""
    if percent > PERCENT_MAX:
        return PERCENT_MIN
    if percent < PERCENT_MIN:
        return PERCENT_MAX
    return PERCENT_MAX - percent


def waste(percent: int, overall_headroom: int) -> int:
    """Extra headroom on one dimension relative to the binding one.

    Signed: negative when the dimension has less headroom than the overall.
    """
    return headroom(percent) - overall_headroom
