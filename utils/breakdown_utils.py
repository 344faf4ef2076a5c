"""
Per-size breakdown arithmetic.

A breakdown is a list of quantities, one per size/variant. Lists of
different lengths are combined element-wise, treating missing positions
as zero.
"""

from typing import Any, Iterable, Optional, Sequence

from utils.number_utils import to_float


def _at(arr: Optional[Sequence[Any]], index: int) -> float:
    if not arr or index >= len(arr):
        return 0.0
    return to_float(arr[index])


def coerce_breakdown(
    source: Optional[Sequence[Any]],
    fallback_qty: Any = None,
    allow_fallback_qty: bool = True,
) -> list[float]:
    """
    Turn a stored breakdown into a clean list of floats.

    An empty or missing breakdown falls back to a single-size list holding
    `fallback_qty` when that is a positive number.
    """
    if isinstance(source, (list, tuple)) and len(source):
        return [to_float(n) for n in source]
    fallback = to_float(fallback_qty)
    if allow_fallback_qty and fallback > 0:
        return [fallback]
    return []


def normalize_breakdown_length(source: Optional[Sequence[Any]], length: int) -> list[float]:
    """Pad or truncate to `length` entries."""
    return [_at(source, i) for i in range(length)]


def sum_array(arr: Optional[Iterable[Any]]) -> float:
    return sum((to_float(v) for v in (arr or [])), 0.0)


def add_into(target: list[float], source: Sequence[Any], sign: int = 1) -> list[float]:
    """Add `source` into `target` in place, growing it as needed."""
    length = max(len(target), len(source))
    for i in range(length):
        value = _at(target, i) + sign * _at(source, i)
        if i < len(target):
            target[i] = value
        else:
            target.append(value)
    return target


def add_arrays(a: Sequence[Any], b: Sequence[Any]) -> list[float]:
    length = max(len(a), len(b))
    return [_at(a, i) + _at(b, i) for i in range(length)]


def min_arrays(a: Sequence[Any], b: Sequence[Any]) -> list[float]:
    length = max(len(a), len(b))
    return [min(_at(a, i), _at(b, i)) for i in range(length)]


def max_arrays(a: Sequence[Any], b: Sequence[Any]) -> list[float]:
    length = max(len(a), len(b))
    return [max(_at(a, i), _at(b, i)) for i in range(length)]


def clamp_array(arr: Sequence[Any]) -> list[float]:
    """Floor every entry at zero."""
    return [max(0.0, to_float(n)) for n in arr]


def has_any(arr: Optional[Sequence[Any]]) -> bool:
    """True when at least one entry is positive."""
    return bool(arr) and any(to_float(n) > 0 for n in arr)


def compute_effective_ordered_breakdown(
    ordered_by_size: Optional[Sequence[Any]],
    canceled_by_size: Optional[Sequence[Any]],
) -> dict:
    """
    Ordered quantities net of cancellations, per size.

    Returns:
        Dict with padded `ordered` and `canceled` lists, the `effective`
        list (never negative) and its `total`.
    """
    ordered_raw = ordered_by_size if isinstance(ordered_by_size, (list, tuple)) else []
    canceled_raw = canceled_by_size if isinstance(canceled_by_size, (list, tuple)) else []
    length = max(len(ordered_raw), len(canceled_raw))
    ordered = normalize_breakdown_length(ordered_raw, length)
    canceled = normalize_breakdown_length(canceled_raw, length)
    effective = [
        max(0.0, ordered[i] - max(0.0, canceled[i]))
        for i in range(length)
    ]
    return {
        "ordered": ordered,
        "canceled": canceled,
        "effective": effective,
        "total": sum_array(effective),
    }


def merge_pack_breakdown(box_lines: Iterable[Any]) -> dict:
    """
    Sum packed quantities across box lines.

    Box lines may be dicts or objects with `qty_breakdown` and `quantity`.
    """
    breakdown: list[float] = []
    for line in box_lines or []:
        if isinstance(line, dict):
            qty_breakdown, quantity = line.get("qty_breakdown"), line.get("quantity")
        else:
            qty_breakdown = getattr(line, "qty_breakdown", None)
            quantity = getattr(line, "quantity", None)
        add_into(breakdown, coerce_breakdown(qty_breakdown, quantity))
    return {"breakdown": breakdown, "total": sum_array(breakdown)}
