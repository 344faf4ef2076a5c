"""
Defect and usable-quantity rollups per production stage.

All functions are pure and total: they accept activity models or plain
dict rows, treat missing/non-finite quantities as zero, and never raise
(except the explicit assert_* helper).
"""

from typing import Any, Iterable, Optional, Sequence
import structlog

from models.activity import (
    ActivityKind,
    AssemblyActivity,
    AssemblyStage,
    DefectBucket,
    DefectDisposition,
    StageDefectSummary,
)
from exceptions import DefectBreakdownError
from utils.breakdown_utils import add_into, coerce_breakdown
from utils.number_utils import to_float

logger = structlog.get_logger(__name__)

GOOD_KINDS = (ActivityKind.NORMAL.value, ActivityKind.REWORK.value)


def _stage_key(stage: Any) -> Optional[str]:
    if stage is None:
        return None
    if hasattr(stage, "value"):
        stage = stage.value
    return str(stage).strip().lower()


def _for_stage(activities: Iterable[Any], stage: Any) -> list[AssemblyActivity]:
    key = _stage_key(stage)
    acts = (AssemblyActivity.coerce(a) for a in (activities or []))
    return [a for a in acts if a.stage == key]


def _is_removed(activity: AssemblyActivity) -> bool:
    """Defect that took units out of the good pool (any disposition but none)."""
    return (
        activity.kind == ActivityKind.DEFECT.value
        and activity.defect_disposition != DefectDisposition.NONE.value
    )


def compute_usable_for_stage(activities: Iterable[Any], stage: Any) -> float:
    """
    Good units at a stage net of removed defects.

    Sums normal and rework quantities, then subtracts defects whose
    disposition is anything other than `none`. The result is not clamped:
    a negative value means more units were removed than recorded.
    """
    stage_acts = _for_stage(activities, stage)
    total_good = sum(
        (a.quantity for a in stage_acts if a.kind in GOOD_KINDS), 0.0
    )
    removed = sum((a.quantity for a in stage_acts if _is_removed(a)), 0.0)
    return total_good - removed


def compute_attempts_for_stage(activities: Iterable[Any], stage: Any) -> float:
    """Total quantity logged at a stage, whatever the kind."""
    return sum((a.quantity for a in _for_stage(activities, stage)), 0.0)


def group_defects_by_reason_and_disposition(
    activities: Iterable[Any],
    stage: Any,
) -> list[DefectBucket]:
    """
    Sum defect quantities per (reason, disposition).

    Only defect activities with a disposition contribute. Buckets come
    back in the order their key was first seen.
    """
    buckets: dict[str, DefectBucket] = {}
    for act in _for_stage(activities, stage):
        if act.kind != ActivityKind.DEFECT.value or act.defect_disposition is None:
            continue
        reason_key = "null" if act.defect_reason_id is None else str(act.defect_reason_id)
        disposition = act.defect_disposition or DefectDisposition.NONE.value
        key = f"{reason_key}::{disposition}"
        bucket = buckets.get(key)
        if bucket is None:
            bucket = DefectBucket(
                reason_id=act.defect_reason_id,
                disposition=disposition,
                quantity=0.0,
            )
            buckets[key] = bucket
        bucket.quantity += act.quantity
    return list(buckets.values())


def summarize_stage_defects(activities: Iterable[Any], stage: Any) -> StageDefectSummary:
    """Usable, attempts and defect buckets for one stage in one payload."""
    acts = [AssemblyActivity.coerce(a) for a in (activities or [])]
    buckets = group_defects_by_reason_and_disposition(acts, stage)
    return StageDefectSummary(
        stage=_stage_key(stage) or "",
        usable=compute_usable_for_stage(acts, stage),
        attempts=compute_attempts_for_stage(acts, stage),
        defect_total=sum((b.quantity for b in buckets), 0.0),
        buckets=buckets,
    )


# ===================
# DEFECT BREAKDOWN VALIDATION
# ===================

_VALIDATED_STAGES = {
    AssemblyStage.CUT.value: "Cut",
    AssemblyStage.SEW.value: "Sew",
    AssemblyStage.FINISH.value: "Finish",
}


def compute_available_for_defects(
    activities: Iterable[Any],
    exclude_activity_id: Optional[int] = None,
) -> dict[str, list[float]]:
    """
    Units still sitting at each stage, per size.

    available cut    = cut - cut defects - sew
    available sew    = sew - sew defects - finish
    available finish = finish - finish defects - pack

    Returns:
        Dict keyed by stage (cut, sew, finish); values may be negative
    """
    good: dict[str, list[float]] = {s: [] for s in ("cut", "sew", "finish", "pack")}
    defects: dict[str, list[float]] = {s: [] for s in ("cut", "sew", "finish")}

    for raw in activities or []:
        act = AssemblyActivity.coerce(raw)
        if exclude_activity_id is not None and act.id == exclude_activity_id:
            continue
        if act.stage not in good:
            continue
        arr = coerce_breakdown(act.qty_breakdown, act.quantity)
        if act.kind == ActivityKind.DEFECT.value and act.stage in defects:
            add_into(defects[act.stage], arr)
        else:
            add_into(good[act.stage], arr)

    length = max(len(v) for v in [*good.values(), *defects.values()])

    def at(arr: list[float], i: int) -> float:
        return arr[i] if i < len(arr) else 0.0

    return {
        "cut": [at(good["cut"], i) - at(defects["cut"], i) - at(good["sew"], i) for i in range(length)],
        "sew": [at(good["sew"], i) - at(defects["sew"], i) - at(good["finish"], i) for i in range(length)],
        "finish": [at(good["finish"], i) - at(defects["finish"], i) - at(good["pack"], i) for i in range(length)],
    }


def validate_defect_breakdown(
    activities: Iterable[Any],
    stage: Any,
    breakdown: Sequence[Any],
    exclude_activity_id: Optional[int] = None,
) -> list[str]:
    """
    Check a proposed per-size defect quantity against what is available.

    Args:
        activities: All activities of the assembly
        stage: Stage the defect is logged at (only cut, sew and finish are checked)
        breakdown: Proposed defect quantity per size
        exclude_activity_id: Activity being edited, left out of the totals

    Returns:
        One message per offending size; empty when the breakdown fits
    """
    key = _stage_key(stage)
    if not breakdown or key not in _VALIDATED_STAGES:
        return []

    available = compute_available_for_defects(activities, exclude_activity_id)[key]
    label = _VALIDATED_STAGES[key]
    errors = []
    for idx, raw_value in enumerate(breakdown):
        cap = max(0.0, available[idx] if idx < len(available) else 0.0)
        if to_float(raw_value) > cap:
            errors.append(
                f"{label} defect at variant {idx + 1} exceeds available "
                f"{label.lower()} ({cap:g})"
            )
    return errors


def assert_valid_defect_breakdown(
    activities: Iterable[Any],
    stage: Any,
    breakdown: Sequence[Any],
    exclude_activity_id: Optional[int] = None,
) -> None:
    """
    Raise when a proposed defect breakdown exceeds availability.

    Raises:
        DefectBreakdownError: With one message per offending size
    """
    errors = validate_defect_breakdown(activities, stage, breakdown, exclude_activity_id)
    if errors:
        logger.warning("defect_breakdown_rejected", stage=_stage_key(stage), errors=errors)
        raise DefectBreakdownError(_stage_key(stage) or "", errors)
