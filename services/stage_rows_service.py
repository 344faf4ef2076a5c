"""
Stage aggregation and stage row building.

Turns an assembly's activities into per-stage quantities (ordered, cut,
sew, outsourced steps, finish, pack, qc) and the rows the assembly view
renders. Everything here is pure; loading happens in AssemblyService.

Usable quantities cascade down the flow: sew can never exceed usable cut,
finish never exceeds usable sew, pack never exceeds usable finish.
"""

from typing import Any, Iterable, Mapping, Optional, Sequence
import structlog

from models.activity import (
    ActivityAction,
    ActivityKind,
    AssemblyActivity,
    AssemblyStage,
    STAGE_ALIASES,
    TRACKED_STAGES,
)
from models.external_step import STATUS_LABELS, DerivedExternalStep
from models.stage_rows import (
    BreakdownTotal,
    ExternalAggregate,
    ExternalStageRow,
    ExternalTotals,
    InternalStageRow,
    SewGate,
    StageAggregation,
    StageRowsResult,
    StageStats,
)
from utils.breakdown_utils import (
    add_into,
    coerce_breakdown,
    compute_effective_ordered_breakdown,
    has_any,
    max_arrays,
    min_arrays,
    sum_array,
)
from utils.number_utils import to_float
from utils.stage_gate_utils import (
    compute_downstream_used,
    compute_external_gate_from_steps,
    compute_finish_cap_breakdown,
    compute_reconcile_default,
    compute_reconcile_max,
)

logger = structlog.get_logger(__name__)

STAGE_KEYS = [s.value for s in TRACKED_STAGES]

# Activity name keywords used when the stage column is blank, checked in order
_NAME_KEYWORDS = (
    ("cut", "cut"),
    ("sew", "sew"),
    ("finish", "finish"),
    ("make", "finish"),
    ("pack", "pack"),
    ("qc", "qc"),
    ("cancel", "cancel"),
)

SEW_GATE_HINTS = {
    "external_received": "Implied from external received",
    "external_sent": "Implied from external sent",
    "finish": "Implied from finish",
    "fallback_cut": "Implied from cut usable",
}

_RECONCILED_ACTIONS = (ActivityAction.LOSS_RECONCILED.value, ActivityAction.ADJUSTMENT.value)


def normalize_activity_for_aggregation(raw: Any) -> AssemblyActivity:
    """
    Resolve the stage an activity counts toward.

    Blank stages are inferred from the activity name; legacy stage names
    map onto current ones (make -> finish, trim -> sew, embroidery -> finish).
    """
    act = AssemblyActivity.coerce(raw)
    stage = act.stage
    if not stage:
        name = (act.name or "").lower()
        stage = next(
            (target for keyword, target in _NAME_KEYWORDS if keyword in name),
            AssemblyStage.OTHER.value,
        )
    stage = STAGE_ALIASES.get(stage, stage)
    if stage == act.stage:
        return act
    return act.model_copy(update={"stage": stage})


def _breakdown_of(act: AssemblyActivity) -> list[float]:
    return coerce_breakdown(act.qty_breakdown, act.quantity)


def compute_stage_stats(
    acts: Sequence[AssemblyActivity],
    fallback_arr: Sequence[float],
    fallback_total: float,
    use_fallback_if_no_normal: bool = False,
) -> StageStats:
    """
    Good/defect/processed quantities for one stage.

    With no activities the stored fallback breakdown stands in for
    everything. Otherwise defects split into logged and reconciled.
    """
    if not acts:
        arr = list(fallback_arr)
        return StageStats(
            good_arr=arr,
            processed_arr=list(arr),
            usable_arr=list(arr),
            attempts_arr=list(arr),
            good_total=fallback_total,
            processed_total=fallback_total,
            usable_total=fallback_total,
            attempts_total=fallback_total,
        )

    good_arr: list[float] = []
    defect_arr: list[float] = []
    logged_defect_arr: list[float] = []
    reconciled_defect_arr: list[float] = []
    good_total = defect_total = logged_defect_total = reconciled_defect_total = 0.0

    for act in acts:
        qty = act.quantity
        breakdown = _breakdown_of(act)
        if act.kind == ActivityKind.DEFECT.value:
            defect_total += qty
            add_into(defect_arr, breakdown)
            if act.action in _RECONCILED_ACTIONS:
                reconciled_defect_total += qty
                add_into(reconciled_defect_arr, breakdown)
            if act.action == ActivityAction.DEFECT_LOGGED.value:
                logged_defect_total += qty
                add_into(logged_defect_arr, breakdown)
        else:
            good_total += qty
            add_into(good_arr, breakdown)

    # Pack defects logged without pack output: count packed boxes as good
    if use_fallback_if_no_normal and good_total == 0 and defect_total > 0 and fallback_arr:
        good_arr = list(fallback_arr)
        good_total = fallback_total

    length = max(
        len(good_arr), len(defect_arr), len(logged_defect_arr), len(reconciled_defect_arr)
    )
    processed_arr = []
    for i in range(length):
        good = good_arr[i] if i < len(good_arr) else 0.0
        bad = defect_arr[i] if i < len(defect_arr) else 0.0
        processed_arr.append(good + bad)
    usable_arr = [good_arr[i] if i < len(good_arr) else 0.0 for i in range(length)]
    processed_total = good_total + defect_total

    return StageStats(
        good_arr=good_arr,
        defect_arr=defect_arr,
        logged_defect_arr=logged_defect_arr,
        reconciled_defect_arr=reconciled_defect_arr,
        processed_arr=processed_arr,
        usable_arr=usable_arr,
        attempts_arr=list(processed_arr),
        good_total=good_total,
        defect_total=defect_total,
        logged_defect_total=logged_defect_total,
        reconciled_defect_total=reconciled_defect_total,
        processed_total=processed_total,
        usable_total=good_total,
        attempts_total=processed_total,
    )


def build_external_aggregates(activities: Iterable[AssemblyActivity]) -> dict[str, ExternalAggregate]:
    """
    Sum sent and received quantities per outsourced step type.

    net is what came back of what was sent; loss is what was sent and has
    not come back. A unit is never counted in both.
    """
    sums: dict[str, dict[str, list[float]]] = {}
    for act in activities:
        step_type = act.external_step_type
        if not step_type:
            continue
        if act.action not in (ActivityAction.SENT_OUT.value, ActivityAction.RECEIVED_IN.value):
            continue
        breakdown = _breakdown_of(act)
        if not breakdown:
            continue
        entry = sums.setdefault(step_type, {"sent": [], "received": []})
        if act.action == ActivityAction.SENT_OUT.value:
            add_into(entry["sent"], breakdown)
        else:
            add_into(entry["received"], breakdown)

    aggregates = {}
    for step_type, entry in sums.items():
        sent, received = entry["sent"], entry["received"]
        length = max(len(sent), len(received))
        net, loss = [], []
        for i in range(length):
            s = sent[i] if i < len(sent) else 0.0
            r = received[i] if i < len(received) else 0.0
            net.append(min(s, r))
            loss.append(max(s - r, 0.0))
        aggregates[step_type] = ExternalAggregate(
            sent=sent,
            received=received,
            net=net,
            loss=loss,
            sent_total=sum_array(sent),
            received_total=sum_array(received),
            net_total=sum_array(net),
            loss_total=sum_array(loss),
        )
    return aggregates


def aggregate_assembly_stages(
    assembly_id: int,
    activities: Iterable[Any],
    ordered_breakdown: Optional[Sequence[Any]] = None,
    fallback_breakdowns: Optional[Mapping[str, Optional[Sequence[Any]]]] = None,
    fallback_totals: Optional[Mapping[str, Any]] = None,
    pack_snapshot: Optional[Mapping[str, Any]] = None,
) -> StageAggregation:
    """
    Aggregate an assembly's activities into per-stage quantities.

    Args:
        assembly_id: Assembly id (carried through for payloads)
        activities: Activity models or dict rows
        ordered_breakdown: Ordered quantity per size
        fallback_breakdowns: Stored cut/sew/finish breakdowns for assemblies
                             that predate activity logging
        fallback_totals: Stored cut/sew/finish totals
        pack_snapshot: Packed `breakdown` and `total` from box lines

    Returns:
        StageAggregation with stage stats, display arrays and external aggregates
    """
    acts = [normalize_activity_for_aggregation(a) for a in (activities or [])]
    fallback_breakdowns = fallback_breakdowns or {}
    fallback_totals = fallback_totals or {}
    pack_snapshot = pack_snapshot or {"breakdown": [], "total": 0}

    ordered_raw = (
        coerce_breakdown(ordered_breakdown, 0, allow_fallback_qty=False)
        if isinstance(ordered_breakdown, (list, tuple))
        else []
    )
    canceled = []
    for act in acts:
        if act.stage == AssemblyStage.CANCEL.value:
            add_into(canceled, _breakdown_of(act))
    effective = compute_effective_ordered_breakdown(ordered_raw, canceled)

    by_stage = {key: [a for a in acts if a.stage == key] for key in STAGE_KEYS}

    def fallback(stage: str) -> list[float]:
        return coerce_breakdown(fallback_breakdowns.get(stage) or [], 0, allow_fallback_qty=False)

    fallback_cut, fallback_sew, fallback_finish = fallback("cut"), fallback("sew"), fallback("finish")
    fallback_pack = coerce_breakdown(pack_snapshot.get("breakdown"), pack_snapshot.get("total"))
    fallback_pack_total = max(to_float(pack_snapshot.get("total")), sum_array(fallback_pack))

    stats = {
        "cut": compute_stage_stats(by_stage["cut"], fallback_cut, to_float(fallback_totals.get("cut"))),
        "sew": compute_stage_stats(by_stage["sew"], fallback_sew, to_float(fallback_totals.get("sew"))),
        "finish": compute_stage_stats(
            by_stage["finish"], fallback_finish, to_float(fallback_totals.get("finish"))
        ),
        "pack": compute_stage_stats(
            by_stage["pack"], fallback_pack, fallback_pack_total, use_fallback_if_no_normal=True
        ),
        "qc": compute_stage_stats(by_stage["qc"], [], 0.0),
    }

    usable_cut = stats["cut"].usable_arr
    has_sew = stats["sew"].attempts_total > 0 or has_any(fallback_sew)
    has_finish = stats["finish"].attempts_total > 0 or has_any(fallback_finish)
    usable_sew = min_arrays(stats["sew"].usable_arr, usable_cut) if has_sew else stats["sew"].usable_arr
    sew_limit = usable_sew if has_sew else usable_cut
    usable_finish = (
        min_arrays(stats["finish"].usable_arr, sew_limit) if has_finish else stats["finish"].usable_arr
    )
    has_pack = stats["pack"].attempts_total > 0 or any(to_float(n) != 0 for n in fallback_pack)
    usable_pack = min_arrays(stats["pack"].usable_arr, usable_finish) if has_pack else usable_finish

    display_arrays = {
        "cut": min_arrays(usable_cut, usable_sew) if has_sew else list(usable_cut),
        "sew": min_arrays(usable_sew, usable_finish) if has_finish else list(usable_sew),
        "finish": list(usable_finish),
        "pack": usable_pack if has_pack else [0.0] * len(usable_finish),
        "qc": list(stats["qc"].usable_arr),
    }
    totals = {key: sum_array(arr) for key, arr in display_arrays.items()}

    aggregation = StageAggregation(
        assembly_id=assembly_id,
        ordered_raw=ordered_raw,
        canceled=canceled,
        ordered=effective["effective"],
        ordered_total=effective["total"],
        display_arrays=display_arrays,
        totals=totals,
        stage_stats=stats,
        external_aggregates=build_external_aggregates(acts),
    )
    logger.debug(
        "assembly_stages_aggregated",
        assembly_id=assembly_id,
        activities=len(acts),
        totals=totals,
    )
    return aggregation


def _aggregate_for(aggregation: StageAggregation, step_type: Any) -> ExternalAggregate:
    key = step_type.value if hasattr(step_type, "value") else str(step_type)
    return aggregation.external_aggregates.get(key) or ExternalAggregate()


def compute_sew_gate_breakdown(
    aggregation: StageAggregation,
    external_steps: Optional[Sequence[DerivedExternalStep]],
    allow_cut_fallback: bool = True,
) -> SewGate:
    """
    Sew row quantities, implied from the best available evidence.

    Priority: received back from outsourced steps, sent to them, recorded
    sew/finish processing, then usable cut (when allowed).
    """
    steps = list(external_steps or [])
    if steps:
        for field, source in (("received", "external_received"), ("sent", "external_sent")):
            gate: Optional[list[float]] = None
            for step in steps:
                arr = getattr(_aggregate_for(aggregation, step.type), field)
                if not has_any(arr):
                    continue
                gate = min_arrays(gate, arr) if gate is not None else list(arr)
            if gate and has_any(gate):
                return SewGate(breakdown=gate, total=sum_array(gate), source=source)

    sew_arr = aggregation.stage_stats["sew"].processed_arr
    finish_arr = aggregation.stage_stats["finish"].processed_arr
    sew_total = sum_array(sew_arr)
    finish_total = sum_array(finish_arr)
    if sew_total > 0 or finish_total > 0:
        breakdown = max_arrays(sew_arr, finish_arr)
        return SewGate(
            breakdown=breakdown,
            total=sum_array(breakdown),
            source="finish" if finish_total >= sew_total else "sew",
        )

    if not allow_cut_fallback:
        return SewGate(breakdown=[], total=0.0, source="none")
    cut_arr = aggregation.stage_stats["cut"].processed_arr
    return SewGate(breakdown=list(cut_arr), total=sum_array(cut_arr), source="fallback_cut")


def _internal_row(aggregation: StageAggregation, stage: str, label: str) -> InternalStageRow:
    stats = aggregation.stage_stats[stage]
    return InternalStageRow(
        stage=stage,
        label=label,
        breakdown=aggregation.display_arrays[stage],
        total=aggregation.totals[stage],
        loss=stats.defect_arr,
        loss_total=stats.defect_total,
        logged_defect_total=stats.logged_defect_total,
    )


def _external_row(aggregation: StageAggregation, step: DerivedExternalStep) -> ExternalStageRow:
    agg = _aggregate_for(aggregation, step.type)
    return ExternalStageRow(
        label=step.label,
        external_step_type=step.type,
        expected=step.expected,
        status=step.status,
        status_label=STATUS_LABELS.get(step.status),
        eta_date=step.eta_date,
        is_late=bool(step.is_late),
        vendor=step.vendor,
        low_confidence=bool(step.low_confidence),
        lead_time_days=step.lead_time_days,
        lead_time_source=step.lead_time_source,
        activities=step.activities,
        sent=agg.sent,
        received=agg.received,
        net=agg.net,
        loss=agg.loss,
        totals=ExternalTotals(
            sent=agg.sent_total,
            received=agg.received_total,
            net=agg.net_total,
            loss=agg.loss_total,
        ),
    )


def build_stage_rows_from_aggregation(
    aggregation: StageAggregation,
    external_steps: Optional[Sequence[DerivedExternalStep]] = None,
) -> StageRowsResult:
    """
    Build display rows: order, cut, sew, outsourced steps, finish, pack, qc.

    Also returns the finish input breakdown: the most finish may record,
    gated by outsourced steps or sew output.
    """
    steps = list(external_steps or [])
    sew_gate = compute_sew_gate_breakdown(aggregation, steps, allow_cut_fallback=False)

    rows: list = [
        InternalStageRow(
            stage=AssemblyStage.ORDER.value,
            label="Ordered",
            breakdown=aggregation.ordered,
            total=aggregation.ordered_total,
        ),
        _internal_row(aggregation, "cut", "Cut"),
    ]
    sew_stats = aggregation.stage_stats["sew"]
    rows.append(InternalStageRow(
        stage=AssemblyStage.SEW.value,
        label="Sew",
        breakdown=sew_gate.breakdown,
        total=sew_gate.total,
        loss=sew_stats.defect_arr,
        loss_total=sew_stats.defect_total,
        logged_defect_total=sew_stats.logged_defect_total,
        hint=SEW_GATE_HINTS.get(sew_gate.source),
    ))
    rows.extend(_external_row(aggregation, step) for step in steps)
    rows.append(_internal_row(aggregation, "finish", "Finish"))
    rows.append(_internal_row(aggregation, "pack", "Pack"))
    rows.append(_internal_row(aggregation, "qc", "QC"))

    external_gate = compute_external_gate_from_steps([
        {
            "sent": _aggregate_for(aggregation, step.type).sent,
            "received": _aggregate_for(aggregation, step.type).received,
        }
        for step in steps
    ])
    stats = aggregation.stage_stats
    finish_input = compute_finish_cap_breakdown(
        external_gate=external_gate,
        sew_recorded=stats["sew"].good_arr,
        sew_has_explicit=stats["sew"].attempts_total > 0,
        cut_recorded=stats["cut"].good_arr,
        finish_recorded=stats["finish"].good_arr,
        finish_logged=[],
        finish_loss_reconciled=stats["finish"].defect_arr,
    )
    return StageRowsResult(
        rows=rows,
        finish_input=BreakdownTotal(breakdown=finish_input, total=sum_array(finish_input)),
    )


# ===================
# LOSS RECONCILIATION
# ===================

def compute_reconcile_slack(aggregation: StageAggregation, stage: Any) -> dict[str, list[float]]:
    """
    Units at a stage that went nowhere downstream and can be written off.

    Returns:
        Dict with `usable`, `downstream_used`, `already_reconciled`,
        `suggested` (usable - downstream) and `max` (suggested minus what
        was already reconciled)
    """
    key = stage.value if hasattr(stage, "value") else str(stage).lower()
    stats = aggregation.stage_stats
    external_gate = compute_external_gate_from_steps([
        {"sent": agg.sent, "received": agg.received}
        for agg in aggregation.external_aggregates.values()
    ])
    downstream = compute_downstream_used(
        external_gate=external_gate,
        sew_recorded=stats["sew"].processed_arr,
        finish_recorded=stats["finish"].processed_arr,
        pack_recorded=stats["pack"].processed_arr,
    )
    stage_stats = stats.get(key)
    usable = stage_stats.usable_arr if stage_stats and key != "qc" else []
    reconciled = stage_stats.reconciled_defect_arr if stage_stats else []
    used = downstream.get(key, [])
    return {
        "usable": list(usable),
        "downstream_used": used,
        "already_reconciled": list(reconciled),
        "suggested": compute_reconcile_default(usable, used),
        "max": compute_reconcile_max(usable, used, reconciled),
    }


def validate_reconcile_breakdown(
    aggregation: StageAggregation,
    stage: Any,
    breakdown: Sequence[Any],
) -> Optional[str]:
    """
    Check a proposed loss reconciliation against the remaining slack.

    Returns:
        Error message, or None when the breakdown fits
    """
    cap = compute_reconcile_slack(aggregation, stage)["max"]
    if not has_any(cap):
        return "No reconcilable slack remains at this stage."
    for i in range(max(len(cap), len(breakdown))):
        requested = to_float(breakdown[i]) if i < len(breakdown) else 0.0
        limit = cap[i] if i < len(cap) else 0.0
        if requested > limit:
            return f"Reconcile qty at variant {i + 1} exceeds remaining slack ({limit:g})."
    return None
