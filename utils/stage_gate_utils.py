"""
Gate calculations between production stages.

A gate is the per-size quantity a downstream stage may consume, implied by
what was sent to or received back from outsourced steps, or by what the
upstream stages recorded.
"""

from typing import Optional, Sequence

from models.stage_rows import ExternalGate
from utils.breakdown_utils import (
    add_arrays,
    clamp_array,
    has_any,
    max_arrays,
    min_arrays,
)
from utils.number_utils import to_float


def compute_external_gate_from_steps(steps: Sequence[dict]) -> ExternalGate:
    """
    Combine sent/received breakdowns across outsourced steps.

    Each step narrows the gate (element-wise min). Received quantities win
    over sent quantities when any exist.

    Args:
        steps: Dicts with `sent` and `received` breakdowns

    Returns:
        ExternalGate with the chosen `gate` and its `source`
    """
    received_gate: Optional[list[float]] = None
    sent_gate: Optional[list[float]] = None
    for step in steps:
        received = step.get("received") or []
        sent = step.get("sent") or []
        if has_any(received):
            received_gate = (
                min_arrays(received_gate, received)
                if received_gate is not None
                else [to_float(n) for n in received]
            )
        if has_any(sent):
            sent_gate = (
                min_arrays(sent_gate, sent)
                if sent_gate is not None
                else [to_float(n) for n in sent]
            )

    if received_gate and has_any(received_gate):
        return ExternalGate(
            received=received_gate, sent=sent_gate, gate=received_gate, source="received"
        )
    if sent_gate and has_any(sent_gate):
        return ExternalGate(
            received=received_gate, sent=sent_gate, gate=sent_gate, source="sent"
        )
    return ExternalGate()


def compute_finish_cap_breakdown(
    external_gate: ExternalGate,
    sew_recorded: Sequence[float],
    sew_has_explicit: bool,
    cut_recorded: Sequence[float],
    finish_recorded: Optional[Sequence[float]] = None,
    finish_logged: Optional[Sequence[float]] = None,
    finish_loss_reconciled: Optional[Sequence[float]] = None,
) -> list[float]:
    """Upper bound of what finish may record, per size."""
    if external_gate.gate and has_any(external_gate.gate):
        return clamp_array(external_gate.gate)
    if sew_has_explicit and has_any(sew_recorded):
        return clamp_array(sew_recorded)
    finish_reached = add_arrays(
        finish_recorded or [],
        add_arrays(finish_logged or [], finish_loss_reconciled or []),
    )
    return clamp_array(max_arrays(cut_recorded, finish_reached))


def compute_downstream_used(
    external_gate: ExternalGate,
    sew_recorded: Sequence[float],
    finish_recorded: Sequence[float],
    pack_recorded: Sequence[float],
) -> dict[str, list[float]]:
    """
    Quantities already consumed downstream of each stage.

    Returns:
        Dict keyed by stage (cut, sew, finish, pack)
    """
    ext_gate = external_gate.gate or []
    finish_down = max_arrays(finish_recorded, pack_recorded)
    sew_down = max_arrays(finish_down, ext_gate)
    cut_down = max_arrays(sew_down, sew_recorded)
    return {
        "cut": clamp_array(cut_down),
        "sew": clamp_array(sew_down),
        "finish": clamp_array(pack_recorded),
        "pack": [],
    }


def compute_reconcile_default(
    usable: Sequence[float],
    downstream_used: Sequence[float],
) -> list[float]:
    """Suggested loss to reconcile: usable minus what went downstream."""
    return compute_reconcile_max(usable, downstream_used)


def compute_reconcile_max(
    usable: Sequence[float],
    downstream_used: Sequence[float],
    already_reconciled: Sequence[float] = (),
) -> list[float]:
    """Largest loss that may still be reconciled, per size."""
    length = max(len(usable), len(downstream_used), len(already_reconciled))

    def at(arr: Sequence[float], i: int) -> float:
        return to_float(arr[i]) if i < len(arr) else 0.0

    return [
        max(0.0, at(usable, i) - at(downstream_used, i) - at(already_reconciled, i))
        for i in range(length)
    ]
