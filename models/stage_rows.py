"""
Stage row and stage aggregation schemas.

A stage row is what the assembly view renders per step: either an internal
production stage or an outsourced step. `kind` tells the two apart.
"""

from pydantic import Field
from typing import Annotated, Literal, Optional, Union
from datetime import datetime

from models.base import BaseSchema
from models.activity import VendorRef
from models.external_step import ExternalStepActivity, ExternalStepStatus
from models.lead_time import LeadTimeSource


# ===================
# AGGREGATION SCHEMAS
# ===================

class StageStats(BaseSchema):
    """Per-size and total quantities for one internal stage."""
    good_arr: list[float] = Field(default_factory=list)
    defect_arr: list[float] = Field(default_factory=list)
    logged_defect_arr: list[float] = Field(default_factory=list)
    reconciled_defect_arr: list[float] = Field(default_factory=list)
    processed_arr: list[float] = Field(default_factory=list)
    usable_arr: list[float] = Field(default_factory=list)
    attempts_arr: list[float] = Field(default_factory=list)
    good_total: float = 0.0
    defect_total: float = 0.0
    logged_defect_total: float = 0.0
    reconciled_defect_total: float = 0.0
    processed_total: float = 0.0
    usable_total: float = 0.0
    attempts_total: float = 0.0


class ExternalAggregate(BaseSchema):
    """
    Sent/received quantities for one outsourced step type.

    net[i] = min(sent[i], received[i]) and loss[i] = max(sent[i] - received[i], 0),
    so net[i] + loss[i] never exceeds sent[i].
    """
    sent: list[float] = Field(default_factory=list)
    received: list[float] = Field(default_factory=list)
    net: list[float] = Field(default_factory=list)
    loss: list[float] = Field(default_factory=list)
    sent_total: float = 0.0
    received_total: float = 0.0
    net_total: float = 0.0
    loss_total: float = 0.0


class StageAggregation(BaseSchema):
    """Everything derived from an assembly's activities before row building."""
    assembly_id: int
    ordered_raw: list[float]
    canceled: list[float]
    ordered: list[float]
    ordered_total: float
    display_arrays: dict[str, list[float]]
    totals: dict[str, float]
    stage_stats: dict[str, StageStats]
    external_aggregates: dict[str, ExternalAggregate] = Field(default_factory=dict)


class SewGate(BaseSchema):
    """Sew row breakdown and which data it was implied from."""
    breakdown: list[float]
    total: float
    source: Literal[
        "external_received",
        "external_sent",
        "sew",
        "finish",
        "fallback_cut",
        "none",
    ]


class ExternalGate(BaseSchema):
    """Combined gate across all outsourced steps."""
    received: Optional[list[float]] = None
    sent: Optional[list[float]] = None
    gate: Optional[list[float]] = None
    source: Literal["received", "sent", "none"] = "none"


class BreakdownTotal(BaseSchema):
    breakdown: list[float]
    total: float


# ===================
# STAGE ROW SCHEMAS
# ===================

class InternalStageRow(BaseSchema):
    """Row for one internal production stage."""
    kind: Literal["internal"] = "internal"
    stage: str
    label: str
    breakdown: list[float]
    total: float
    loss: Optional[list[float]] = None
    loss_total: Optional[float] = None
    logged_defect_total: Optional[float] = None
    hint: Optional[str] = None


class ExternalTotals(BaseSchema):
    sent: float = 0.0
    received: float = 0.0
    net: float = 0.0
    loss: float = 0.0


class ExternalStageRow(BaseSchema):
    """Row for one outsourced step."""
    kind: Literal["external"] = "external"
    stage: Literal["external"] = "external"
    label: str
    external_step_type: str
    expected: bool
    status: ExternalStepStatus
    status_label: Optional[str] = None
    eta_date: Optional[datetime] = None
    is_late: bool = False
    vendor: Optional[VendorRef] = None
    low_confidence: bool = False
    lead_time_days: Optional[float] = None
    lead_time_source: Optional[LeadTimeSource] = None
    activities: list[ExternalStepActivity] = Field(default_factory=list)
    sent: list[float] = Field(default_factory=list)
    received: list[float] = Field(default_factory=list)
    net: list[float] = Field(default_factory=list)
    loss: list[float] = Field(default_factory=list)
    totals: ExternalTotals = Field(default_factory=ExternalTotals)


StageRow = Annotated[
    Union[InternalStageRow, ExternalStageRow],
    Field(discriminator="kind"),
]


class StageRowsResult(BaseSchema):
    """Rows plus the breakdown finish is allowed to consume."""
    rows: list[StageRow]
    finish_input: BreakdownTotal
