"""
Assembly activity schemas.

An activity is one production log entry against an assembly: good output
at a stage, rework, a defect, or a send/receive event for an outsourced
step. Activities are immutable once written by the logging workflows.
"""

from pydantic import Field, field_validator
from typing import Any, Optional
from enum import Enum
from datetime import datetime

from models.base import (
    BaseSchema,
    Breakdown,
    LowerStr,
    OptionalId,
    Quantity,
)


class AssemblyStage(str, Enum):
    """Production stages, in flow order, plus bookkeeping stages."""
    ORDER = "order"
    CUT = "cut"
    SEW = "sew"
    FINISH = "finish"
    PACK = "pack"
    QC = "qc"
    CANCEL = "cancel"
    OTHER = "other"
    EXTERNAL = "external"


# Stages that carry per-stage statistics
TRACKED_STAGES = (
    AssemblyStage.CUT,
    AssemblyStage.SEW,
    AssemblyStage.FINISH,
    AssemblyStage.PACK,
    AssemblyStage.QC,
)

# Legacy stage names still present on imported activities
STAGE_ALIASES = {
    "make": AssemblyStage.FINISH.value,
    "trim": AssemblyStage.SEW.value,
    "embroidery": AssemblyStage.FINISH.value,
}


class ActivityKind(str, Enum):
    """What an activity records."""
    NORMAL = "normal"
    REWORK = "rework"
    DEFECT = "defect"


class DefectDisposition(str, Enum):
    """Resolution applied to defective units."""
    NONE = "none"
    SAMPLE = "sample"
    REVIEW = "review"
    SCRAP = "scrap"
    OFF_SPEC = "off_spec"


class ActivityAction(str, Enum):
    """Workflow action that produced the activity."""
    RECORDED = "RECORDED"
    SENT_OUT = "SENT_OUT"
    RECEIVED_IN = "RECEIVED_IN"
    DEFECT_LOGGED = "DEFECT_LOGGED"
    LOSS_RECONCILED = "LOSS_RECONCILED"
    ADJUSTMENT = "ADJUSTMENT"


class ExternalStepType(str, Enum):
    """Vendor-outsourced steps. Declaration order is display order."""
    EMBROIDERY = "EMBROIDERY"
    WASH = "WASH"
    DYE = "DYE"


class VendorRef(BaseSchema):
    """Vendor company attached to a send/receive activity."""
    id: OptionalId = None
    name: Optional[str] = None


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


class AssemblyActivity(BaseSchema):
    """
    One activity record.

    Every field is lenient: unknown values are kept as lower-cased strings
    and bad numbers collapse to zero, so aggregation never fails on a
    malformed row.
    """

    id: OptionalId = None
    assembly_id: OptionalId = None
    name: Optional[str] = None
    stage: LowerStr = None
    kind: LowerStr = Field(default=ActivityKind.NORMAL.value)
    action: Optional[str] = None
    defect_disposition: LowerStr = None
    defect_reason_id: OptionalId = None
    quantity: Quantity = 0.0
    qty_breakdown: Breakdown = Field(default_factory=list)
    external_step_type: Optional[str] = None
    activity_date: Optional[datetime] = None
    vendor: Optional[VendorRef] = None

    @field_validator("kind", mode="before")
    @classmethod
    def default_kind(cls, v: Any) -> Any:
        """A missing kind means normal output."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return ActivityKind.NORMAL.value
        return v

    @classmethod
    def coerce(cls, raw: Any) -> "AssemblyActivity":
        """Accept a model instance or a plain dict row."""
        if isinstance(raw, cls):
            return raw
        data = dict(raw or {})
        data["activity_date"] = _coerce_datetime(data.get("activity_date"))
        vendor = data.get("vendor") or data.get("vendor_company")
        data["vendor"] = vendor if isinstance(vendor, (dict, VendorRef)) else None
        for key in ("action", "external_step_type"):
            value = data.get(key)
            if value is not None and hasattr(value, "value"):
                data[key] = value.value
        return cls.model_validate(data)


# ===================
# DEFECT SCHEMAS
# ===================

class DefectBucket(BaseSchema):
    """Defect quantity grouped by reason and disposition."""
    reason_id: Optional[int] = None
    disposition: str = DefectDisposition.NONE.value
    quantity: float = 0.0


class StageDefectSummary(BaseSchema):
    """Defect rollup for one stage of one assembly."""
    stage: str
    usable: float
    attempts: float
    defect_total: float
    buckets: list[DefectBucket]
