"""
Derived external (vendor-outsourced) step schemas.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from datetime import datetime

from models.base import BaseSchema
from models.activity import ExternalStepType, VendorRef
from models.lead_time import LeadTimeSource


class ExternalStepStatus(str, Enum):
    """Progress of an outsourced step."""
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    IMPLICIT_DONE = "IMPLICIT_DONE"


# Goods are back (explicitly or implied by finish output)
TERMINAL_STATUSES = frozenset({
    ExternalStepStatus.DONE,
    ExternalStepStatus.IMPLICIT_DONE,
})

STEP_LABELS = {
    ExternalStepType.EMBROIDERY: "Embroidery",
    ExternalStepType.WASH: "Wash",
    ExternalStepType.DYE: "Dye",
}

STATUS_LABELS = {
    ExternalStepStatus.NOT_STARTED: "Not started",
    ExternalStepStatus.IN_PROGRESS: "Sent out",
    ExternalStepStatus.DONE: "Received",
    ExternalStepStatus.IMPLICIT_DONE: "Done (implicit)",
}


class ExternalStepActivity(BaseSchema):
    """Activity summary shown in the step drawer."""
    id: Optional[int] = None
    action: Optional[str] = None
    kind: Optional[str] = None
    activity_date: Optional[datetime] = None
    quantity: Optional[float] = None
    vendor: Optional[VendorRef] = None


class DerivedExternalStep(BaseSchema):
    """One outsourced step of an assembly, derived from costings and activities."""

    type: str
    label: str
    expected: bool
    status: ExternalStepStatus
    sent_date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    qty_out: Optional[float] = None
    qty_in: Optional[float] = None
    defect_qty: Optional[float] = None
    vendor: Optional[VendorRef] = None
    eta_date: Optional[datetime] = None
    lead_time_days: Optional[float] = None
    lead_time_source: Optional[LeadTimeSource] = None
    is_late: bool = False
    low_confidence: bool = False
    inferred_start_date: Optional[datetime] = None
    inferred_end_date: Optional[datetime] = None
    activities: list[ExternalStepActivity] = Field(default_factory=list)
