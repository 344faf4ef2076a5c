"""
Assembly schemas used by the data-access layer and the assembly routes.

Column names follow the `assemblies`, `costings`, `products`, `companies`
and `box_lines` tables.
"""

from pydantic import Field
from typing import Any, Optional

from models.base import BaseSchema, Breakdown, Quantity
from models.activity import StageDefectSummary
from models.external_step import DerivedExternalStep
from models.stage_rows import BreakdownTotal, StageAggregation, StageRow


class CompanyRecord(BaseSchema):
    """Supplier company with its default lead time."""
    id: int
    name: Optional[str] = None
    default_lead_time_days: Any = None


class ProductRecord(BaseSchema):
    id: int
    lead_time_days: Any = None
    external_step_type: Optional[str] = None
    supplier: Optional[CompanyRecord] = None


class CostingRecord(BaseSchema):
    """Costing line of an assembly; outsourced steps carry a step type."""
    id: int
    external_step_type: Optional[str] = None
    lead_time_days: Any = None
    product: Optional[ProductRecord] = None


class AssemblyRecord(BaseSchema):
    """Assembly with the fields stage aggregation needs."""
    id: int
    qty_ordered_breakdown: Optional[Breakdown] = None
    c_qty_cut_breakdown: Breakdown = Field(default_factory=list)
    c_qty_sew_breakdown: Breakdown = Field(default_factory=list)
    c_qty_finish_breakdown: Breakdown = Field(default_factory=list)
    c_qty_cut: Quantity = 0.0
    c_qty_sew: Quantity = 0.0
    c_qty_finish: Quantity = 0.0
    product: Optional[ProductRecord] = None
    costings: list[CostingRecord] = Field(default_factory=list)


class BoxLineRecord(BaseSchema):
    """Packed quantities for an assembly."""
    qty_breakdown: Breakdown = Field(default_factory=list)
    quantity: Quantity = 0.0


# ===================
# RESPONSE SCHEMAS
# ===================

class AssemblyStageRowsResponse(BaseSchema):
    assembly_id: int
    rows: list[StageRow]


class AssemblyDefectsResponse(BaseSchema):
    assembly_id: int
    stages: list[StageDefectSummary]


class AssemblyDebugPayload(BaseSchema):
    """Full derivation trace for one assembly."""
    assembly_id: int
    aggregation: StageAggregation
    external_steps: list[DerivedExternalStep]
    rows: list[StageRow]
    finish_input: BreakdownTotal
    defects: list[StageDefectSummary]


# ===================
# LOSS RECONCILIATION SCHEMAS
# ===================

class ReconcileSlackResponse(BaseSchema):
    """Per-size slack a stage can still write off."""
    assembly_id: int
    stage: str
    usable: list[float]
    downstream_used: list[float]
    already_reconciled: list[float]
    suggested: list[float]
    max: list[float]


class ReconcileValidateRequest(BaseSchema):
    stage: str
    breakdown: Breakdown = Field(default_factory=list)


class ReconcileValidateResponse(BaseSchema):
    valid: bool
    error: Optional[str] = None
