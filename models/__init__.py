"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    Breakdown,
    LowerStr,
    OptionalId,
    OptionalNumber,
    Quantity,
)
from models.activity import (
    AssemblyStage,
    TRACKED_STAGES,
    STAGE_ALIASES,
    ActivityKind,
    DefectDisposition,
    ActivityAction,
    ExternalStepType,
    VendorRef,
    AssemblyActivity,
    DefectBucket,
    StageDefectSummary,
)
from models.lead_time import (
    LeadTimeSource,
    CostingLeadTime,
    ProductLeadTime,
    CompanyLeadTime,
    LeadTimeContext,
    LeadTimeDetail,
)
from models.external_step import (
    ExternalStepStatus,
    TERMINAL_STATUSES,
    STEP_LABELS,
    STATUS_LABELS,
    ExternalStepActivity,
    DerivedExternalStep,
)
from models.stage_rows import (
    StageStats,
    ExternalAggregate,
    StageAggregation,
    SewGate,
    ExternalGate,
    BreakdownTotal,
    InternalStageRow,
    ExternalTotals,
    ExternalStageRow,
    StageRow,
    StageRowsResult,
)
from models.pricing import (
    ProductPricingModel,
    PRICING_MODEL_LABELS,
    CostGroupRef,
    PricingModelInput,
    PricingModelResponse,
)
from models.product_attribute import (
    ProductAttributeOption,
    ProductAttributeDefinition,
)
from models.assembly import (
    CompanyRecord,
    ProductRecord,
    CostingRecord,
    AssemblyRecord,
    BoxLineRecord,
    AssemblyStageRowsResponse,
    AssemblyDefectsResponse,
    AssemblyDebugPayload,
    ReconcileSlackResponse,
    ReconcileValidateRequest,
    ReconcileValidateResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "Breakdown",
    "LowerStr",
    "OptionalId",
    "OptionalNumber",
    "Quantity",
    # Activity
    "AssemblyStage",
    "TRACKED_STAGES",
    "STAGE_ALIASES",
    "ActivityKind",
    "DefectDisposition",
    "ActivityAction",
    "ExternalStepType",
    "VendorRef",
    "AssemblyActivity",
    "DefectBucket",
    "StageDefectSummary",
    # Lead time
    "LeadTimeSource",
    "CostingLeadTime",
    "ProductLeadTime",
    "CompanyLeadTime",
    "LeadTimeContext",
    "LeadTimeDetail",
    # External steps
    "ExternalStepStatus",
    "TERMINAL_STATUSES",
    "STEP_LABELS",
    "STATUS_LABELS",
    "ExternalStepActivity",
    "DerivedExternalStep",
    # Stage rows
    "StageStats",
    "ExternalAggregate",
    "StageAggregation",
    "SewGate",
    "ExternalGate",
    "BreakdownTotal",
    "InternalStageRow",
    "ExternalTotals",
    "ExternalStageRow",
    "StageRow",
    "StageRowsResult",
    # Pricing
    "ProductPricingModel",
    "PRICING_MODEL_LABELS",
    "CostGroupRef",
    "PricingModelInput",
    "PricingModelResponse",
    # Product attributes
    "ProductAttributeOption",
    "ProductAttributeDefinition",
    # Assembly
    "CompanyRecord",
    "ProductRecord",
    "CostingRecord",
    "AssemblyRecord",
    "BoxLineRecord",
    "AssemblyStageRowsResponse",
    "AssemblyDefectsResponse",
    "AssemblyDebugPayload",
    "ReconcileSlackResponse",
    "ReconcileValidateRequest",
    "ReconcileValidateResponse",
]
