"""
Business logic services.

Pure calculations live in module-level functions; services that touch the
database are classes with a singleton getter.
"""

from services.assembly_service import AssemblyService, get_assembly_service
from services.external_steps_service import ExternalStepService, get_external_step_service
from services.product_attribute_service import (
    ProductAttributeCache,
    ProductAttributeService,
    get_product_attribute_service,
)
from services.defect_metrics_service import (
    compute_usable_for_stage,
    compute_attempts_for_stage,
    group_defects_by_reason_and_disposition,
    summarize_stage_defects,
    validate_defect_breakdown,
    assert_valid_defect_breakdown,
)
from services.lead_time_service import resolve_lead_time_detail, resolve_lead_time_days
from services.pricing_model_service import (
    resolve_pricing_model_for_import,
    infer_pricing_model_from_data,
    assert_manual_price_exclusivity,
)
from services.stage_rows_service import (
    aggregate_assembly_stages,
    compute_sew_gate_breakdown,
    build_stage_rows_from_aggregation,
    compute_reconcile_slack,
    validate_reconcile_breakdown,
)

__all__ = [
    "AssemblyService",
    "get_assembly_service",
    "ExternalStepService",
    "get_external_step_service",
    "ProductAttributeCache",
    "ProductAttributeService",
    "get_product_attribute_service",
    "compute_usable_for_stage",
    "compute_attempts_for_stage",
    "group_defects_by_reason_and_disposition",
    "summarize_stage_defects",
    "validate_defect_breakdown",
    "assert_valid_defect_breakdown",
    "resolve_lead_time_detail",
    "resolve_lead_time_days",
    "resolve_pricing_model_for_import",
    "infer_pricing_model_from_data",
    "assert_manual_price_exclusivity",
    "aggregate_assembly_stages",
    "compute_sew_gate_breakdown",
    "build_stage_rows_from_aggregation",
    "compute_reconcile_slack",
    "validate_reconcile_breakdown",
]
