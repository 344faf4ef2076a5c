"""
Assembly service: loads an assembly and its production history from
Supabase and runs the stage aggregation over it.

Tables:
    assemblies (+ costings, products, companies)
    box_lines
    assembly_activities (+ vendor company)
"""

from datetime import datetime
from typing import Any, Optional
import structlog

from config import get_supabase_client
from exceptions import AssemblyNotFoundError, DatabaseError
from models.activity import AssemblyActivity, AssemblyStage, StageDefectSummary
from models.assembly import (
    AssemblyDebugPayload,
    AssemblyDefectsResponse,
    AssemblyRecord,
    AssemblyStageRowsResponse,
    BoxLineRecord,
)
from models.external_step import DerivedExternalStep
from models.stage_rows import StageAggregation, StageRowsResult
from services.defect_metrics_service import summarize_stage_defects
from services.external_steps_service import ExternalStepService, get_external_step_service
from services.stage_rows_service import (
    aggregate_assembly_stages,
    build_stage_rows_from_aggregation,
    compute_reconcile_slack,
    validate_reconcile_breakdown,
)
from utils.breakdown_utils import merge_pack_breakdown

logger = structlog.get_logger(__name__)

_COMPANY_FIELDS = "id, name, default_lead_time_days"
_PRODUCT_FIELDS = f"id, lead_time_days, external_step_type, supplier:companies({_COMPANY_FIELDS})"

ASSEMBLY_SELECT = (
    "id, qty_ordered_breakdown, "
    "c_qty_cut_breakdown, c_qty_sew_breakdown, c_qty_finish_breakdown, "
    "c_qty_cut, c_qty_sew, c_qty_finish, "
    f"product:products({_PRODUCT_FIELDS}), "
    f"costings(id, external_step_type, lead_time_days, product:products({_PRODUCT_FIELDS}))"
)

ACTIVITY_SELECT = "*, vendor_company:companies(id, name)"

# Stages reported by the defects endpoint
DEFECT_STAGES = (
    AssemblyStage.CUT,
    AssemblyStage.SEW,
    AssemblyStage.FINISH,
    AssemblyStage.PACK,
    AssemblyStage.QC,
)


class AssemblyService:
    """
    Assembly production views.

    Each public method loads fresh data; nothing is cached between calls.
    """

    def __init__(self, external_steps: Optional[ExternalStepService] = None):
        self.db = get_supabase_client()
        self.external_steps = external_steps or get_external_step_service()

    # ===================
    # LOADING
    # ===================

    def get_assembly(self, assembly_id: int) -> AssemblyRecord:
        """
        Load one assembly with costings and products.

        Raises:
            AssemblyNotFoundError: If the assembly does not exist
            DatabaseError: If the query fails
        """
        logger.debug("getting_assembly", assembly_id=assembly_id)
        try:
            result = (
                self.db.table("assemblies")
                .select(ASSEMBLY_SELECT)
                .eq("id", assembly_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_assembly_failed", assembly_id=assembly_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise AssemblyNotFoundError(assembly_id)
        return AssemblyRecord.model_validate(result.data[0])

    def get_pack_snapshot(self, assembly_id: int) -> dict:
        """Packed breakdown and total across box lines, packing-only lines excluded."""
        try:
            result = (
                self.db.table("box_lines")
                .select("qty_breakdown, quantity, packing_only")
                .eq("assembly_id", assembly_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_box_lines_failed", assembly_id=assembly_id, error=str(e))
            raise DatabaseError("select", str(e))

        lines = [
            BoxLineRecord.model_validate(line)
            for line in result.data or []
            if line.get("packing_only") is not True
        ]
        return merge_pack_breakdown(lines)

    def get_activities(self, assembly_id: int) -> list[AssemblyActivity]:
        """All activities of the assembly, oldest first; same-date rows by id."""
        try:
            result = (
                self.db.table("assembly_activities")
                .select(ACTIVITY_SELECT)
                .eq("assembly_id", assembly_id)
                .order("activity_date")
                .order("id")
                .execute()
            )
        except Exception as e:
            logger.error("get_activities_failed", assembly_id=assembly_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [AssemblyActivity.coerce(row) for row in result.data or []]

    # ===================
    # DERIVED VIEWS
    # ===================

    def _derive(
        self,
        assembly_id: int,
        now: Optional[datetime] = None,
    ) -> tuple[StageAggregation, list[DerivedExternalStep], StageRowsResult, list[AssemblyActivity]]:
        assembly = self.get_assembly(assembly_id)
        pack_snapshot = self.get_pack_snapshot(assembly_id)
        activities = self.get_activities(assembly_id)

        aggregation = aggregate_assembly_stages(
            assembly_id=assembly.id,
            activities=activities,
            ordered_breakdown=assembly.qty_ordered_breakdown or [],
            fallback_breakdowns={
                "cut": assembly.c_qty_cut_breakdown,
                "sew": assembly.c_qty_sew_breakdown,
                "finish": assembly.c_qty_finish_breakdown,
            },
            fallback_totals={
                "cut": assembly.c_qty_cut,
                "sew": assembly.c_qty_sew,
                "finish": assembly.c_qty_finish,
            },
            pack_snapshot=pack_snapshot,
        )
        steps = self.external_steps.derive_steps_for_assembly(
            assembly,
            activities,
            totals=aggregation.totals,
            now=now,
        )
        result = build_stage_rows_from_aggregation(aggregation, steps)
        return aggregation, steps, result, activities

    def get_stage_rows(self, assembly_id: int, now: Optional[datetime] = None) -> AssemblyStageRowsResponse:
        """Stage rows for the assembly view."""
        logger.info("building_stage_rows", assembly_id=assembly_id)
        _, steps, result, _ = self._derive(assembly_id, now=now)
        logger.info(
            "stage_rows_built",
            assembly_id=assembly_id,
            rows=len(result.rows),
            external_steps=len(steps),
        )
        return AssemblyStageRowsResponse(assembly_id=assembly_id, rows=result.rows)

    def get_defect_summary(
        self,
        assembly_id: int,
        stage: Optional[Any] = None,
    ) -> AssemblyDefectsResponse:
        """
        Defect rollup for one stage, or for every production stage when
        no stage is given.
        """
        self.get_assembly(assembly_id)
        activities = self.get_activities(assembly_id)
        stages = [stage] if stage else list(DEFECT_STAGES)
        summaries: list[StageDefectSummary] = [
            summarize_stage_defects(activities, s) for s in stages
        ]
        return AssemblyDefectsResponse(assembly_id=assembly_id, stages=summaries)

    def get_debug_payload(self, assembly_id: int, now: Optional[datetime] = None) -> AssemblyDebugPayload:
        """Everything derived for an assembly, for support investigations."""
        logger.info("building_assembly_debug_payload", assembly_id=assembly_id)
        aggregation, steps, result, activities = self._derive(assembly_id, now=now)
        return AssemblyDebugPayload(
            assembly_id=assembly_id,
            aggregation=aggregation,
            external_steps=steps,
            rows=result.rows,
            finish_input=result.finish_input,
            defects=[summarize_stage_defects(activities, s) for s in DEFECT_STAGES],
        )

    # ===================
    # LOSS RECONCILIATION
    # ===================

    def _aggregation_only(self, assembly_id: int) -> StageAggregation:
        aggregation, _, _, _ = self._derive(assembly_id)
        return aggregation

    def get_reconcile_slack(self, assembly_id: int, stage: Any) -> dict:
        """Reconcilable slack for one stage."""
        return compute_reconcile_slack(self._aggregation_only(assembly_id), stage)

    def validate_reconcile(self, assembly_id: int, stage: Any, breakdown: list[float]) -> Optional[str]:
        """Error message when the proposed reconciliation exceeds slack, else None."""
        error = validate_reconcile_breakdown(self._aggregation_only(assembly_id), stage, breakdown)
        if error:
            logger.info("reconcile_rejected", assembly_id=assembly_id, stage=str(stage), error=error)
        return error


# Singleton instance
_service: Optional[AssemblyService] = None


def get_assembly_service() -> AssemblyService:
    """Get or create AssemblyService instance."""
    global _service
    if _service is None:
        _service = AssemblyService()
    return _service
