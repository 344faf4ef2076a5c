"""
Assembly production API routes.

Stage rows, defect rollups and loss reconciliation for one assembly.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.activity import AssemblyStage
from models.assembly import (
    AssemblyDefectsResponse,
    AssemblyStageRowsResponse,
    ReconcileSlackResponse,
    ReconcileValidateRequest,
    ReconcileValidateResponse,
)
from services.assembly_service import get_assembly_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/assemblies", tags=["Assemblies"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("/{assembly_id}/stage-rows", response_model=AssemblyStageRowsResponse)
async def get_stage_rows(assembly_id: int):
    """
    Stage rows for the assembly view.

    Rows come in flow order: order, cut, sew, outsourced steps, finish,
    pack, qc.

    Raises:
        404: Assembly not found
    """
    try:
        service = get_assembly_service()
        return service.get_stage_rows(assembly_id)
    except Exception as e:
        return handle_error(e)


@router.get("/{assembly_id}/defects", response_model=AssemblyDefectsResponse)
async def get_defects(
    assembly_id: int,
    stage: Optional[AssemblyStage] = Query(None, description="Limit to one stage"),
):
    """
    Usable, attempts and defect buckets per stage.

    Raises:
        404: Assembly not found
    """
    try:
        service = get_assembly_service()
        return service.get_defect_summary(assembly_id, stage)
    except Exception as e:
        return handle_error(e)


@router.get("/{assembly_id}/reconcile-slack", response_model=ReconcileSlackResponse)
async def get_reconcile_slack(
    assembly_id: int,
    stage: AssemblyStage = Query(..., description="Stage to reconcile"),
):
    """Units at a stage that never moved downstream and can be written off."""
    try:
        service = get_assembly_service()
        slack = service.get_reconcile_slack(assembly_id, stage)
        return ReconcileSlackResponse(assembly_id=assembly_id, stage=stage.value, **slack)
    except Exception as e:
        return handle_error(e)


@router.post("/{assembly_id}/reconcile/validate", response_model=ReconcileValidateResponse)
async def validate_reconcile(assembly_id: int, data: ReconcileValidateRequest):
    """
    Check a proposed loss reconciliation against the remaining slack.

    Returns 200 either way; `valid` is false with the reason in `error`.
    """
    try:
        service = get_assembly_service()
        error = service.validate_reconcile(assembly_id, data.stage, data.breakdown)
        return ReconcileValidateResponse(valid=error is None, error=error)
    except Exception as e:
        return handle_error(e)
