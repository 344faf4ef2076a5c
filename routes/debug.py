"""
Debug API routes.

Full derivation traces for support investigations.
"""

from fastapi import APIRouter
import structlog

from models.assembly import AssemblyDebugPayload
from routes.assemblies import handle_error
from services.assembly_service import get_assembly_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/debug", tags=["Debug"])


@router.get("/assemblies/{assembly_id}", response_model=AssemblyDebugPayload)
async def debug_assembly(assembly_id: int):
    """
    Aggregation, outsourced steps, stage rows, finish input and defect
    rollups for one assembly.
    """
    logger.info("debug_assembly_requested", assembly_id=assembly_id)
    try:
        service = get_assembly_service()
        return service.get_debug_payload(assembly_id)
    except Exception as e:
        return handle_error(e)
