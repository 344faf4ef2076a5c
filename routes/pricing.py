"""
Pricing API routes.
"""

from fastapi import APIRouter
import structlog

from models.pricing import PricingModelInput, PricingModelResponse
from routes.assemblies import handle_error
from services.pricing_model_service import describe_pricing_model

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/pricing", tags=["Pricing"])


@router.post("/resolve-model", response_model=PricingModelResponse)
async def resolve_model(data: PricingModelInput):
    """
    Resolve the pricing model for a product or import row.

    Raises:
        422: Both manual sale price and manual margin are set
    """
    try:
        return PricingModelResponse(**describe_pricing_model(data))
    except Exception as e:
        return handle_error(e)
