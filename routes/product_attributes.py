"""
Product attribute definition routes.
"""

from fastapi import APIRouter, Query
import structlog

from models.product_attribute import ProductAttributeDefinition
from routes.assemblies import handle_error
from services.product_attribute_service import get_product_attribute_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/product-attributes", tags=["Product Attributes"])


@router.get("", response_model=list[ProductAttributeDefinition])
async def list_definitions(
    filterable: bool = Query(False, description="Only definitions used as filters"),
):
    """Attribute definitions with their live options, in display order."""
    try:
        service = get_product_attribute_service()
        return service.get_filterable() if filterable else service.get_all()
    except Exception as e:
        return handle_error(e)


@router.post("/invalidate")
async def invalidate_cache():
    """Drop cached definitions after an admin edit."""
    try:
        get_product_attribute_service().invalidate()
        return {"status": "invalidated"}
    except Exception as e:
        return handle_error(e)
