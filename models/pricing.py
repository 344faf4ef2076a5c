"""
Product pricing model schemas.
"""

from pydantic import Field, field_validator
from typing import Any, Optional
from enum import Enum

from models.base import BaseSchema, OptionalId, OptionalNumber


class ProductPricingModel(str, Enum):
    """How a product's sell price is derived from its cost."""
    COST_PLUS_MARGIN = "COST_PLUS_MARGIN"
    COST_PLUS_FIXED_SELL = "COST_PLUS_FIXED_SELL"
    TIERED_COST_PLUS_MARGIN = "TIERED_COST_PLUS_MARGIN"
    CURVE_SELL_AT_MOQ = "CURVE_SELL_AT_MOQ"
    TIERED_COST_PLUS_FIXED_SELL = "TIERED_COST_PLUS_FIXED_SELL"


PRICING_MODEL_LABELS = {
    ProductPricingModel.COST_PLUS_MARGIN: "Cost + Margin",
    ProductPricingModel.COST_PLUS_FIXED_SELL: "Cost + Fixed Sell",
    ProductPricingModel.TIERED_COST_PLUS_MARGIN: "Tiered Cost + Margin",
    ProductPricingModel.CURVE_SELL_AT_MOQ: "Curve (Sell @ MOQ)",
    ProductPricingModel.TIERED_COST_PLUS_FIXED_SELL: "Tiered Cost + Fixed Sell",
}


class CostGroupRef(BaseSchema):
    cost_ranges: list[Any] = Field(default_factory=list)

    @field_validator("cost_ranges", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return v if v is not None else []


class PricingModelInput(BaseSchema):
    """Pricing-relevant fields of a product (or product-like import row)."""

    type: Optional[str] = None
    pricing_model: Optional[str] = None
    manual_sale_price: OptionalNumber = None
    manual_margin: OptionalNumber = None
    pricing_spec_id: OptionalId = None
    baseline_price_at_moq: OptionalNumber = None
    sale_price_group_id: OptionalId = None
    cost_group_id: OptionalId = None
    cost_price_ranges: list[Any] = Field(default_factory=list)
    cost_group: Optional[CostGroupRef] = None

    @field_validator("cost_price_ranges", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        """Null ranges column means no ranges."""
        return v if v is not None else []


class PricingModelResponse(BaseSchema):
    """Resolved pricing model with its display label."""
    pricing_model: str
    label: str
