"""
Product pricing model inference.

Classifies a product into one of the five pricing models from which
optional pricing fields are filled in. Used when importing products that
have no explicit model and when backfilling old rows.
"""

from typing import Any, Union
import structlog

from models.pricing import (
    PRICING_MODEL_LABELS,
    PricingModelInput,
    ProductPricingModel,
)
from exceptions import ConflictingFieldsError

logger = structlog.get_logger(__name__)

_KNOWN_MODELS = {m.value for m in ProductPricingModel}


def _as_input(product_like: Union[PricingModelInput, dict, None]) -> PricingModelInput:
    if isinstance(product_like, PricingModelInput):
        return product_like
    return PricingModelInput.model_validate(product_like or {})


def has_tiered_cost(product: PricingModelInput) -> bool:
    """Cost comes from quantity tiers (own ranges, a cost group, or its ranges)."""
    return (
        len(product.cost_price_ranges) > 0
        or (product.cost_group is not None and len(product.cost_group.cost_ranges) > 0)
        or product.cost_group_id is not None
    )


def resolve_pricing_model_for_import(
    product_like: Union[PricingModelInput, dict, None],
) -> Union[ProductPricingModel, str]:
    """
    Infer the pricing model. First match wins:

    1. explicit pricing_model, returned as given even when unrecognised
    2. pricing spec or baseline price at MOQ -> CURVE_SELL_AT_MOQ
    3. tiered cost + manual sale price -> TIERED_COST_PLUS_FIXED_SELL
    4. tiered cost -> TIERED_COST_PLUS_MARGIN
    5. manual sale price -> COST_PLUS_FIXED_SELL
    6. COST_PLUS_MARGIN
    """
    product = _as_input(product_like)

    explicit = (product.pricing_model or "").strip()
    if explicit:
        if explicit in _KNOWN_MODELS:
            return ProductPricingModel(explicit)
        logger.warning("unknown_pricing_model_kept", pricing_model=explicit)
        return explicit

    if product.pricing_spec_id is not None or product.baseline_price_at_moq is not None:
        return ProductPricingModel.CURVE_SELL_AT_MOQ

    tiered = has_tiered_cost(product)
    if tiered and product.manual_sale_price is not None:
        return ProductPricingModel.TIERED_COST_PLUS_FIXED_SELL
    if tiered:
        return ProductPricingModel.TIERED_COST_PLUS_MARGIN
    if product.manual_sale_price is not None:
        return ProductPricingModel.COST_PLUS_FIXED_SELL
    return ProductPricingModel.COST_PLUS_MARGIN


# Same ladder, named for callers that infer from stored data
infer_pricing_model_from_data = resolve_pricing_model_for_import


def pricing_model_label(model: Union[ProductPricingModel, str]) -> str:
    """Display label; unknown values are returned as-is."""
    try:
        return PRICING_MODEL_LABELS[ProductPricingModel(model)]
    except ValueError:
        return str(model)


def assert_manual_price_exclusivity(product_like: Union[PricingModelInput, dict, None]) -> None:
    """
    A product may carry a manual sale price or a manual margin, not both.

    Raises:
        ConflictingFieldsError: When both are set
    """
    product = _as_input(product_like)
    if product.manual_sale_price is not None and product.manual_margin is not None:
        logger.warning(
            "conflicting_manual_pricing",
            manual_sale_price=product.manual_sale_price,
            manual_margin=product.manual_margin,
        )
        raise ConflictingFieldsError(
            fields=["manual_sale_price", "manual_margin"],
            message="Set either a manual sale price or a manual margin, not both",
        )


def describe_pricing_model(product_like: Any) -> dict:
    """Validated model + label, as returned by the pricing route."""
    product = _as_input(product_like)
    assert_manual_price_exclusivity(product)
    model = resolve_pricing_model_for_import(product)
    value = model.value if isinstance(model, ProductPricingModel) else model
    return {"pricing_model": value, "label": pricing_model_label(model)}
