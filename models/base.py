"""
Base schemas and shared field types for all models.

Records loaded from the database are not always clean (nulls, strings,
NaN), so the numeric field types below coerce instead of rejecting.
"""

from pydantic import BaseModel, BeforeValidator, ConfigDict
from typing import Annotated, Any, Optional

from utils.number_utils import to_float, to_number, to_int_or_none


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


def _coerce_breakdown(value: Any) -> list[float]:
    """Per-size quantities; anything that is not a list becomes []."""
    if not isinstance(value, (list, tuple)):
        return []
    return [to_float(v) for v in value]


def _coerce_quantity(value: Any) -> float:
    return to_float(value)


def _coerce_lower(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "value"):
        value = value.value
    text = str(value).strip().lower()
    return text or None


# Missing or non-finite quantities count as zero
Quantity = Annotated[float, BeforeValidator(_coerce_quantity)]

# Missing or non-finite values stay None
OptionalNumber = Annotated[Optional[float], BeforeValidator(to_number)]

OptionalId = Annotated[Optional[int], BeforeValidator(to_int_or_none)]

Breakdown = Annotated[list[float], BeforeValidator(_coerce_breakdown)]

LowerStr = Annotated[Optional[str], BeforeValidator(_coerce_lower)]
