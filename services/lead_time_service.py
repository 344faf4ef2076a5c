"""
Lead-time resolution.

A step's lead time comes from the first source that has a usable value:
the costing line, then the product, then the supplier company's default.
"""

from typing import Any, Optional, Union

from models.lead_time import LeadTimeContext, LeadTimeDetail, LeadTimeSource
from utils.number_utils import to_number

# (source, context attribute, field on that attribute), highest priority first
_CANDIDATES = (
    (LeadTimeSource.COSTING, "costing", "lead_time_days"),
    (LeadTimeSource.PRODUCT, "product", "lead_time_days"),
    (LeadTimeSource.COMPANY, "company", "default_lead_time_days"),
)


def _raw_value(context: Any, part: str, field: str) -> Any:
    if context is None:
        return None
    holder = context.get(part) if isinstance(context, dict) else getattr(context, part, None)
    if holder is None:
        return None
    if isinstance(holder, dict):
        return holder.get(field)
    return getattr(holder, field, None)


def resolve_lead_time_detail(
    context: Union[LeadTimeContext, dict, None],
) -> LeadTimeDetail:
    """
    Pick the effective lead time and report where it came from.

    A candidate qualifies when its raw value is not None, coerces to a
    finite number and is strictly positive. Zero, negatives, blanks and
    garbage fall through to the next source.

    Args:
        context: LeadTimeContext or dict with optional `costing`,
                 `product` and `company` parts

    Returns:
        LeadTimeDetail; value and source are both None when no candidate
        qualifies
    """
    for source, part, field in _CANDIDATES:
        raw = _raw_value(context, part, field)
        if raw is None:
            continue
        value = to_number(raw)
        if value is not None and value > 0:
            return LeadTimeDetail(value=value, source=source)
    return LeadTimeDetail()


def resolve_lead_time_days(
    context: Union[LeadTimeContext, dict, None],
) -> Optional[float]:
    """Effective lead time in days, or None."""
    return resolve_lead_time_detail(context).value
