"""
Lead-time resolution schemas.
"""

from typing import Any, Optional
from enum import Enum

from models.base import BaseSchema


class LeadTimeSource(str, Enum):
    """Where a resolved lead time came from, highest priority first."""
    COSTING = "costing"
    PRODUCT = "product"
    COMPANY = "company"


class CostingLeadTime(BaseSchema):
    lead_time_days: Any = None


class ProductLeadTime(BaseSchema):
    lead_time_days: Any = None


class CompanyLeadTime(BaseSchema):
    default_lead_time_days: Any = None


class LeadTimeContext(BaseSchema):
    """
    Candidate lead times for one step.

    Raw values are kept as-is (None, strings, numbers); qualification
    happens in the resolver.
    """
    costing: Optional[CostingLeadTime] = None
    product: Optional[ProductLeadTime] = None
    company: Optional[CompanyLeadTime] = None


class LeadTimeDetail(BaseSchema):
    """Resolved lead time. Both fields are None when nothing qualified."""
    value: Optional[float] = None
    source: Optional[LeadTimeSource] = None
