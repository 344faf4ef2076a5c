"""
Unit tests for lead-time resolution.
"""

import pytest

from models.lead_time import (
    CompanyLeadTime,
    CostingLeadTime,
    LeadTimeContext,
    LeadTimeSource,
    ProductLeadTime,
)
from services.lead_time_service import resolve_lead_time_days, resolve_lead_time_detail


class TestResolveLeadTimeDetail:
    """Priority costing > product > company, first positive finite value wins."""

    def test_costing_wins_when_all_present(self):
        detail = resolve_lead_time_detail({
            "costing": {"lead_time_days": 5},
            "product": {"lead_time_days": 10},
            "company": {"default_lead_time_days": 20},
        })

        assert detail.value == 5
        assert detail.source == LeadTimeSource.COSTING

    def test_zero_disqualifies(self):
        detail = resolve_lead_time_detail({
            "costing": {"lead_time_days": 0},
            "product": None,
            "company": {"default_lead_time_days": 20},
        })

        assert detail.value == 20
        assert detail.source == LeadTimeSource.COMPANY

    def test_empty_context(self):
        detail = resolve_lead_time_detail({})

        assert detail.value is None
        assert detail.source is None

    def test_none_context(self):
        assert resolve_lead_time_detail(None).value is None

    @pytest.mark.parametrize("raw", [-3, "abc", "", float("nan"), float("inf"), True])
    def test_unusable_values_fall_through(self, raw):
        detail = resolve_lead_time_detail({
            "costing": {"lead_time_days": raw},
            "product": {"lead_time_days": 12},
        })

        assert detail.value == 12
        assert detail.source == LeadTimeSource.PRODUCT

    def test_numeric_strings_are_accepted(self):
        detail = resolve_lead_time_detail({"company": {"default_lead_time_days": "7.5"}})

        assert detail.value == 7.5
        assert detail.source == LeadTimeSource.COMPANY

    def test_accepts_model_context(self):
        context = LeadTimeContext(
            costing=CostingLeadTime(lead_time_days=None),
            product=ProductLeadTime(lead_time_days=14),
            company=CompanyLeadTime(default_lead_time_days=30),
        )

        detail = resolve_lead_time_detail(context)

        assert detail.value == 14
        assert detail.source == LeadTimeSource.PRODUCT

    def test_resolution_is_deterministic(self):
        context = {"product": {"lead_time_days": 9}, "company": {"default_lead_time_days": 2}}

        assert resolve_lead_time_detail(context) == resolve_lead_time_detail(context)


class TestResolveLeadTimeDays:

    def test_returns_value_only(self):
        assert resolve_lead_time_days({"product": {"lead_time_days": 4}}) == 4

    def test_returns_none_when_nothing_qualifies(self):
        assert resolve_lead_time_days({"costing": {"lead_time_days": 0}}) is None
