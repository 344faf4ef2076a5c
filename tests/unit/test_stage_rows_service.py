"""
Unit tests for stage aggregation and stage row building.

Scenario used by most tests (two sizes):
    ordered [10, 10], canceled [0, 2]
    cut [10, 8] with a logged cut defect [1, 0]
    sew [6, 5], finish [4, 5], packed [2, 3] (box lines)
"""

import pytest

from models.external_step import DerivedExternalStep, ExternalStepStatus
from models.stage_rows import ExternalGate, ExternalStageRow, InternalStageRow, StageRowsResult
from services.stage_rows_service import (
    aggregate_assembly_stages,
    build_external_aggregates,
    build_stage_rows_from_aggregation,
    compute_reconcile_slack,
    compute_sew_gate_breakdown,
    normalize_activity_for_aggregation,
    validate_reconcile_breakdown,
)
from utils.stage_gate_utils import compute_downstream_used
from tests.factories import ActivityFactory


@pytest.fixture
def activities():
    return [
        ActivityFactory.create(stage="cancel", qty_breakdown=[0, 2]),
        ActivityFactory.create(stage="cut", qty_breakdown=[10, 8]),
        ActivityFactory.defect(stage="cut", qty_breakdown=[1, 0]),
        ActivityFactory.create(stage="sew", qty_breakdown=[6, 5]),
        ActivityFactory.create(stage="finish", qty_breakdown=[4, 5]),
    ]


@pytest.fixture
def aggregation(activities):
    return aggregate_assembly_stages(
        assembly_id=1,
        activities=activities,
        ordered_breakdown=[10, 10],
        pack_snapshot={"breakdown": [2, 3], "total": 5},
    )


@pytest.fixture
def embroidery_activities(activities):
    return activities + [
        ActivityFactory.sent_out("EMBROIDERY", [5, 5]),
        ActivityFactory.received_in("EMBROIDERY", [4, 5]),
    ]


@pytest.fixture
def embroidery_step():
    return DerivedExternalStep(
        type="EMBROIDERY",
        label="Embroidery",
        expected=True,
        status=ExternalStepStatus.DONE,
    )


# ===================
# NORMALIZATION
# ===================

class TestNormalizeActivity:

    @pytest.mark.parametrize("stage,name,expected", [
        ("cut", None, "cut"),
        ("make", None, "finish"),
        ("trim", None, "sew"),
        ("Embroidery", None, "finish"),
        (None, "Make run", "finish"),
        ("", "Sew line 2", "sew"),
        (None, "Packing", "pack"),
        (None, None, "other"),
    ])
    def test_stage_resolution(self, stage, name, expected):
        act = normalize_activity_for_aggregation({"stage": stage, "name": name, "quantity": 1})
        assert act.stage == expected


# ===================
# AGGREGATION
# ===================

class TestAggregateAssemblyStages:

    def test_effective_ordered_net_of_cancellations(self, aggregation):
        assert aggregation.ordered_raw == [10, 10]
        assert aggregation.canceled == [0, 2]
        assert aggregation.ordered == [10, 8]
        assert aggregation.ordered_total == 18

    def test_over_cancellation_floors_at_zero(self):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[ActivityFactory.create(stage="cancel", qty_breakdown=[3, 0])],
            ordered_breakdown=[2, 4],
        )
        assert agg.ordered == [0, 4]
        assert agg.ordered_total == 4

    def test_cut_stats(self, aggregation):
        cut = aggregation.stage_stats["cut"]

        assert cut.good_arr == [10, 8]
        assert cut.defect_arr == [1, 0]
        assert cut.logged_defect_arr == [1, 0]
        assert cut.processed_arr == [11, 8]
        assert cut.usable_arr == [10, 8]
        assert cut.attempts_total == 19

    def test_display_arrays_cascade(self, aggregation):
        assert aggregation.display_arrays["cut"] == [6, 5]
        assert aggregation.display_arrays["sew"] == [4, 5]
        assert aggregation.display_arrays["finish"] == [4, 5]
        assert aggregation.display_arrays["pack"] == [2, 3]
        assert aggregation.totals == {"cut": 11, "sew": 9, "finish": 9, "pack": 5, "qc": 0}

    def test_finish_capped_by_sew(self):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[
                ActivityFactory.create(stage="cut", qty_breakdown=[5]),
                ActivityFactory.create(stage="sew", qty_breakdown=[3]),
                ActivityFactory.create(stage="finish", qty_breakdown=[4]),
            ],
            ordered_breakdown=[5],
        )
        assert agg.display_arrays["finish"] == [3]

    def test_fallback_breakdowns_without_activities(self):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[],
            ordered_breakdown=[5, 5],
            fallback_breakdowns={"cut": [5, 5]},
            fallback_totals={"cut": 10},
        )

        assert agg.stage_stats["cut"].usable_arr == [5, 5]
        assert agg.display_arrays["cut"] == [5, 5]
        assert agg.totals["cut"] == 10
        assert agg.display_arrays["pack"] == []

    def test_pack_defect_without_output_uses_box_lines(self):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[
                ActivityFactory.create(stage="finish", qty_breakdown=[5, 5]),
                ActivityFactory.defect(stage="pack", qty_breakdown=[1, 0]),
            ],
            ordered_breakdown=[5, 5],
            pack_snapshot={"breakdown": [3, 3], "total": 6},
        )
        pack = agg.stage_stats["pack"]

        assert pack.good_arr == [3, 3]
        assert pack.good_total == 6
        assert pack.processed_arr == [4, 3]

    def test_malformed_rows_do_not_raise(self):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[
                {"stage": "cut", "quantity": "x", "qty_breakdown": "oops"},
                {"stage": "cut", "quantity": 4, "qty_breakdown": None},
                {},
            ],
            ordered_breakdown=None,
        )
        assert agg.stage_stats["cut"].good_arr == [4]
        assert agg.ordered == []

    def test_quantity_used_when_breakdown_missing(self):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[{"stage": "sew", "quantity": 7}],
            ordered_breakdown=[7],
        )
        assert agg.stage_stats["sew"].good_arr == [7]


class TestExternalAggregates:

    def test_net_and_loss(self, embroidery_activities):
        agg = aggregate_assembly_stages(
            assembly_id=1, activities=embroidery_activities, ordered_breakdown=[10, 10]
        )
        emb = agg.external_aggregates["EMBROIDERY"]

        assert emb.sent == [5, 5]
        assert emb.received == [4, 5]
        assert emb.net == [4, 5]
        assert emb.loss == [1, 0]
        assert (emb.sent_total, emb.received_total, emb.net_total, emb.loss_total) == (10, 9, 9, 1)

    def test_net_plus_loss_never_exceeds_sent(self):
        acts = [
            normalize_activity_for_aggregation(a) for a in [
                ActivityFactory.sent_out("WASH", [2, 6, 0, 3]),
                ActivityFactory.received_in("WASH", [3, 1, 2]),
                ActivityFactory.sent_out("WASH", [1]),
            ]
        ]
        wash = build_external_aggregates(acts)["WASH"]

        for i, sent in enumerate(wash.sent):
            assert wash.net[i] + wash.loss[i] <= sent
            assert wash.loss[i] >= 0

    def test_other_actions_ignored(self):
        acts = [
            normalize_activity_for_aggregation(
                ActivityFactory.create(stage="external", external_step_type="DYE", qty_breakdown=[4])
            )
        ]
        assert build_external_aggregates(acts) == {}


# ===================
# SEW GATE
# ===================

class TestSewGate:

    def test_recorded_sew_when_no_steps(self, aggregation):
        gate = compute_sew_gate_breakdown(aggregation, [])

        assert gate.breakdown == [6, 5]
        assert gate.total == 11
        assert gate.source == "sew"

    def test_external_received_wins(self, embroidery_activities, embroidery_step):
        agg = aggregate_assembly_stages(
            assembly_id=1, activities=embroidery_activities, ordered_breakdown=[10, 10]
        )
        gate = compute_sew_gate_breakdown(agg, [embroidery_step])

        assert gate.breakdown == [4, 5]
        assert gate.source == "external_received"

    def test_external_sent_when_nothing_received(self, embroidery_step):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[ActivityFactory.sent_out("EMBROIDERY", [3, 2])],
            ordered_breakdown=[3, 2],
        )
        gate = compute_sew_gate_breakdown(agg, [embroidery_step])

        assert gate.breakdown == [3, 2]
        assert gate.source == "external_sent"

    def test_cut_fallback(self):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[ActivityFactory.create(stage="cut", qty_breakdown=[5, 5])],
            ordered_breakdown=[5, 5],
        )

        assert compute_sew_gate_breakdown(agg, [], allow_cut_fallback=True).source == "fallback_cut"
        no_fallback = compute_sew_gate_breakdown(agg, [], allow_cut_fallback=False)
        assert no_fallback.source == "none"
        assert no_fallback.total == 0


# ===================
# STAGE ROWS
# ===================

class TestBuildStageRows:

    def test_row_order_with_external_steps(self, embroidery_activities, embroidery_step):
        agg = aggregate_assembly_stages(
            assembly_id=1, activities=embroidery_activities, ordered_breakdown=[10, 10]
        )
        result = build_stage_rows_from_aggregation(agg, [embroidery_step])

        assert [row.stage for row in result.rows] == [
            "order", "cut", "sew", "external", "finish", "pack", "qc"
        ]
        assert isinstance(result.rows[3], ExternalStageRow)
        assert all(
            isinstance(row, InternalStageRow)
            for i, row in enumerate(result.rows) if i != 3
        )

    def test_internal_row_totals_match_breakdowns(self, aggregation):
        result = build_stage_rows_from_aggregation(aggregation, [])

        for row in result.rows:
            assert row.kind == "internal"
            assert row.total == sum(row.breakdown)

    def test_order_and_cut_rows(self, aggregation):
        rows = build_stage_rows_from_aggregation(aggregation, None).rows

        assert rows[0].breakdown == [10, 8]
        assert rows[1].breakdown == [6, 5]
        assert rows[1].loss == [1, 0]
        assert rows[1].loss_total == 1
        assert rows[1].logged_defect_total == 1

    def test_external_row_carries_step_and_aggregates(self, embroidery_activities, embroidery_step):
        agg = aggregate_assembly_stages(
            assembly_id=1, activities=embroidery_activities, ordered_breakdown=[10, 10]
        )
        result = build_stage_rows_from_aggregation(agg, [embroidery_step])
        row = result.rows[3]

        assert row.kind == "external"
        assert row.external_step_type == "EMBROIDERY"
        assert row.status == ExternalStepStatus.DONE
        assert row.status_label == "Received"
        assert row.is_late is False
        assert row.net == [4, 5]
        assert row.loss == [1, 0]
        assert row.totals.sent == 10
        assert row.totals.loss == 1

    def test_sew_row_hint_from_external(self, embroidery_activities, embroidery_step):
        agg = aggregate_assembly_stages(
            assembly_id=1, activities=embroidery_activities, ordered_breakdown=[10, 10]
        )
        sew_row = build_stage_rows_from_aggregation(agg, [embroidery_step]).rows[2]

        assert sew_row.breakdown == [4, 5]
        assert sew_row.hint == "Implied from external received"

    def test_step_without_activities_gets_empty_aggregates(self, aggregation):
        step = DerivedExternalStep(
            type="DYE", label="Dye", expected=True, status=ExternalStepStatus.NOT_STARTED
        )
        row = build_stage_rows_from_aggregation(aggregation, [step]).rows[3]

        assert row.sent == []
        assert row.totals.net == 0

    def test_finish_input_from_sew_or_external(self, aggregation, embroidery_activities, embroidery_step):
        assert build_stage_rows_from_aggregation(aggregation, []).finish_input.breakdown == [6, 5]

        agg = aggregate_assembly_stages(
            assembly_id=1, activities=embroidery_activities, ordered_breakdown=[10, 10]
        )
        finish_input = build_stage_rows_from_aggregation(agg, [embroidery_step]).finish_input
        assert finish_input.breakdown == [4, 5]
        assert finish_input.total == 9

    def test_rows_validate_from_payload_by_kind(self, embroidery_activities, embroidery_step):
        agg = aggregate_assembly_stages(
            assembly_id=1, activities=embroidery_activities, ordered_breakdown=[10, 10]
        )
        payload = build_stage_rows_from_aggregation(agg, [embroidery_step]).model_dump()
        parsed = StageRowsResult.model_validate(payload)

        assert [type(r) for r in parsed.rows].count(ExternalStageRow) == 1


# ===================
# LOSS RECONCILIATION
# ===================

class TestReconcileSlack:

    @pytest.mark.parametrize("stage,expected_max", [
        ("cut", [4, 3]),
        ("sew", [2, 0]),
        ("finish", [2, 2]),
        ("pack", [2, 3]),
    ])
    def test_max_per_stage(self, aggregation, stage, expected_max):
        assert compute_reconcile_slack(aggregation, stage)["max"] == expected_max

    def test_already_reconciled_reduces_max(self):
        agg = aggregate_assembly_stages(
            assembly_id=1,
            activities=[
                ActivityFactory.create(stage="cut", qty_breakdown=[10, 10]),
                ActivityFactory.create(stage="sew", qty_breakdown=[8, 8]),
                ActivityFactory.defect(stage="cut", qty_breakdown=[1, 0], action="LOSS_RECONCILED"),
            ],
            ordered_breakdown=[10, 10],
        )
        slack = compute_reconcile_slack(agg, "cut")

        assert slack["suggested"] == [2, 2]
        assert slack["already_reconciled"] == [1, 0]
        assert slack["max"] == [1, 2]

    def test_validate_within_slack(self, aggregation):
        assert validate_reconcile_breakdown(aggregation, "sew", [2, 0]) is None

    def test_validate_exceeding_slack(self, aggregation):
        assert validate_reconcile_breakdown(aggregation, "SEW", [3, 0]) == (
            "Reconcile qty at variant 1 exceeds remaining slack (2)."
        )

    def test_validate_without_slack(self, aggregation):
        assert validate_reconcile_breakdown(aggregation, "qc", [1]) == (
            "No reconcilable slack remains at this stage."
        )


class TestDownstreamUsed:

    def test_each_stage_takes_the_largest_downstream_draw(self):
        used = compute_downstream_used(
            external_gate=ExternalGate(sent=[3, 3], gate=[3, 3], source="sent"),
            sew_recorded=[5, 4],
            finish_recorded=[2, 3],
            pack_recorded=[1, 4],
        )

        assert used == {
            "cut": [5, 4],
            "sew": [3, 4],
            "finish": [1, 4],
            "pack": [],
        }

    def test_pack_draw_is_floored_at_zero(self):
        used = compute_downstream_used(
            external_gate=ExternalGate(),
            sew_recorded=[],
            finish_recorded=[],
            pack_recorded=[-1, 2],
        )

        assert used["finish"] == [0, 2]
        assert used["cut"] == [0, 2]
