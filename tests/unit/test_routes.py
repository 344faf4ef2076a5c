"""
API route tests against the mocked database.
"""

import pytest

from tests.factories import ActivityFactory, AssemblyFactory


@pytest.fixture
def client(test_client_with_mock_db, mock_supabase):
    mock_supabase.set_table_data("assemblies", [AssemblyFactory.create(id=3, ordered=[4, 4])])
    mock_supabase.set_table_data("assembly_activities", [
        ActivityFactory.create(stage="cut", qty_breakdown=[4, 4], assembly_id=3),
        ActivityFactory.defect(stage="cut", qty_breakdown=[1, 0], disposition="review", assembly_id=3),
    ])
    return test_client_with_mock_db


class TestAssemblyRoutes:

    def test_stage_rows(self, client):
        response = client.get("/api/assemblies/3/stage-rows")

        assert response.status_code == 200
        data = response.json()
        assert data["assembly_id"] == 3
        assert [r["kind"] for r in data["rows"]] == ["internal"] * 6

    def test_stage_rows_not_found(self, test_client_with_mock_db, mock_supabase):
        mock_supabase.set_table_data("assemblies", [])

        response = test_client_with_mock_db.get("/api/assemblies/99/stage-rows")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ASSEMBLY_NOT_FOUND"

    def test_defects_for_stage(self, client):
        response = client.get("/api/assemblies/3/defects", params={"stage": "cut"})

        assert response.status_code == 200
        cut = response.json()["stages"][0]
        assert cut["usable"] == 7
        assert cut["buckets"][0]["disposition"] == "review"

    def test_defects_rejects_unknown_stage(self, client):
        response = client.get("/api/assemblies/3/defects", params={"stage": "paint"})

        assert response.status_code == 422

    def test_reconcile_validate(self, client):
        response = client.post(
            "/api/assemblies/3/reconcile/validate",
            json={"stage": "cut", "breakdown": [9, 0]},
        )

        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_debug_payload(self, client):
        response = client.get("/api/debug/assemblies/3")

        assert response.status_code == 200
        assert response.json()["aggregation"]["ordered_total"] == 8


class TestPricingRoutes:

    def test_resolve_model(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/pricing/resolve-model",
            json={"pricing_spec_id": 9, "manual_sale_price": 12},
        )

        assert response.status_code == 200
        assert response.json() == {
            "pricing_model": "CURVE_SELL_AT_MOQ",
            "label": "Curve (Sell @ MOQ)",
        }

    def test_conflicting_manual_fields(self, test_client_with_mock_db):
        response = test_client_with_mock_db.post(
            "/api/pricing/resolve-model",
            json={"manual_sale_price": 12, "manual_margin": 0.4},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "CONFLICTING_FIELDS"


class TestProductAttributeRoutes:

    def test_list_and_invalidate(self, test_client_with_mock_db, mock_supabase):
        mock_supabase.set_table_data("product_attribute_definitions", [
            {"id": 1, "key": "gsm", "label": "Fabric weight", "data_type": "NUMBER", "is_filterable": True},
        ])

        listed = test_client_with_mock_db.get("/api/product-attributes", params={"filterable": "true"})
        invalidated = test_client_with_mock_db.post("/api/product-attributes/invalidate")

        assert listed.status_code == 200
        assert listed.json()[0]["key"] == "gsm"
        assert invalidated.json() == {"status": "invalidated"}


class TestAppRoutes:

    def test_root(self, test_client_with_mock_db):
        response = test_client_with_mock_db.get("/")

        assert response.status_code == 200
        assert "assemblies" in response.json()["endpoints"]

    def test_health(self, test_client_with_mock_db):
        response = test_client_with_mock_db.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
