"""API tests for the billing and settlement endpoints."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from tenant_billing.main import app


def _create_unit_with_tenant(client: TestClient, unit_number: str = "101") -> int:
    """Helper: create a unit and move a tenant in, return the unit id."""
    response = client.post("/api/units/", json={"unit_number": unit_number})
    assert response.status_code == 201
    unit_id = response.json()["id"]

    response = client.post(
        f"/api/units/{unit_id}/tenants",
        json={
            "name": "Kim Minji",
            "contact": "010-1234-5678",
            "move_in_date": "2025-03-01",
            "move_in_reading": "1000",
        },
    )
    assert response.status_code == 201
    return unit_id


def _create_building_bill(client: TestClient, year: int, month: int) -> int:
    response = client.post(
        "/api/building-bills/",
        json={
            "bill_year": year,
            "bill_month": month,
            "total_usage": "25231",
            "basic_fee": "1397760",
            "power_fee": "3482120",
            "climate_fee": "98540",
            "vat": "497842",
            "power_fund": "149000",
            "round_down": "2",
            "total_amount": "5625262",
            "due_date": f"{year}-{month:02d}-28",
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.mark.asyncio
async def test_health_endpoint() -> None:
    """Test the health endpoint."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestUnitEndpoints:
    def test_create_and_list(self, client: TestClient) -> None:
        unit_id = _create_unit_with_tenant(client)

        response = client.get("/api/units/")
        assert response.status_code == 200
        units = response.json()
        assert [u["id"] for u in units] == [unit_id]
        assert units[0]["status"] == "occupied"
        assert units[0]["tenant_name"] == "Kim Minji"

    def test_duplicate_unit(self, client: TestClient) -> None:
        client.post("/api/units/", json={"unit_number": "101"})
        response = client.post("/api/units/", json={"unit_number": "101"})

        assert response.status_code == 409
        assert response.json()["error_code"] == "duplicate_unit"

    def test_second_tenant_rejected(self, client: TestClient) -> None:
        unit_id = _create_unit_with_tenant(client)
        response = client.post(
            f"/api/units/{unit_id}/tenants",
            json={"name": "Lee Jun", "move_in_date": "2025-04-01", "move_in_reading": "1100"},
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "unit_occupied"

    def test_unknown_unit(self, client: TestClient) -> None:
        response = client.get("/api/units/999")
        assert response.status_code == 404
        assert response.json()["error_code"] == "unit_not_found"


class TestBuildingBillEndpoints:
    def test_create_get_list(self, client: TestClient) -> None:
        bill_id = _create_building_bill(client, 2025, 12)
        _create_building_bill(client, 2026, 1)

        response = client.get(f"/api/building-bills/{bill_id}")
        assert response.status_code == 200
        assert response.json()["bill_month"] == 12

        response = client.get("/api/building-bills/")
        assert [(b["bill_year"], b["bill_month"]) for b in response.json()] == [
            (2026, 1),
            (2025, 12),
        ]

    def test_duplicate_period(self, client: TestClient) -> None:
        _create_building_bill(client, 2025, 12)
        response = client.post(
            "/api/building-bills/",
            json={"bill_year": 2025, "bill_month": 12, "total_usage": "1", "total_amount": "1"},
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "duplicate_building_bill"

    def test_invalid_month(self, client: TestClient) -> None:
        response = client.post(
            "/api/building-bills/",
            json={"bill_year": 2025, "bill_month": 13, "total_usage": "1", "total_amount": "1"},
        )
        assert response.status_code == 422

    def test_allocate(self, client: TestClient) -> None:
        _create_unit_with_tenant(client, "101")
        bill_id = _create_building_bill(client, 2025, 12)

        response = client.post(
            f"/api/building-bills/{bill_id}/allocate",
            json={
                "usages": [
                    {"unit_number": "101", "usage": "152.6"},
                    {"unit_number": "404", "usage": "5"},
                ]
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["skipped_units"] == ["404"]
        assert len(data["lines"]) == 1
        assert Decimal(data["target_total"]) == Decimal("5625260")

    def test_allocate_rejects_oversized_usage(self, client: TestClient) -> None:
        _create_unit_with_tenant(client, "101")
        bill_id = _create_building_bill(client, 2025, 12)

        response = client.post(
            f"/api/building-bills/{bill_id}/allocate",
            json={"usages": [{"unit_number": "101", "usage": "30000"}]},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "usage_exceeds_building_total"


class TestUnitBillEndpoints:
    def _allocated_bill(self, client: TestClient) -> tuple[int, int]:
        _create_unit_with_tenant(client, "101")
        bill_id = _create_building_bill(client, 2025, 12)
        response = client.post(
            f"/api/building-bills/{bill_id}/allocate",
            json={"usages": [{"unit_number": "101", "usage": "152.6"}]},
        )
        return bill_id, response.json()["lines"][0]["unit_bill_id"]

    def test_edit_and_history(self, client: TestClient) -> None:
        bill_id, unit_bill_id = self._allocated_bill(client)

        response = client.patch(
            f"/api/building-bills/{bill_id}/unit-bills/{unit_bill_id}",
            json={
                "edit_mode": "proportional",
                "edit_reason": "Meter misread",
                "usage_amount": "305.2",
                "basic_fee": "999999",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["unit_bill"]["is_manually_edited"] is True
        assert data["unit_bill"]["basic_fee"] != "999999"

        response = client.get(f"/api/unit-bills/{unit_bill_id}/history")
        assert [e["action"] for e in response.json()] == ["updated", "created"]

    def test_edit_validation(self, client: TestClient) -> None:
        bill_id, unit_bill_id = self._allocated_bill(client)

        response = client.patch(
            f"/api/building-bills/{bill_id}/unit-bills/{unit_bill_id}",
            json={"edit_mode": "manual", "edit_reason": "No total", "usage_amount": "10"},
        )
        assert response.status_code == 422

    def test_payment(self, client: TestClient) -> None:
        _, unit_bill_id = self._allocated_bill(client)

        response = client.patch(
            f"/api/unit-bills/{unit_bill_id}/payment",
            json={"payment_status": "paid", "payment_date": "2026-01-20"},
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"
        assert response.json()["payment_date"] == "2026-01-20"

    def test_reallocation_over_paid_bill(self, client: TestClient) -> None:
        bill_id, unit_bill_id = self._allocated_bill(client)
        client.patch(f"/api/unit-bills/{unit_bill_id}/payment", json={"payment_status": "paid"})
        usages = [{"unit_number": "101", "usage": "200"}]

        response = client.post(f"/api/building-bills/{bill_id}/allocate", json={"usages": usages})
        assert response.status_code == 409
        assert response.json()["error_code"] == "paid_bills_block_reallocation"

        response = client.post(
            f"/api/building-bills/{bill_id}/allocate",
            json={"usages": usages, "force": True},
        )
        assert response.status_code == 200
        assert response.json()["lines"][0]["unit_bill_id"] != unit_bill_id


class TestMoveSettlementEndpoints:
    """End-to-end settlement flow."""

    def _setup(self, client: TestClient) -> int:
        unit_id = _create_unit_with_tenant(client)
        for year, month in [(2025, 10), (2025, 11), (2025, 12), (2026, 1)]:
            _create_building_bill(client, year, month)
        return unit_id

    def test_estimate_preview(self, client: TestClient) -> None:
        unit_id = self._setup(client)

        response = client.post(
            "/api/move-settlements/estimate",
            json={"unit_id": unit_id, "meter_reading": "1120", "settlement_date": "2026-01-16"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_estimated"] is True
        assert Decimal(data["outgoing_usage"]) == Decimal("120")
        assert len(data["averaged_bill"]["base_months"]) == 3

        # Preview saves nothing
        assert client.get("/api/move-settlements/").json()["total"] == 0

    def test_estimate_without_history(self, client: TestClient) -> None:
        unit_id = _create_unit_with_tenant(client)

        response = client.post(
            "/api/move-settlements/estimate",
            json={"unit_id": unit_id, "meter_reading": "1120", "settlement_date": "2026-01-16"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "no_historical_data"

    def test_create_and_rollback(self, client: TestClient) -> None:
        unit_id = self._setup(client)

        response = client.post(
            "/api/move-settlements/",
            json={"unit_id": unit_id, "settlement_date": "2026-01-16", "meter_reading": "1120"},
        )
        assert response.status_code == 201
        settlement = response.json()
        assert settlement["status"] == "pending"
        assert settlement["move_out_bill_id"] is not None
        assert client.get(f"/api/units/{unit_id}").json()["status"] == "vacant"

        response = client.post(f"/api/move-settlements/{settlement['id']}/rollback")
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["move_out_bill_id"] is None

        unit = client.get(f"/api/units/{unit_id}").json()
        assert unit["status"] == "occupied"
        assert unit["tenant_name"] == "Kim Minji"

        response = client.post(f"/api/move-settlements/{settlement['id']}/rollback")
        assert response.status_code == 409
        assert response.json()["error_code"] == "already_cancelled"

        # History of the removed bill is still readable
        response = client.get(f"/api/unit-bills/{settlement['move_out_bill_id']}/history")
        assert [e["action"] for e in response.json()] == ["deleted", "created"]

    def test_paid_bill_blocks_rollback(self, client: TestClient) -> None:
        unit_id = self._setup(client)
        settlement = client.post(
            "/api/move-settlements/",
            json={"unit_id": unit_id, "settlement_date": "2026-01-16", "meter_reading": "1120"},
        ).json()
        client.patch(
            f"/api/unit-bills/{settlement['move_out_bill_id']}/payment",
            json={"payment_status": "paid"},
        )

        response = client.post(f"/api/move-settlements/{settlement['id']}/rollback")

        assert response.status_code == 409
        assert response.json()["error_code"] == "paid_bills_block_rollback"

    def test_incoming_tenant_and_status(self, client: TestClient) -> None:
        unit_id = self._setup(client)
        settlement = client.post(
            "/api/move-settlements/",
            json={"unit_id": unit_id, "settlement_date": "2026-01-16", "meter_reading": "1120"},
        ).json()

        incoming = {
            "name": "Park Soyeon",
            "move_in_date": "2026-01-16",
            "move_in_reading": "1120",
        }
        response = client.post(
            f"/api/move-settlements/{settlement['id']}/incoming-tenant", json=incoming
        )
        assert response.status_code == 200
        assert response.json()["incoming_tenant"]["name"] == "Park Soyeon"

        response = client.post(
            f"/api/move-settlements/{settlement['id']}/incoming-tenant", json=incoming
        )
        assert response.status_code == 409

        response = client.patch(
            f"/api/move-settlements/{settlement['id']}/status", json={"status": "completed"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        response = client.patch(
            f"/api/move-settlements/{settlement['id']}/status", json={"status": "cancelled"}
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "invalid_status_transition"

    def test_status_cannot_return_to_pending(self, client: TestClient) -> None:
        response = client.patch("/api/move-settlements/1/status", json={"status": "pending"})
        assert response.status_code == 422

    def test_list_filters(self, client: TestClient) -> None:
        unit_id = self._setup(client)
        client.post(
            "/api/move-settlements/",
            json={"unit_id": unit_id, "settlement_date": "2026-01-16", "meter_reading": "1120"},
        )

        response = client.get("/api/move-settlements/", params={"unit_number": "101"})
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["unit_number"] == "101"

        response = client.get("/api/move-settlements/", params={"start_period": "2026-2"})
        assert response.json()["total"] == 0

        response = client.get("/api/move-settlements/", params={"start_period": "January"})
        assert response.status_code == 422

    def test_unknown_settlement(self, client: TestClient) -> None:
        response = client.get("/api/move-settlements/999")
        assert response.status_code == 404
        assert response.json()["error_code"] == "settlement_not_found"
