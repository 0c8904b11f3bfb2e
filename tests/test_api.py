"""
Integration tests for the REST API endpoints.

Uses the per-test SQLite database from ``conftest``; the session factory
dependency is overridden so every route and command talks to it.
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fleetflow.infrastructure.locks import LocalLockRegistry


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory):
    """AsyncClient backed by SQLite and an in-process lock registry."""
    from fleetflow.api.app import create_app
    from fleetflow.api.dependencies import get_session_factory
    from fleetflow.api.middleware import limiter

    with (
        patch(
            "fleetflow.workers.reconciler.start_reconcile_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "fleetflow.workers.reconciler.stop_reconcile_loop",
            new_callable=AsyncMock,
        ),
        patch.object(limiter, "enabled", False),
    ):
        app = create_app()
        app.state.locks = LocalLockRegistry(wait_seconds=2.0)
        app.dependency_overrides[get_session_factory] = lambda: session_factory

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


async def _vehicle(client: AsyncClient, **overrides) -> dict:
    body = {
        "name": "Volvo FH16",
        "license_plate": "MH-01-AB-1001",
        "type": "truck",
        "max_capacity": 1000,
    }
    body.update(overrides)
    resp = await client.post("/api/v1/vehicles", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _driver(client: AsyncClient, **overrides) -> dict:
    body = {
        "name": "Aarav Sharma",
        "license_number": "DL-TRK-0001",
        "license_category": "truck",
        "license_expiry": "2099-12-31",
    }
    body.update(overrides)
    resp = await client.post("/api/v1/drivers", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _trip(client: AsyncClient, vehicle: dict, driver: dict, cargo_weight=500):
    return await client.post(
        "/api/v1/trips",
        json={
            "vehicle_id": vehicle["id"],
            "driver_id": driver["id"],
            "origin": "Mumbai Port",
            "destination": "Pune Warehouse",
            "cargo_weight": cargo_weight,
        },
    )


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["database"] == "ok"


@pytest.mark.asyncio
async def test_register_and_get_vehicle(client: AsyncClient):
    vehicle = await _vehicle(client)
    assert vehicle["status"] == "available"

    resp = await client.get(f"/api/v1/vehicles/{vehicle['id']}")
    assert resp.status_code == 200
    assert resp.json()["license_plate"] == "MH-01-AB-1001"


@pytest.mark.asyncio
async def test_duplicate_license_plate(client: AsyncClient):
    await _vehicle(client)
    resp = await client.post(
        "/api/v1/vehicles",
        json={"name": "Copy", "license_plate": "MH-01-AB-1001", "type": "van", "max_capacity": 10},
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "DUPLICATE_ENTRY"


@pytest.mark.asyncio
async def test_trip_lifecycle(client: AsyncClient):
    vehicle = await _vehicle(client)
    driver = await _driver(client)

    resp = await _trip(client, vehicle, driver)
    assert resp.status_code == 201
    trip = resp.json()
    assert trip["state"] == "draft"
    assert trip["reference"].startswith("TRIP-")

    resp = await client.post(f"/api/v1/trips/{trip['id']}/dispatch")
    assert resp.status_code == 200
    data = resp.json()
    assert data["state"] == "dispatched"
    assert data["vehicle"]["status"] == "on_trip"
    assert data["driver"]["status"] == "on_duty"

    resp = await client.post(
        f"/api/v1/trips/{trip['id']}/complete", json={"odometer_end": 500}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["state"] == "completed"
    assert data["vehicle"]["status"] == "available"
    assert data["vehicle"]["odometer"] == 500
    assert data["driver"]["trips_completed"] == 1


@pytest.mark.asyncio
async def test_complete_without_body(client: AsyncClient):
    trip = (await _trip(client, await _vehicle(client), await _driver(client))).json()
    await client.post(f"/api/v1/trips/{trip['id']}/dispatch")

    resp = await client.post(f"/api/v1/trips/{trip['id']}/complete")
    assert resp.status_code == 200
    assert resp.json()["odometer_end"] is None


@pytest.mark.asyncio
async def test_complete_draft_is_conflict(client: AsyncClient):
    trip = (await _trip(client, await _vehicle(client), await _driver(client))).json()

    resp = await client.post(f"/api/v1/trips/{trip['id']}/complete")
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "INVALID_TRIP_STATE"
    assert body["type"] == "InvalidStateTransition"
    assert body["detail"] == "Cannot complete a trip in state: draft"


@pytest.mark.asyncio
async def test_over_capacity_is_unprocessable(client: AsyncClient):
    vehicle = await _vehicle(client)
    driver = await _driver(client)

    resp = await _trip(client, vehicle, driver, cargo_weight=1500)
    assert resp.status_code == 422
    assert resp.json()["code"] == "CAPACITY_EXCEEDED"

    resp = await client.get("/api/v1/trips")
    assert resp.json() == []


@pytest.mark.asyncio
async def test_trip_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/trips/9999")
    assert resp.status_code == 404
    assert resp.json()["code"] == "TRIP_NOT_FOUND"


@pytest.mark.asyncio
async def test_cancel_dispatched_trip(client: AsyncClient):
    vehicle = await _vehicle(client)
    driver = await _driver(client)
    trip = (await _trip(client, vehicle, driver)).json()
    await client.post(f"/api/v1/trips/{trip['id']}/dispatch")

    resp = await client.post(f"/api/v1/trips/{trip['id']}/cancel")
    assert resp.status_code == 200
    assert resp.json()["state"] == "cancelled"
    assert resp.json()["vehicle"]["status"] == "available"

    resp = await client.post(f"/api/v1/trips/{trip['id']}/cancel")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_list_trips_by_state(client: AsyncClient):
    vehicle = await _vehicle(client)
    driver = await _driver(client)
    first = (await _trip(client, vehicle, driver)).json()
    await _trip(client, vehicle, driver)
    await client.post(f"/api/v1/trips/{first['id']}/dispatch")

    resp = await client.get("/api/v1/trips", params={"state": "draft"})
    assert resp.status_code == 200
    assert len(resp.json()) == 1

    resp = await client.get("/api/v1/trips", params={"vehicle_id": vehicle["id"]})
    assert len(resp.json()) == 2


@pytest.mark.asyncio
async def test_maintenance_smart_revert(client: AsyncClient):
    vehicle = await _vehicle(client)

    orders = []
    for description in ("Brake pads", "Oil change"):
        resp = await client.post(
            "/api/v1/maintenance",
            json={"vehicle_id": vehicle["id"], "description": description, "cost": 120},
        )
        assert resp.status_code == 201
        orders.append(resp.json())
    assert orders[1]["vehicle"]["status"] == "in_shop"

    resp = await client.post(f"/api/v1/maintenance/{orders[0]['id']}/complete")
    assert resp.status_code == 200
    assert resp.json()["state"] == "done"
    assert resp.json()["vehicle"]["status"] == "in_shop"

    resp = await client.post(f"/api/v1/maintenance/{orders[1]['id']}/complete")
    assert resp.json()["vehicle"]["status"] == "available"

    resp = await client.post(f"/api/v1/maintenance/{orders[1]['id']}/complete")
    assert resp.status_code == 409
    assert resp.json()["code"] == "ORDER_ALREADY_DONE"
    assert resp.json()["type"] == "AlreadyTerminal"


@pytest.mark.asyncio
async def test_maintenance_patch(client: AsyncClient):
    vehicle = await _vehicle(client)
    order = (
        await client.post(
            "/api/v1/maintenance",
            json={"vehicle_id": vehicle["id"], "description": "Tyres"},
        )
    ).json()

    resp = await client.patch(
        f"/api/v1/maintenance/{order['id']}",
        json={"state": "in_progress", "mechanic": "Ravi Auto Works"},
    )
    assert resp.status_code == 200
    assert resp.json()["state"] == "in_progress"
    assert resp.json()["mechanic"] == "Ravi Auto Works"
    assert resp.json()["description"] == "Tyres"

    resp = await client.get("/api/v1/maintenance", params={"state": "in_progress"})
    assert [o["id"] for o in resp.json()] == [order["id"]]


@pytest.mark.asyncio
async def test_vehicle_status_override(client: AsyncClient):
    vehicle = await _vehicle(client)

    resp = await client.put(
        f"/api/v1/vehicles/{vehicle['id']}/status", json={"status": "on_trip"}
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "VEHICLE_ACTIVE"

    resp = await client.put(
        f"/api/v1/vehicles/{vehicle['id']}/status", json={"status": "suspended"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "suspended"


@pytest.mark.asyncio
async def test_retire_vehicle(client: AsyncClient):
    vehicle = await _vehicle(client)

    resp = await client.delete(f"/api/v1/vehicles/{vehicle['id']}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "retired"

    resp = await client.get("/api/v1/vehicles", params={"status": "retired"})
    assert len(resp.json()) == 1


@pytest.mark.asyncio
async def test_driver_suspension(client: AsyncClient):
    vehicle = await _vehicle(client)
    driver = await _driver(client)

    resp = await client.post(f"/api/v1/drivers/{driver['id']}/suspend")
    assert resp.status_code == 200
    assert resp.json()["status"] == "suspended"

    resp = await _trip(client, vehicle, driver)
    assert resp.status_code == 409
    assert resp.json()["code"] == "DRIVER_SUSPENDED"

    resp = await client.post(f"/api/v1/drivers/{driver['id']}/reinstate")
    assert resp.json()["status"] == "off_duty"


@pytest.mark.asyncio
async def test_driver_patch(client: AsyncClient):
    driver = await _driver(client)

    resp = await client.patch(
        f"/api/v1/drivers/{driver['id']}", json={"safety_score": 87.5}
    )
    assert resp.status_code == 200
    assert resp.json()["safety_score"] == 87.5
    assert resp.json()["name"] == "Aarav Sharma"


@pytest.mark.asyncio
async def test_reconcile_endpoint(client: AsyncClient):
    await _vehicle(client)
    await _driver(client)

    resp = await client.post("/api/v1/admin/reconcile")
    assert resp.status_code == 200
    body = resp.json()
    assert body["vehicles_checked"] == 1
    assert body["drivers_checked"] == 1
    assert body["skipped"] is False


@pytest.mark.asyncio
async def test_patch_cannot_null_required_fields(client: AsyncClient):
    vehicle = await _vehicle(client)
    driver = await _driver(client)
    order = (
        await client.post(
            "/api/v1/maintenance",
            json={"vehicle_id": vehicle["id"], "description": "Tyres"},
        )
    ).json()

    resp = await client.patch(f"/api/v1/maintenance/{order['id']}", json={"description": None})
    assert resp.status_code == 422
    resp = await client.patch(f"/api/v1/vehicles/{vehicle['id']}", json={"name": None})
    assert resp.status_code == 422
    resp = await client.patch(f"/api/v1/drivers/{driver['id']}", json={"license_expiry": None})
    assert resp.status_code == 422

    resp = await client.get(f"/api/v1/vehicles/{vehicle['id']}")
    assert resp.json()["name"] == "Volvo FH16"


@pytest.mark.asyncio
async def test_patch_can_clear_optional_fields(client: AsyncClient):
    vehicle = await _vehicle(client, region="West")

    resp = await client.patch(f"/api/v1/vehicles/{vehicle['id']}", json={"region": None})
    assert resp.status_code == 200
    assert resp.json()["region"] is None
