"""
HTTP tests for `api/` using FastAPI's TestClient against an in-memory store.

Covers:
- camelCase request and response bodies.
- Domain errors map to status codes with a {error, detail, statusCode, details} body.
- The main flows: intake with duplicate report, putaway, condition edits,
  listing, sale, lots, COG apply/delete and the reports.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_app_settings, get_store
from api.main import app
from config.settings import Settings
from domain.catalog import CatalogFields
from repositories.memory_store import MemoryInventoryStore
from repositories.store import ItemDraft
from services import intake_service


@pytest.fixture
def memory_store() -> MemoryInventoryStore:
    return MemoryInventoryStore()


@pytest.fixture
def api(memory_store):
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_app_settings] = lambda: Settings()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _intake(api, catalog_id="1234567890123", title="The Great Gatsby", cost=500) -> dict:
    response = api.post(
        "/api/v1/intake",
        json={"catalogId": catalog_id, "title": title, "conditionGrade": "GOOD", "costMinorUnits": cost},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health_and_root(api) -> None:
    assert api.get("/health").json()["status"] == "healthy"
    assert api.get("/").json()["docs"] == "/docs"


def test_intake_reports_duplicates(api) -> None:
    first = _intake(api)
    assert first["item"]["status"] == "INTAKE"
    assert first["item"]["cost"] == 500
    assert first["newCatalogRecord"] is True
    assert first["duplicate"]["isDuplicate"] is False

    second = _intake(api)
    assert second["newCatalogRecord"] is False
    assert second["duplicate"]["isDuplicate"] is True
    assert second["duplicate"]["existingItems"][0]["itemId"] == first["itemId"]

    check = api.get("/api/v1/intake/duplicates/1234567890123").json()
    assert [match["itemId"] for match in check["existingItems"]] == [second["itemId"], first["itemId"]]


def test_intake_validation_error(api) -> None:
    response = api.post("/api/v1/intake", json={"format": "DVD", "title": "Alien"})
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "INVALID_INPUT"
    assert body["statusCode"] == 422


def test_item_lifecycle(api) -> None:
    item_id = _intake(api)["itemId"]

    stored = api.patch(f"/api/v1/items/{item_id}/location", json={"location": "A1-03"}).json()
    assert stored["status"] == "STORED"
    assert stored["sku"] == f"A1-03-{item_id}"

    listed = api.post(f"/api/v1/items/{item_id}/listed", json={"date": "2025-03-01"}).json()
    assert listed["status"] == "LISTED"
    assert listed["listedAt"].startswith("2025-03-01T00:00:00")

    sold = api.post(f"/api/v1/items/{item_id}/sold", json={}).json()
    assert sold["status"] == "SOLD"
    assert sold["soldAt"] is not None

    detail = api.get(f"/api/v1/items/{item_id}").json()
    assert [entry["toStatus"] for entry in detail["history"]][:3] == ["SOLD", "LISTED", "STORED"]

    response = api.delete(f"/api/v1/items/{item_id}")
    assert response.status_code == 409
    assert response.json()["error"] == "INVALID_TRANSITION"


def test_invalid_transition_and_not_found(api) -> None:
    item_id = _intake(api)["itemId"]

    response = api.post(f"/api/v1/items/{item_id}/sold", json={})
    assert response.status_code == 409
    assert response.json()["details"]["from_status"] == "INTAKE"

    response = api.get("/api/v1/items/9999")
    assert response.status_code == 404
    assert response.json() == {
        "error": "NOT_FOUND",
        "detail": "Item #9999 not found",
        "statusCode": 404,
        "details": {"item_id": 9999},
    }


def test_list_items_filters(api) -> None:
    first = _intake(api, catalog_id="111", title="Dune")["itemId"]
    _intake(api, catalog_id="222", title="Emma")
    api.patch(f"/api/v1/items/{first}/location", json={"location": "B1"})

    body = api.get("/api/v1/items", params={"status": "STORED"}).json()
    assert [item["itemId"] for item in body["items"]] == [first]
    assert body["total"] == 1

    body = api.get("/api/v1/items", params={"search": "emm"}).json()
    assert [item["title"] for item in body["items"]] == ["Emma"]

    body = api.get("/api/v1/items", params={"sort": "id_asc", "pageSize": 1, "page": 2}).json()
    assert body["pages"] == 2
    assert body["pageSize"] == 1


def test_bulk_location_and_update_dates(api) -> None:
    ids = [_intake(api)["itemId"] for _ in range(2)]

    bulk = api.post("/api/v1/items/bulk-location", json={"itemIds": ids + [404], "location": "C2"}).json()
    assert bulk["updatedCount"] == 2
    assert bulk["skipped"] == [{"itemId": 404, "reason": "not found"}]

    result = api.post(
        "/api/v1/items/update-dates", json={"itemIds": ids, "dateType": "listed", "date": "2025-02-01"}
    ).json()
    assert result["itemsUpdated"] == 2
    assert result["statusChanges"] == 2
    assert result["failures"] == []

    response = api.post("/api/v1/items/bulk-location", json={"itemIds": [], "location": "C2"})
    assert response.status_code == 400
    assert response.json()["error"] == "EMPTY_SELECTION"


def test_update_dates_sold_on_stored_item_fails_per_item(api) -> None:
    item_id = _intake(api)["itemId"]
    api.patch(f"/api/v1/items/{item_id}/location", json={"location": "C2"})

    result = api.post(
        "/api/v1/items/update-dates", json={"itemIds": [item_id], "dateType": "sold", "date": "2025-02-01"}
    ).json()

    assert result["itemsUpdated"] == 0
    assert [(f["itemId"], f["error"]) for f in result["failures"]] == [(item_id, "INVALID_TRANSITION")]
    assert api.get(f"/api/v1/items/{item_id}").json()["status"] == "STORED"


def test_patch_item_condition(api) -> None:
    item_id = _intake(api)["itemId"]

    body = api.patch(f"/api/v1/items/{item_id}", json={"conditionNotes": "Spine creased"}).json()
    assert body["conditionGrade"] == "GOOD"
    assert body["conditionNotes"] == "Spine creased"

    body = api.patch(f"/api/v1/items/{item_id}", json={"conditionGrade": "FAIR", "conditionNotes": None}).json()
    assert body["conditionGrade"] == "FAIR"
    assert body["conditionNotes"] is None
    assert body["status"] == "INTAKE"

    history = api.get(f"/api/v1/items/{item_id}").json()["history"]
    assert history[0]["channel"] == "CONDITION_UPDATE"

    empty = api.patch(f"/api/v1/items/{item_id}", json={})
    assert empty.status_code == 422
    assert empty.json()["error"] == "INVALID_INPUT"

    assert api.patch("/api/v1/items/999", json={"conditionGrade": "GOOD"}).status_code == 404


def test_lot_endpoints(api) -> None:
    ids = [_intake(api)["itemId"] for _ in range(3)]

    created = api.post("/api/v1/lots", json={"itemIds": [ids[2], ids[0], ids[1]]})
    assert created.status_code == 201
    assert created.json()["lotNumber"] == ids[0]

    conflict = api.post("/api/v1/lots", json={"itemIds": [ids[1]]})
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "ALREADY_MEMBER"

    removal = api.post(f"/api/v1/lots/{ids[0]}/remove", json={"itemId": ids[0]}).json()
    assert removal["outcome"] == "removed"
    assert removal["lotNumberAfter"] == ids[0]

    again = api.post(f"/api/v1/lots/{ids[0]}/remove", json={"itemId": ids[0]})
    assert again.status_code == 200
    assert again.json()["outcome"] == "already_removed"

    lot = api.get(f"/api/v1/lots/{ids[0]}").json()
    assert [item["itemId"] for item in lot["items"]] == [ids[1], ids[2]]
    assert all(item["lotNumber"] == ids[0] for item in lot["items"])

    listing = api.get("/api/v1/lots").json()
    assert listing["total"] == 1

    taken = api.post("/api/v1/lots", json={"itemIds": [ids[0]]})
    assert taken.status_code == 409
    assert taken.json()["error"] == "LOT_NUMBER_IN_USE"

    extra = _intake(api)["itemId"]
    added = api.post(f"/api/v1/lots/{ids[0]}/add", json={"itemId": extra}).json()
    assert added["lotNumber"] == ids[0]
    assert added["itemIds"] == [ids[1], ids[2], extra]

    deleted = api.delete(f"/api/v1/lots/{ids[0]}").json()
    assert deleted["releasedItemIds"] == [ids[1], ids[2], extra]
    assert api.get(f"/api/v1/lots/{ids[0]}").status_code == 404


def test_cog_endpoints(api, memory_store) -> None:
    ids = [_intake(api, cost=0)["itemId"] for _ in range(3)]
    today = memory_store.get_item(ids[0]).intake_at.date().isoformat()

    response = api.post("/api/v1/cog/apply", json={"startDate": today, "endDate": today, "totalSpent": 30000})
    assert response.status_code == 201
    record = response.json()
    assert record["itemsUpdated"] == 3
    assert record["averagePerItem"] == 10000
    assert [memory_store.get_item(item_id).cost for item_id in ids] == [10000, 10000, 10000]

    bad = api.post("/api/v1/cog/apply", json={"startDate": "2024-02-01", "endDate": "2024-01-01", "totalSpent": 100})
    assert bad.status_code == 422
    assert bad.json()["error"] == "INVALID_RANGE"

    empty = api.post("/api/v1/cog/apply", json={"startDate": "2000-01-01", "endDate": "2000-01-31", "totalSpent": 100})
    assert empty.status_code == 400
    assert empty.json()["error"] == "EMPTY_SELECTION"

    records = api.get("/api/v1/cog/records").json()
    assert records["total"] == 1

    deleted = api.delete(f"/api/v1/cog/records/{record['recordId']}").json()
    assert deleted == {"recordId": record["recordId"], "itemsReset": 3, "mode": "snapshot"}
    assert memory_store.get_item(ids[0]).cost == 0

    assert api.delete(f"/api/v1/cog/records/{record['recordId']}").status_code == 404


def test_reports(api) -> None:
    item_id = _intake(api)["itemId"]
    _intake(api)
    api.patch(f"/api/v1/items/{item_id}/location", json={"location": "A1"})
    api.post(f"/api/v1/items/{item_id}/listed", json={})
    api.post(f"/api/v1/items/{item_id}/sold", json={})

    inventory = api.get("/api/v1/reports/inventory-summary").json()
    assert inventory["totalItems"] == 2
    assert inventory["statusBreakdown"]["SOLD"] == 1
    assert inventory["statusBreakdown"]["RETURNED"] == 0
    assert inventory["locationBreakdown"] == {}

    sales = api.get("/api/v1/reports/sales-summary").json()
    assert sales["allTimeSold"] == 1
    assert sales["currentMonthSold"] == 1
    assert sales["allTimeCostOfGoods"] == 500
    assert sales["financialYearAverageCost"] == 500
    assert sales["previousFinancialYearCostOfGoods"] == 0
    assert sales["costYoyGrowthPercent"] == 100.0

    monthly = api.get("/api/v1/reports/sales-monthly").json()
    assert len(monthly["months"]) == 12
    assert monthly["totalItemsSold"] == 1
    assert monthly["totalCostOfGoods"] == 500
    assert sum(month["costOfGoods"] for month in monthly["months"]) == 500
    assert {month["averageCost"] for month in monthly["months"]} == {0, 500}

    recent = api.get("/api/v1/reports/sales-recent", params={"days": 7}).json()
    assert len(recent["timeline"]) == 7
    assert recent["timeline"][-1]["count"] == 1
    assert recent["recentSales"][0]["itemId"] == item_id


def test_aging_stock_report(api, memory_store) -> None:
    old = intake_service.intake_item(
        memory_store,
        intake_service.IntakeRequest(catalog_id="9780441172719", fields=CatalogFields(title="Dune"), draft=ItemDraft()),
        now=datetime(2024, 1, 1, tzinfo=timezone.utc),
    ).item.item_id
    fresh = _intake(api)["itemId"]
    for item_id in (old, fresh):
        api.patch(f"/api/v1/items/{item_id}/location", json={"location": "D4"})

    body = api.get("/api/v1/reports/aging-stock", params={"days": 60}).json()

    assert body["days"] == 60
    assert body["totalItems"] == 1
    assert body["items"][0]["itemId"] == old
    assert body["items"][0]["title"] == "Dune"
    assert body["items"][0]["ageDays"] > 60
    assert body["averageAgeDays"] == float(body["items"][0]["ageDays"])
    assert body["locationBreakdown"] == {"D4": 1}

    assert api.get("/api/v1/reports/aging-stock", params={"days": -1}).status_code == 422
