"""
Tests for `repositories/supabase_store.py` with a recording stand-in client.

No network access: the fake client records table queries and RPC calls and
returns canned responses shaped like supabase-py's.

Covers:
- Rows from tables and views convert into domain objects (UTC timestamps,
  enums, format metadata, derived lot numbers).
- RPC failure payloads map back onto the typed errors by code.
- supabase-py's APIError carrying a success payload is treated as success.
- Transport failures (PostgREST or httpx) become STORAGE_ERROR, and the
  duplicate check degrades instead of failing intake.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from postgrest.exceptions import APIError

from domain.catalog import CatalogFields, CatalogRecord, CdMetadata, ProductFormat
from domain.cog import CogReversalMode, CogWindow
from domain.errors import AlreadyMemberError, LotNumberInUseError, NotFoundError, StorageError
from domain.lot import RemovalOutcome
from domain.status import ItemStatus
from repositories.store import ItemDraft, ItemQueryFilters
from repositories.supabase_store import SupabaseInventoryStore
from services import intake_service

T0 = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


@dataclass
class FakeResponse:
    data: Any = None
    count: Optional[int] = None
    error: Any = None


@dataclass
class FakeQuery:
    client: "FakeClient"
    target: str
    calls: List[Tuple[str, tuple, dict]] = field(default_factory=list)

    def __getattr__(self, name: str):
        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return record

    def execute(self) -> FakeResponse:
        self.client.executed.append(self)
        outcome = self.client.responses[self.target].pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeClient:
    def __init__(self) -> None:
        self.responses: Dict[str, List[Any]] = {}
        self.executed: List[FakeQuery] = []
        self.rpc_params: Dict[str, dict] = {}

    def respond(self, target: str, *outcomes: Any) -> None:
        self.responses.setdefault(target, []).extend(outcomes)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, function: str, params: dict) -> FakeQuery:
        self.rpc_params[function] = params
        return FakeQuery(self, f"rpc:{function}")


def _item_row(**overrides) -> Dict[str, Any]:
    row = {
        "item_id": 12,
        "catalog_id": "724384960650",
        "intake_at_utc": "2025-01-01T09:00:00Z",
        "status": "STORED",
        "cost": 350,
        "condition_grade": "GOOD",
        "condition_notes": None,
        "location": "C3",
        "lot_id": None,
        "listed_at_utc": None,
        "sold_at_utc": None,
        "format_metadata": {"format": "CD", "genre": "Jazz", "runtime_minutes": 41, "track_count": 9},
    }
    row.update(overrides)
    return row


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def supabase_store(client) -> SupabaseInventoryStore:
    return SupabaseInventoryStore(client)


def test_get_item_details_converts_view_row(client, supabase_store) -> None:
    row = _item_row(
        lot_id=4,
        lot_number=9,
        catalog_format="CD",
        title="Kind of Blue",
        creator="Miles Davis",
        categories=["Jazz"],
        catalog_created_at_utc="2024-12-31T23:00:00+00:00",
    )
    client.respond("item_details", FakeResponse(data=[row]))

    details = supabase_store.get_item_details(12)

    assert details.item.status is ItemStatus.STORED
    assert details.item.intake_at == T0
    assert details.item.sku == "C3-12"
    assert details.item.format_metadata == CdMetadata(genre="Jazz", runtime_minutes=41, track_count=9)
    assert details.lot_number == 9
    assert details.catalog.format is ProductFormat.CD
    assert details.catalog.categories == ("Jazz",)
    assert details.title == "Kind of Blue"


def test_missing_item_returns_none(client, supabase_store) -> None:
    client.respond("items", FakeResponse(data=[]))
    assert supabase_store.get_item(404) is None


def test_list_items_applies_filters_and_paging(client, supabase_store) -> None:
    client.respond("item_details", FakeResponse(data=[_item_row()], count=41))

    page = supabase_store.list_items(
        ItemQueryFilters(status=ItemStatus.STORED, search="blue, (live)"), page=3, page_size=20
    )

    assert page.total == 41
    assert page.pages == 3
    calls = client.executed[0].calls
    assert ("eq", ("status", "STORED"), {}) in calls
    assert ("or_", ("catalog_id.eq.blue live,title.ilike.*blue live*",), {}) in calls
    assert ("range", (40, 59), {}) in calls


def test_rpc_payload_is_unwrapped(client, supabase_store) -> None:
    client.respond(
        "rpc:create_lot",
        FakeResponse(
            data={
                "success": True,
                "lot": {"lot_id": 2, "lot_number": 3, "item_ids": [10, 3, 7], "created_at_utc": "2025-01-01T09:00:00Z"},
            }
        ),
    )

    lot = supabase_store.create_lot([7, 3, 10], T0)

    assert lot.lot_number == 3
    assert client.rpc_params["create_lot"] == {"p_item_ids": [7, 3, 10], "p_created_at": "2025-01-01T09:00:00+00:00"}


def test_rpc_failure_maps_to_typed_error(client, supabase_store) -> None:
    client.respond(
        "rpc:add_to_lot",
        FakeResponse(
            data={"success": False, "error": "ALREADY_MEMBER", "message": "Item #4 is already in a lot", "details": {"item_id": 4}}
        ),
    )

    with pytest.raises(AlreadyMemberError) as exc:
        supabase_store.add_to_lot(3, 4, T0)
    assert exc.value.details == {"item_id": 4}


def test_api_error_with_success_payload_is_success(client, supabase_store) -> None:
    """supabase-py raises APIError for scalar JSON results; a success payload inside is still success."""

    client.respond(
        "rpc:remove_from_lot",
        APIError({"success": True, "outcome": "already_removed", "lot_number_after": 3, "lot_dissolved": False}),
    )

    removal = supabase_store.remove_from_lot(3, 7, T0)

    assert removal.outcome is RemovalOutcome.ALREADY_REMOVED
    assert removal.lot_number_after == 3


def test_api_error_with_failure_payload(client, supabase_store) -> None:
    client.respond(
        "rpc:delete_cog_record",
        APIError({"success": False, "error": "NOT_FOUND", "message": "COG record #5 not found"}),
    )

    with pytest.raises(NotFoundError):
        supabase_store.delete_cog_record(5, CogReversalMode.SNAPSHOT)


def test_transport_failure_is_storage_error(client, supabase_store) -> None:
    client.respond("items", APIError({"message": "connection refused", "code": "08006"}))
    with pytest.raises(StorageError):
        supabase_store.items_by_catalog_id("724384960650")

    client.respond("rpc:delete_item", APIError({"message": "timeout", "code": "57014"}))
    with pytest.raises(StorageError):
        supabase_store.delete_item(1)


def test_httpx_transport_failure_is_storage_error(client, supabase_store) -> None:
    client.respond("items", httpx.ConnectError("connection refused"))
    with pytest.raises(StorageError):
        supabase_store.items_by_catalog_id("724384960650")

    client.respond("rpc:delete_item", httpx.ReadTimeout("timed out"))
    with pytest.raises(StorageError):
        supabase_store.delete_item(1)


def test_intake_survives_duplicate_check_transport_failure(client, supabase_store) -> None:
    """An unreachable duplicate lookup degrades the report; the intake itself still goes through."""

    client.respond("items", httpx.ConnectError("connection refused"))
    client.respond("catalog_records", FakeResponse(data=[]))
    client.respond("rpc:intake_item", FakeResponse(data={"success": True, "item": _item_row(status="INTAKE", location=None)}))

    result = intake_service.intake_item(
        supabase_store,
        intake_service.IntakeRequest(
            catalog_id="724384960650",
            fields=CatalogFields(format=ProductFormat.CD, title="Kind of Blue"),
            draft=ItemDraft(cost=350),
        ),
        now=T0,
    )

    assert result.item.item_id == 12
    assert result.duplicate.available is False
    assert result.duplicate.is_duplicate is False


def test_update_item_condition_calls_rpc(client, supabase_store) -> None:
    client.respond(
        "rpc:update_item_condition",
        FakeResponse(data={"success": True, "item": _item_row(condition_grade="FAIR", condition_notes="Scratched")}),
    )

    item = supabase_store.update_item_condition(12, "FAIR", "Scratched", T0)

    assert item.condition_grade == "FAIR"
    assert item.condition_notes == "Scratched"
    assert client.rpc_params["update_item_condition"] == {
        "p_item_id": 12,
        "p_condition_grade": "FAIR",
        "p_condition_notes": "Scratched",
        "p_changed_at": "2025-01-01T09:00:00+00:00",
    }


def test_lot_number_in_use_maps_to_typed_error(client, supabase_store) -> None:
    client.respond(
        "rpc:create_lot",
        APIError({"success": False, "error": "LOT_NUMBER_IN_USE", "message": "Lot #3 still exists", "details": {"lot_number": 3}}),
    )

    with pytest.raises(LotNumberInUseError) as exc:
        supabase_store.create_lot([3, 8], T0)
    assert exc.value.details == {"lot_number": 3}


def test_apply_cog_sends_window_and_reads_record(client, supabase_store) -> None:
    client.respond(
        "rpc:apply_cog",
        FakeResponse(
            data=[
                {
                    "success": True,
                    "record": {
                        "record_id": 8,
                        "recorded_at_utc": "2025-02-01T00:00:00Z",
                        "start_date": "2024-01-01",
                        "end_date": "2024-01-31",
                        "window_start_utc": "2024-01-01T00:00:00Z",
                        "window_end_utc": "2024-01-31T23:59:59.999999Z",
                        "total_spent": 30000,
                        "items_updated": 3,
                        "average_per_item": 10000,
                        "item_ids": [1, 2, 3],
                    },
                }
            ]
        ),
    )
    window = CogWindow(date(2024, 1, 1), date(2024, 1, 31))
    bounds = (datetime(2024, 1, 1, tzinfo=timezone.utc), datetime(2024, 1, 31, 23, 59, 59, 999999, tzinfo=timezone.utc))

    record = supabase_store.apply_cog(window, bounds, 30000, datetime(2025, 2, 1, tzinfo=timezone.utc))

    assert record.record_id == 8
    assert record.item_ids == (1, 2, 3)
    params = client.rpc_params["apply_cog"]
    assert params["p_start_date"] == "2024-01-01"
    assert params["p_window_end"] == "2024-01-31T23:59:59.999999+00:00"
    assert params["p_total_spent"] == 30000


def test_intake_sends_catalog_and_metadata(client, supabase_store) -> None:
    client.respond("rpc:intake_item", FakeResponse(data={"success": True, "item": _item_row(status="INTAKE", location=None)}))
    catalog = CatalogRecord(catalog_id="724384960650", format=ProductFormat.CD, title="Kind of Blue", created_at=T0)

    item = supabase_store.intake_item(
        catalog, ItemDraft(cost=350, format_metadata=CdMetadata(genre="Jazz")), T0
    )

    assert item.status is ItemStatus.INTAKE
    params = client.rpc_params["intake_item"]
    assert params["p_catalog"]["format"] == "CD"
    assert params["p_item"]["format_metadata"]["format"] == "CD"
    assert params["p_intake_at"] == "2025-01-01T09:00:00+00:00"
