"""
HTTP layer: identity resolution, error rendering, request -> store wiring.
Store functions are replaced in the route modules, so no database is needed.
"""
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

_test_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, _test_dir)

from _helper import DRIVER_ID, NOW, FakeConnection, FakePool, FakeS3, driver_row, order_row, session_row

from driver_hub import storage
from driver_hub.auth import current_driver_id
from driver_hub.db import get_pool
from driver_hub.earnings import EarningEntry
from driver_hub.errors import (
    ConcurrentModificationError,
    IllegalTransitionError,
    MissingRequiredDataError,
    OrderNotFoundError,
    UpstreamFailureError,
)
from driver_hub.main import app
from driver_hub.models import DriverSession, Order
from driver_hub.order_state import OrderStatus


@pytest.fixture
def pool():
    return FakePool(FakeConnection())


@pytest.fixture
def client(pool):
    app.dependency_overrides[get_pool] = lambda: pool
    app.dependency_overrides[current_driver_id] = lambda: DRIVER_ID
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_metrics_exposes_transition_counters(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "order_transitions_total" in resp.text


def test_unknown_identity_is_unauthorized():
    app.dependency_overrides[get_pool] = lambda: FakePool(FakeConnection())
    try:
        resp = TestClient(app).get("/orders/42", headers={"X-Auth-User-Id": "nobody"})
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 401
    assert resp.json()["error"] == "unknown driver"


def test_missing_identity_header_is_unauthorized():
    app.dependency_overrides[get_pool] = lambda: FakePool(FakeConnection())
    try:
        resp = TestClient(app).get("/orders/42")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 401


def test_identity_header_resolves_driver(monkeypatch):
    seen = {}

    async def fake_get_order(pool, order_id, driver_id):
        seen["driver_id"] = driver_id
        return Order.model_validate(order_row())

    monkeypatch.setattr("driver_hub.routes.orders.get_order", fake_get_order)
    app.dependency_overrides[get_pool] = lambda: FakePool(FakeConnection(fetchval=[DRIVER_ID]))
    try:
        resp = TestClient(app).get("/orders/42", headers={"X-Auth-User-Id": "auth-7"})
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 200
    assert seen["driver_id"] == DRIVER_ID


def test_order_detail_lists_next_statuses(client, monkeypatch):
    async def fake_get_order(pool, order_id, driver_id):
        return Order.model_validate(order_row(status="on_way"))

    monkeypatch.setattr("driver_hub.routes.orders.get_order", fake_get_order)
    body = client.get("/orders/42").json()
    assert body["order"]["status"] == "on_way"
    assert body["allowed_next"] == ["reached", "cancelled"]


def test_status_update_passes_metadata(client, monkeypatch):
    captured = {}

    async def fake_update(pool, order_id, driver_id, new_status, metadata):
        captured.update(order_id=order_id, status=new_status, metadata=metadata)
        return Order.model_validate(order_row(status="cancelled", remark=metadata.cancel_reason))

    monkeypatch.setattr("driver_hub.routes.orders.update_status", fake_update)
    resp = client.post("/orders/42/status", json={"status": "cancelled", "cancel_reason": "wrong_address"})

    assert resp.status_code == 200
    assert resp.json()["remark"] == "wrong_address"
    assert captured["status"] == OrderStatus.CANCELLED
    assert captured["metadata"].cancel_reason == "wrong_address"


def test_unknown_status_is_a_validation_error(client):
    resp = client.post("/orders/42/status", json={"status": "shipped"})
    assert resp.status_code == 422


@pytest.mark.parametrize(
    "error,status_code,reason",
    [
        (IllegalTransitionError("delivered", "cancelled"), 409, "illegal transition"),
        (MissingRequiredDataError("need proof", reason="missing proof"), 422, "missing proof"),
        (ConcurrentModificationError(42, "accepted"), 409, "stale state"),
        (OrderNotFoundError(42), 404, "not found"),
        (UpstreamFailureError("database"), 503, "upstream failure"),
    ],
)
def test_typed_errors_are_rendered(client, monkeypatch, error, status_code, reason):
    async def failing_update(*args, **kwargs):
        raise error

    monkeypatch.setattr("driver_hub.routes.orders.update_status", failing_update)
    resp = client.post("/orders/42/status", json={"status": "on_way"})
    assert resp.status_code == status_code
    assert resp.json()["error"] == reason


def test_deliver_uploads_proof_then_finalizes(client, monkeypatch):
    captured = {}

    async def fake_get_order(pool, order_id, driver_id):
        return Order.model_validate(order_row(status="reached"))

    async def fake_upload(order_id, filename, content, content_type):
        captured["upload"] = (order_id, filename, content, content_type)
        return "delivery-proofs/42-abc.jpg"

    async def fake_update(pool, order_id, driver_id, new_status, metadata):
        captured["metadata"] = metadata
        return Order.model_validate(order_row(
            status="delivered", completion_time=NOW, remark=metadata.delivery_remark, photo_proof=metadata.photo_proof,
        ))

    monkeypatch.setattr("driver_hub.routes.orders.get_order", fake_get_order)
    monkeypatch.setattr("driver_hub.routes.orders.upload_proof", fake_upload)
    monkeypatch.setattr("driver_hub.routes.orders.update_status", fake_update)
    resp = client.post(
        "/orders/42/deliver",
        data={"delivery_method": "door"},
        files={"photo": ("doorstep.jpg", b"\xff\xd8jpeg", "image/jpeg")},
    )

    assert resp.status_code == 200
    assert resp.json()["photo_proof"] == "delivery-proofs/42-abc.jpg"
    assert captured["upload"] == (42, "doorstep.jpg", b"\xff\xd8jpeg", "image/jpeg")
    assert captured["metadata"].delivery_remark == "door"


def test_deliver_checks_ownership_before_upload(client, monkeypatch):
    uploads = []

    async def fake_get_order(pool, order_id, driver_id):
        raise OrderNotFoundError(order_id)

    async def fake_upload(*args):
        uploads.append(args)
        return "key"

    monkeypatch.setattr("driver_hub.routes.orders.get_order", fake_get_order)
    monkeypatch.setattr("driver_hub.routes.orders.upload_proof", fake_upload)
    resp = client.post(
        "/orders/42/deliver",
        data={"delivery_method": "door"},
        files={"photo": ("doorstep.jpg", b"jpeg", "image/jpeg")},
    )
    assert resp.status_code == 404
    assert uploads == []


@pytest.mark.parametrize(
    "status,delivery_method,status_code,reason",
    [
        ("on_way", "door", 409, "illegal transition"),
        ("delivered", "door", 409, "illegal transition"),
        ("reached", "   ", 422, "missing proof"),
    ],
)
def test_rejected_delivery_writes_nothing_to_storage(client, monkeypatch, status, delivery_method, status_code, reason):
    s3 = FakeS3()
    updates = []

    async def fake_get_order(pool, order_id, driver_id):
        return Order.model_validate(order_row(status=status))

    async def fake_update(*args):
        updates.append(args)

    monkeypatch.setattr(storage, "_s3_client", s3)
    monkeypatch.setattr("driver_hub.routes.orders.get_order", fake_get_order)
    monkeypatch.setattr("driver_hub.routes.orders.update_status", fake_update)
    resp = client.post(
        "/orders/42/deliver",
        data={"delivery_method": delivery_method},
        files={"photo": ("doorstep.jpg", b"jpeg", "image/jpeg")},
    )

    assert resp.status_code == status_code
    assert resp.json()["error"] == reason
    assert s3.puts == []
    assert updates == []


def test_active_time_rejects_inverted_window(client):
    resp = client.get(
        "/duty/active-time",
        params={"start": "2025-03-14T12:00:00+00:00", "end": "2025-03-14T09:00:00+00:00"},
    )
    assert resp.status_code == 422


def test_earnings_range_returns_display_total(client, monkeypatch):
    async def fake_fetch(pool, driver_id, statuses, start, end):
        created = datetime(2025, 3, 14, 10, tzinfo=timezone.utc)
        return [
            EarningEntry(id=1, status="delivered", total_amount=Decimal("250.50"), created_at=created),
            EarningEntry(id=2, status="delivered", total_amount=Decimal("99.25"), created_at=created),
        ]

    monkeypatch.setattr("driver_hub.routes.earnings.fetch_entries", fake_fetch)
    resp = client.get(
        "/earnings",
        params={"start": "2025-03-01T00:00:00+00:00", "end": "2025-04-01T00:00:00+00:00"},
    )
    assert resp.status_code == 200
    summary = resp.json()["summary"]
    assert summary["display_total"] == "349.75"
    assert summary["count"] == 2


def test_naive_earnings_range_is_read_in_local_time(client, monkeypatch):
    seen = {}

    async def fake_fetch(pool, driver_id, statuses, start, end):
        seen.update(start=start, end=end)
        return []

    monkeypatch.setattr("driver_hub.clock.local_tz", lambda: ZoneInfo("Asia/Kolkata"))
    monkeypatch.setattr("driver_hub.routes.earnings.fetch_entries", fake_fetch)
    resp = client.get("/earnings", params={"start": "2025-03-01T00:00:00", "end": "2025-04-01T00:00:00"})

    assert resp.status_code == 200
    assert seen["start"] == datetime(2025, 2, 28, 18, 30, tzinfo=timezone.utc)
    assert seen["end"] == datetime(2025, 3, 31, 18, 30, tzinfo=timezone.utc)


def test_naive_active_time_window_is_read_in_local_time(client, monkeypatch):
    seen = {}

    async def fake_fetch(pool, driver_id, start, end):
        seen.update(start=start, end=end)
        return []

    monkeypatch.setattr("driver_hub.clock.local_tz", lambda: ZoneInfo("Asia/Kolkata"))
    monkeypatch.setattr("driver_hub.routes.duty.fetch_sessions", fake_fetch)
    resp = client.get("/duty/active-time", params={"start": "2025-03-14T00:00:00", "end": "2025-03-15T00:00:00"})

    assert resp.status_code == 200
    assert seen["start"] == datetime(2025, 3, 13, 18, 30, tzinfo=timezone.utc)
    assert resp.json()["minutes"] == 0


def test_duty_state_reports_open_session(client, monkeypatch):
    async def fake_open(pool, driver_id):
        return DriverSession.model_validate(session_row(id=11))

    monkeypatch.setattr("driver_hub.routes.duty.get_open_session", fake_open)
    body = client.get("/duty").json()
    assert body["on_duty"] is True
    assert body["session"]["id"] == 11


def test_duty_state_off_duty(client, monkeypatch):
    async def fake_open(pool, driver_id):
        return None

    monkeypatch.setattr("driver_hub.routes.duty.get_open_session", fake_open)
    assert client.get("/duty").json() == {"on_duty": False, "session": None}


def test_profile_photo_is_uploaded_then_stored(client, pool, monkeypatch):
    s3 = FakeS3()
    monkeypatch.setattr(storage, "_s3_client", s3)
    pool.conn.fetchrow_results = [driver_row(photo="drivers/7-stored.png")]
    resp = client.post("/profile/photo", files={"file": ("me.PNG", b"png", "image/png")})

    assert resp.status_code == 200
    assert resp.json()["photo"] == "drivers/7-stored.png"
    key = s3.puts[0]["Key"]
    assert key.startswith(f"drivers/{DRIVER_ID}-") and key.endswith(".png")
    assert s3.puts[0]["Bucket"] == storage.settings.photo_bucket
    query, args = pool.conn.calls[0]
    assert "SET photo" in query
    assert args == (DRIVER_ID, key)
