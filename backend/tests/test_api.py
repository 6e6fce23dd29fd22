import pytest
from fastapi.testclient import TestClient

from backend.app.api.deps import get_db, get_services
from backend.app.db.models.core_types import OrderStatus
from backend.app.db.models.models_v1 import Order, OrderItem
from backend.app.main import app
from backend.services.container import build_services


@pytest.fixture
def client(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    services = build_services()
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def headers(org, user):
    return {"X-Organization-Id": str(org.id), "X-User-Id": str(user.id), "X-Role": "staff"}


def test_stock_read_for_absent_row(client, headers, item, location):
    r = client.get(f"/v1/stock/{item.id}/{location.id}", headers=headers)

    assert r.status_code == 200
    body = r.json()
    assert body["quantity"] == 0
    assert body["persisted"] is False


def test_adjust_then_read(client, headers, item, location):
    r = client.post(
        "/v1/stock-movements/adjustments",
        json={"item_id": item.id, "location_id": location.id, "quantity": 12, "reason": "Inventaire initial"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["new_quantity"] == 12

    r = client.get(f"/v1/stock/{item.id}/{location.id}", headers=headers)
    assert r.json()["quantity"] == 12

    r = client.get("/v1/stock-movements/adjustments", params={"item_id": item.id}, headers=headers)
    assert [a["quantity"] for a in r.json()] == [12]


def test_domain_errors_are_rendered(client, headers, item, location):
    r = client.post(
        "/v1/stock-movements/adjustments",
        json={"item_id": item.id, "location_id": location.id, "quantity": -1},
        headers=headers,
    )

    assert r.status_code == 422
    body = r.json()
    assert body["error_code"] == "BUSINESS_RULE_VIOLATION"
    assert "negative" in body["message"]


def test_unknown_item_is_404(client, headers, location):
    r = client.get(f"/v1/stock/999/{location.id}", headers=headers)

    assert r.status_code == 404
    assert r.json()["error_code"] == "NOT_FOUND"


def test_missing_identity_header(client, item, location):
    r = client.get(f"/v1/stock/{item.id}/{location.id}")
    assert r.status_code == 401


def test_viewer_cannot_write(client, headers, item, location):
    r = client.post(
        "/v1/stock-movements/adjustments",
        json={"item_id": item.id, "location_id": location.id, "quantity": 1},
        headers={**headers, "X-Role": "viewer"},
    )
    assert r.status_code == 403
    assert r.json()["error_code"] == "FORBIDDEN"


def test_transfer_and_low_stock_list(client, headers, item, location, second_location):
    client.post(
        "/v1/stock-movements/adjustments",
        json={"item_id": item.id, "location_id": location.id, "quantity": 10},
        headers=headers,
    )
    r = client.put(
        f"/v1/stock/{item.id}/{location.id}/reorder-settings",
        json={"reorder_point": 8, "reorder_quantity": 20},
        headers=headers,
    )
    assert r.status_code == 200, r.text

    r = client.post(
        "/v1/stock-movements/transfer",
        json={"item_id": item.id, "from_location_id": location.id, "to_location_id": second_location.id, "quantity": 4},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    assert r.json()["source"]["new_quantity"] == 6
    assert r.json()["destination"]["new_quantity"] == 4

    r = client.get("/v1/stock/low", headers=headers)
    rows = r.json()
    assert [(row["location_id"], row["shortfall"], row["suggested_quantity"]) for row in rows] == [
        (location.id, 2, 20)
    ]


def test_stock_count_flow(client, headers, item, location):
    client.post(
        "/v1/stock-movements/adjustments",
        json={"item_id": item.id, "location_id": location.id, "quantity": 50},
        headers=headers,
    )
    r = client.post("/v1/stock-counts", json={"location_id": location.id}, headers=headers)
    assert r.status_code == 201, r.text
    session_id = r.json()["id"]
    assert r.json()["status"] == "IN_PROGRESS"

    r = client.post(
        f"/v1/stock-counts/{session_id}/lines",
        json={"item_id": item.id, "counted_quantity": 45},
        headers=headers,
    )
    assert r.json()["variance"] == -5

    r = client.post(f"/v1/stock-counts/{session_id}/complete", json={"apply_adjustments": True}, headers=headers)
    assert r.json()["adjusted_items"] == 1

    r = client.get(f"/v1/stock/{item.id}/{location.id}", headers=headers)
    assert r.json()["quantity"] == 45

    r = client.delete(f"/v1/stock-counts/{session_id}", headers={**headers, "X-Role": "admin"})
    assert r.status_code == 422


def test_goods_receipt_flow_updates_order(client, headers, db_session, org, supplier, item, location):
    order = Order(organization_id=org.id, supplier_id=supplier.id, status=OrderStatus.draft, reference="PO-9")
    order.items = [OrderItem(item_id=item.id, quantity=6)]
    db_session.add(order)
    db_session.commit()

    r = client.post(f"/v1/orders/{order.id}/send", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["total_amount"] == "0.00"

    r = client.post("/v1/goods-receipts", json={"location_id": location.id, "order_id": order.id}, headers=headers)
    assert r.status_code == 201, r.text
    receipt = r.json()
    assert receipt["supplier_id"] == supplier.id

    r = client.post(
        f"/v1/goods-receipts/{receipt['id']}/lines",
        json={"item_id": item.id, "quantity": 4, "batch_number": "B-1"},
        headers=headers,
    )
    assert r.status_code == 200, r.text

    r = client.post(f"/v1/goods-receipts/{receipt['id']}/confirm", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["order_status"] == "PARTIALLY_RECEIVED"

    r = client.get("/v1/orders/receiving-mismatches", headers=headers)
    assert [(m["reference"], m["items"][0]["received"]) for m in r.json()] == [("PO-9", 4)]


def test_draft_orders_from_low_stock_endpoint(client, headers, make_item, location, set_stock):
    x = make_item("X")
    set_stock(x.id, location.id, 15, reorder_point=20, reorder_quantity=10)

    r = client.post("/v1/orders/draft-from-low-stock", json={"item_ids": [x.id]}, headers=headers)

    assert r.status_code == 201, r.text
    assert r.json() == {"orders": [], "skipped_items": ["X"]}

    r = client.post("/v1/orders/draft-from-low-stock", json={"item_ids": []}, headers=headers)
    assert r.status_code == 422
    assert r.json()["error_code"] == "VALIDATION_ERROR"
