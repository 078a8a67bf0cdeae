from __future__ import annotations

import apps.pos.app.orders as pos_orders
from apps.pos.app.errors import PersistenceError


def _table(client, name="T1") -> int:
    resp = client.post("/tables", json={"name": name})
    assert resp.status_code == 200
    return resp.json()["id"]


def _order_body(desk_id):
    return {
        "products": [{"name": "Latte", "price": 3.5, "qty": 2}],
        "price": 7.0,
        "desk_id": desk_id,
        "notes": "to go",
    }


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["service"] == "Cafe POS API"
    assert resp.headers.get("X-Request-ID")


def test_login_with_seeded_pin(client):
    ok = client.post("/auth/pin", json={"pin": "1234"})
    assert ok.status_code == 200
    assert ok.json()["name"] == "Admin"
    bad = client.post("/auth/pin", json={"pin": "9999"})
    assert bad.status_code == 200
    assert bad.json() is None


def test_order_flow_over_http(client, printer):
    desk_id = _table(client)
    created = client.post("/orders", json=_order_body(desk_id))
    assert created.status_code == 200
    body = created.json()
    assert body["success"] is True
    # default settings point both printers at "none"
    assert body["print_status"]["kitchen"] == "Printer not configured."
    order_id = body["order_id"]

    ongoing = client.get("/orders/ongoing").json()
    assert [o["id"] for o in ongoing] == [order_id]
    assert ongoing[0]["products"] == [{"name": "Latte", "price": 3.5, "qty": 2}]

    paid = client.post(f"/orders/{order_id}/pay", json={"payment_mode": "Cash", "amount_paid": 10, "change_amount": 3})
    assert paid.status_code == 200
    assert paid.json()["message"] == "Payment confirmed and order marked as paid."

    again = client.post(f"/orders/{order_id}/pay", json={"payment_mode": "Cash", "amount_paid": 10})
    assert again.status_code == 409
    err = again.json()
    assert err["success"] is False
    assert err["detail"] == "Order not found or was already paid."
    assert err["request_id"]

    assert client.get("/orders/ongoing").json() == []
    past = client.get("/orders/past").json()
    assert [p["id"] for p in past] == [order_id]
    assert printer.jobs == []


def test_missing_table_is_a_client_error(client):
    resp = client.post("/orders", json=_order_body(404))
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert client.get("/orders/ongoing").json() == []


def test_remove_unknown_order(client):
    resp = client.delete("/orders/12345")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Order not found or already deleted."


def test_reports(client):
    desk_id = _table(client, "Bar")
    order_id = client.post("/orders", json=_order_body(desk_id)).json()["order_id"]
    client.post(f"/orders/{order_id}/pay", json={"payment_mode": "Card", "amount_paid": 7})

    today = client.get("/orders/past").json()[0]["paid_at"][:10]
    resp = client.get("/reports/tables", params={"start_date": today, "end_date": today, "aggregate": "true"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["data"][0]["table_name"] == "Bar"
    assert data["summary"]["groups"] == [{"name": "Bar", "orders": 1, "revenue": 7.0}]

    bad = client.get("/reports/refunds", params={"start_date": today, "end_date": today})
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid report type."


def test_catalog_conflicts_over_http(client):
    assert client.post("/categories", json={"name": "Coffee"}).status_code == 200
    dup = client.post("/categories", json={"name": "Coffee"})
    assert dup.status_code == 409
    assert dup.json()["detail"] == "Category already exists"


def test_settings_and_currency(client):
    resp = client.put("/settings", json={"name": "Corner Cafe", "currency_symbol": "$", "tax_enabled": True, "tax_rate": 5})
    assert resp.status_code == 200
    assert resp.json()["tax_enabled"] == 1
    assert client.get("/menu/currency").json() == {"currency_symbol": "$"}


def test_clear_database(client):
    desk_id = _table(client)
    client.post("/orders", json=_order_body(desk_id))
    resp = client.post("/admin/clear-database")
    assert resp.json() == {"success": True, "removed_orders": 1}
    assert client.get("/orders/ongoing").json() == []


def test_server_error_details_are_scrubbed_in_prod(client, monkeypatch):
    def boom(*args, **kwargs):
        raise PersistenceError("fetch sales report failed: disk I/O error")

    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setattr(pos_orders, "fetch_report", boom)
    resp = client.get("/reports/sales", params={"start_date": "2024-05-01", "end_date": "2024-05-01"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["detail"] == "internal error"
    assert body["request_id"]


def test_websocket_receives_order_updates(client):
    desk_id = _table(client)
    with client.websocket_connect("/pos/ws?topics=orders-updated") as ws:
        hello = ws.receive_json()
        assert hello == {"type": "hello", "topics": ["orders-updated"]}
        client.post("/orders", json=_order_body(desk_id))
        msg = ws.receive_json()
        assert msg["type"] == "orders-updated"
        assert isinstance(msg["ts_ms"], int)


def test_blank_names_are_refused_over_http(client):
    assert client.post("/tables", json={"name": "   "}).status_code == 422
    assert client.post("/categories", json={"name": " "}).status_code == 422
    assert client.post("/products", json={"name": "  ", "price": 2}).status_code == 422
    t1 = _table(client, "T1")
    assert client.put(f"/tables/{t1}", json={"name": "  "}).status_code == 422
    assert [t["name"] for t in client.get("/tables").json()] == ["T1"]
    assert client.get("/categories").json() == []


def test_sales_report_is_paid_orders_only(client):
    desk_id = _table(client)
    paid_id = client.post("/orders", json=_order_body(desk_id)).json()["order_id"]
    client.post(f"/orders/{paid_id}/pay", json={"payment_mode": "Cash", "amount_paid": 7})
    client.post("/orders", json=_order_body(desk_id))

    today = client.get("/orders/past").json()[0]["paid_at"][:10]
    resp = client.get("/reports/sales", params={"start_date": today, "end_date": today, "aggregate": "true"})
    data = resp.json()
    assert [r["id"] for r in data["data"]] == [paid_id]
    assert data["summary"] == {"orders": 1, "revenue": 7.0}
