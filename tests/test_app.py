from pharmastock.main import app


def test_root_and_health(test_context):
    client, _ = test_context

    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["docs"] == "/docs"

    health = client.get("/health")
    assert health.json() == {"ok": True}
    assert health.headers["X-Request-ID"]


def test_request_id_is_echoed_into_error_envelope(test_context):
    client, _ = test_context
    res = client.get("/sales/missing-sale", headers={"X-Request-ID": "req-fixed-123"})
    assert res.status_code == 404
    assert res.headers["X-Request-ID"] == "req-fixed-123"
    assert res.json() == {
        "error": {
            "code": "not_found",
            "message": "Sale not found: missing-sale",
            "request_id": "req-fixed-123",
            "path": "/sales/missing-sale",
            "details": {"resource": "Sale", "id": "missing-sale"},
        }
    }


def test_validation_errors_list_fields(test_context):
    client, _ = test_context
    res = client.post("/adjustments", json={"adjustment_type": "lost", "quantity_change": 1})
    assert res.status_code == 422
    fields = {issue["field"] for issue in res.json()["error"]["details"]}
    assert {"inventory_id", "adjustment_type", "reason"} <= fields


def test_openapi_exposes_stock_routes():
    paths = set(app.openapi()["paths"].keys())
    assert {
        "/sales",
        "/sales/{sale_id}",
        "/purchase-orders",
        "/purchase-orders/{order_id}",
        "/purchase-orders/{order_id}/receive",
        "/purchase-orders/{order_id}/status",
        "/adjustments",
        "/inventory/lots",
        "/inventory/lots/{lot_id}",
        "/inventory/lots/{lot_id}/quantity",
        "/inventory/medicines/{medicine_id}/stock",
        "/inventory/summary",
        "/inventory/expiring",
        "/inventory/low-stock",
        "/notifications/stats",
        "/notifications/check-inventory",
        "/notifications/checks/{alert_type}",
        "/notifications/custom",
    } <= paths
