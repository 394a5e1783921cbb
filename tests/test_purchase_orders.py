from datetime import date
from decimal import Decimal

import pytest

from pharmastock.models.medicine import Medicine
from pharmastock.models.purchase_order import PurchaseOrder
from pharmastock.services.purchase_order_service import (
    ReceiptLine,
    aggregate_receipt_lines,
    mean_selling_price,
    quantity_weighted_selling_price,
    resolve_selling_price_policy,
)


def _create_order(client, *items: tuple[str, int], status: str = "ordered") -> dict:
    res = client.post(
        "/purchase-orders",
        json={
            "supplier_id": "supplier-addis-pharma",
            "status": status,
            "items": [
                {"medicine_id": medicine_id, "quantity": quantity, "unit_price": 4}
                for medicine_id, quantity in items
            ],
        },
    )
    assert res.status_code == 201, res.text
    return res.json()


def _medicine(session_local, medicine_id: str) -> Medicine:
    with session_local() as db:
        medicine = db.get(Medicine, medicine_id)
        db.expunge(medicine)
        return medicine


def test_receive_aggregates_lines_per_medicine(test_context, make_medicine):
    client, session_local = test_context
    with session_local() as db:
        amoxicillin = make_medicine(db, name="Amoxicillin 250mg", quantity=5, selling_price="9.00")
        paracetamol = make_medicine(db, name="Paracetamol 500mg", quantity=0)

    order = _create_order(client, (amoxicillin, 10), (amoxicillin, 20), (paracetamol, 50))
    first, second, third = order["items"]

    res = client.post(
        f"/purchase-orders/{order['id']}/receive",
        json={
            "received_date": "2026-03-01",
            "items": [
                {
                    "purchase_order_item_id": first["id"],
                    "quantity_received": 10,
                    "selling_price": 12,
                    "expiry_date": "2027-08-31",
                },
                {
                    "purchase_order_item_id": second["id"],
                    "quantity_received": 15,
                    "selling_price": 15,
                    "expiry_date": "2027-05-31",
                },
                {
                    "purchase_order_item_id": third["id"],
                    "quantity_received": 50,
                    "selling_price": 3.5,
                    "expiry_date": "2028-01-31",
                },
            ],
        },
    )
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "received"
    assert res.json()["received_date"] == "2026-03-01"

    amox = _medicine(session_local, amoxicillin)
    assert amox.quantity == 30
    assert amox.selling_price == Decimal("13.50")
    assert amox.expiry_date == date(2027, 5, 31)
    assert amox.manufacturing_date == date(2026, 3, 1)

    para = _medicine(session_local, paracetamol)
    assert para.quantity == 50
    assert para.selling_price == Decimal("3.50")


def test_receive_twice_is_already_received(test_context, make_medicine):
    client, session_local = test_context
    with session_local() as db:
        medicine_id = make_medicine(db, quantity=0)

    order = _create_order(client, (medicine_id, 10))
    receipt = {
        "received_date": "2026-03-01",
        "items": [
            {
                "purchase_order_item_id": order["items"][0]["id"],
                "quantity_received": 10,
                "selling_price": 4,
                "expiry_date": "2027-01-31",
            }
        ],
    }
    assert client.post(f"/purchase-orders/{order['id']}/receive", json=receipt).status_code == 200

    again = client.post(f"/purchase-orders/{order['id']}/receive", json=receipt)
    assert again.status_code == 409, again.text
    assert again.json()["error"]["code"] == "already_received"
    assert _medicine(session_local, medicine_id).quantity == 10


@pytest.mark.parametrize("quantity_received", [0, 11, -3])
def test_receive_rejects_quantity_outside_ordered_range(test_context, make_medicine, quantity_received):
    client, session_local = test_context
    with session_local() as db:
        medicine_id = make_medicine(db, quantity=2)

    order = _create_order(client, (medicine_id, 10))
    res = client.post(
        f"/purchase-orders/{order['id']}/receive",
        json={
            "received_date": "2026-03-01",
            "items": [
                {
                    "purchase_order_item_id": order["items"][0]["id"],
                    "quantity_received": quantity_received,
                    "selling_price": 4,
                    "expiry_date": "2027-01-31",
                }
            ],
        },
    )
    assert res.status_code == 400, res.text
    assert res.json()["error"]["code"] == "invalid_item"
    assert _medicine(session_local, medicine_id).quantity == 2


def test_receive_rejects_item_from_another_order(test_context, make_medicine):
    client, session_local = test_context
    with session_local() as db:
        medicine_id = make_medicine(db, quantity=0)

    order = _create_order(client, (medicine_id, 10))
    other = _create_order(client, (medicine_id, 5))
    res = client.post(
        f"/purchase-orders/{order['id']}/receive",
        json={
            "received_date": "2026-03-01",
            "items": [
                {
                    "purchase_order_item_id": other["items"][0]["id"],
                    "quantity_received": 5,
                    "selling_price": 4,
                    "expiry_date": "2027-01-31",
                }
            ],
        },
    )
    assert res.status_code == 400, res.text
    assert _medicine(session_local, medicine_id).quantity == 0


def test_receive_unknown_order_is_not_found(test_context):
    client, _ = test_context
    res = client.post(
        "/purchase-orders/missing-order/receive",
        json={
            "received_date": "2026-03-01",
            "items": [
                {
                    "purchase_order_item_id": "x",
                    "quantity_received": 1,
                    "selling_price": 1,
                    "expiry_date": "2027-01-31",
                }
            ],
        },
    )
    assert res.status_code == 404


def test_received_order_is_terminal(test_context, make_medicine):
    client, session_local = test_context
    with session_local() as db:
        medicine_id = make_medicine(db, quantity=0)

    order = _create_order(client, (medicine_id, 10))
    res = client.patch(f"/purchase-orders/{order['id']}/status", json={"status": "received"})
    assert res.status_code == 200, res.text

    for status in ("draft", "ordered", "cancelled"):
        blocked = client.patch(f"/purchase-orders/{order['id']}/status", json={"status": status})
        assert blocked.status_code == 409, blocked.text
        assert blocked.json()["error"]["code"] == "terminal_order"

    # received -> received does not apply stock twice
    again = client.patch(f"/purchase-orders/{order['id']}/status", json={"status": "received"})
    assert again.status_code == 200, again.text
    assert _medicine(session_local, medicine_id).quantity == 10


def test_mark_received_applies_ordered_quantities_without_touching_prices(test_context, make_medicine):
    client, session_local = test_context
    with session_local() as db:
        medicine_id = make_medicine(db, quantity=3, selling_price="7.25")

    order = _create_order(client, (medicine_id, 10), (medicine_id, 5), status="draft")
    res = client.patch(f"/purchase-orders/{order['id']}/status", json={"status": "received"})
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "received"
    assert res.json()["received_date"] is not None

    medicine = _medicine(session_local, medicine_id)
    assert medicine.quantity == 18
    assert medicine.selling_price == Decimal("7.25")
    assert medicine.expiry_date == date(2027, 12, 31)
    assert medicine.manufacturing_date is None


def test_plain_status_change_does_not_move_stock(test_context, make_medicine):
    client, session_local = test_context
    with session_local() as db:
        medicine_id = make_medicine(db, quantity=3)

    order = _create_order(client, (medicine_id, 10), status="draft")
    res = client.patch(f"/purchase-orders/{order['id']}/status", json={"status": "cancelled"})
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "cancelled"
    assert _medicine(session_local, medicine_id).quantity == 3


def test_create_order_validates_medicines_and_items(test_context):
    client, _ = test_context
    missing = client.post(
        "/purchase-orders",
        json={
            "supplier_id": "s-1",
            "items": [{"medicine_id": "missing-medicine", "quantity": 1, "unit_price": 2}],
        },
    )
    assert missing.status_code == 404, missing.text

    empty = client.post("/purchase-orders", json={"supplier_id": "s-1", "items": []})
    assert empty.status_code == 422

    received = client.post(
        "/purchase-orders",
        json={
            "supplier_id": "s-1",
            "status": "received",
            "items": [{"medicine_id": "m", "quantity": 1, "unit_price": 2}],
        },
    )
    assert received.status_code == 422

    unpriced = client.post(
        "/purchase-orders",
        json={"supplier_id": "s-1", "items": [{"medicine_id": "m", "quantity": 1}]},
    )
    assert unpriced.status_code == 422


def test_order_lines_carry_cost_and_order_total(test_context, make_medicine):
    client, session_local = test_context
    with session_local() as db:
        amoxicillin = make_medicine(db, name="Amoxicillin 250mg")
        paracetamol = make_medicine(db, name="Paracetamol 500mg")

    res = client.post(
        "/purchase-orders",
        json={
            "supplier_id": "supplier-addis-pharma",
            "items": [
                {"medicine_id": amoxicillin, "quantity": 12, "unit_price": 7.25},
                {"medicine_id": paracetamol, "quantity": 200, "unit_price": 0.35},
            ],
        },
    )
    assert res.status_code == 201, res.text
    order = res.json()
    assert [(item["unit_price"], item["total_price"]) for item in order["items"]] == [(7.25, 87.0), (0.35, 70.0)]
    assert order["total_amount"] == 157.0

    listed = client.get("/purchase-orders").json()["items"]
    assert listed[0]["total_amount"] == 157.0

    with session_local() as db:
        stored = db.get(PurchaseOrder, order["id"])
        assert stored.total_amount == Decimal("157.00")
        assert stored.items[0].unit_price == Decimal("7.25")


def test_list_purchase_orders_filters(test_context, make_medicine):
    client, session_local = test_context
    with session_local() as db:
        medicine_id = make_medicine(db)

    draft = _create_order(client, (medicine_id, 1), status="draft")
    _create_order(client, (medicine_id, 2), status="ordered")

    by_status = client.get("/purchase-orders", params={"status": "draft"})
    assert by_status.status_code == 200, by_status.text
    assert [row["id"] for row in by_status.json()["items"]] == [draft["id"]]

    by_number = client.get("/purchase-orders", params={"search": draft["order_number"]})
    assert [row["id"] for row in by_number.json()["items"]] == [draft["id"]]
    assert by_number.json()["items"][0]["items_count"] == 1

    assert client.get("/purchase-orders").json()["pagination"]["total"] == 2
    assert client.get(f"/purchase-orders/{draft['id']}").json()["order_number"].startswith("PO-")


def _line(medicine_id: str, quantity: int, price: str, expiry: date) -> ReceiptLine:
    return ReceiptLine(
        medicine_id=medicine_id,
        quantity_received=quantity,
        selling_price=Decimal(price),
        expiry_date=expiry,
    )


def test_aggregate_receipt_lines_sorted_by_medicine():
    lines = [
        _line("b-medicine", 4, "10.00", date(2027, 3, 1)),
        _line("a-medicine", 1, "5.00", date(2027, 9, 1)),
        _line("b-medicine", 6, "11.00", date(2027, 1, 1)),
    ]

    aggregates = aggregate_receipt_lines(lines, received_date=date(2026, 3, 1), price_policy=mean_selling_price)

    assert [aggregate.medicine_id for aggregate in aggregates] == ["a-medicine", "b-medicine"]
    b = aggregates[1]
    assert b.total_quantity == 10
    assert b.selling_price == Decimal("10.50")
    assert b.expiry_date == date(2027, 1, 1)
    assert b.manufacturing_date == date(2026, 3, 1)


def test_selling_price_policies():
    lines = [
        _line("m", 1, "10.00", date(2027, 1, 1)),
        _line("m", 9, "20.00", date(2027, 1, 1)),
    ]
    assert mean_selling_price(lines) == Decimal("15.00")
    assert quantity_weighted_selling_price(lines) == Decimal("19.00")
    assert resolve_selling_price_policy("quantity_weighted") is quantity_weighted_selling_price
    assert resolve_selling_price_policy() is mean_selling_price

    with pytest.raises(ValueError):
        resolve_selling_price_policy("median")
