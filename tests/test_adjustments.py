import pytest

from pharmastock.core.errors import ImmutableRecord
from pharmastock.models.adjustment import StockAdjustment
from pharmastock.models.inventory import InventoryLot


def _adjust(client, lot_id: str, quantity_change: int, *, adjustment_type: str = "damage", reason: str = "Broken seal"):
    return client.post(
        "/adjustments",
        json={
            "inventory_id": lot_id,
            "adjustment_type": adjustment_type,
            "quantity_change": quantity_change,
            "reason": reason,
        },
    )


def _lot(session_local, lot_id: str) -> tuple[int, str]:
    with session_local() as db:
        lot = db.get(InventoryLot, lot_id)
        return lot.quantity, lot.status


def test_adjustment_applies_lot_delta_and_writes_audit_row(test_context, make_medicine, make_lot):
    client, session_local = test_context
    with session_local() as db:
        lot_id = make_lot(db, make_medicine(db), quantity=20)

    res = _adjust(client, lot_id, -3)
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["inventory_id"] == lot_id
    assert body["quantity_change"] == -3
    assert body["adjustment_type"] == "damage"

    assert _lot(session_local, lot_id) == (17, "active")
    with session_local() as db:
        assert db.query(StockAdjustment).count() == 1


def test_adjustment_rejects_negative_result(test_context, make_medicine, make_lot):
    client, session_local = test_context
    with session_local() as db:
        lot_id = make_lot(db, make_medicine(db), quantity=2)

    res = _adjust(client, lot_id, -5, adjustment_type="theft", reason="Shelf count mismatch")
    assert res.status_code == 400, res.text
    assert res.json()["error"]["message"] == f"Insufficient stock for inventory lot {lot_id}: available 2, requested 5"

    assert _lot(session_local, lot_id) == (2, "active")
    with session_local() as db:
        assert db.query(StockAdjustment).count() == 0


def test_adjustment_on_unknown_lot_is_not_found(test_context):
    client, _ = test_context
    res = _adjust(client, "missing-lot", -1)
    assert res.status_code == 404, res.text
    assert res.json()["error"]["details"]["resource"] == "Inventory lot"


def test_zero_quantity_change_is_rejected(test_context, make_medicine, make_lot):
    client, session_local = test_context
    with session_local() as db:
        lot_id = make_lot(db, make_medicine(db))

    res = _adjust(client, lot_id, 0)
    assert res.status_code == 422


def test_adjustment_to_zero_sells_out_lot_and_return_reactivates(test_context, make_medicine, make_lot):
    client, session_local = test_context
    with session_local() as db:
        lot_id = make_lot(db, make_medicine(db), quantity=4)

    assert _adjust(client, lot_id, -4, adjustment_type="expired", reason="Past expiry").status_code == 201
    assert _lot(session_local, lot_id) == (0, "sold_out")

    assert _adjust(client, lot_id, 2, adjustment_type="return", reason="Customer return").status_code == 201
    assert _lot(session_local, lot_id) == (2, "active")


def test_adjustment_alerts_carry_batch_number(test_context, make_medicine, make_lot, alert_recorder):
    client, session_local = test_context
    with session_local() as db:
        medicine_id = make_medicine(db, name="Ceftriaxone 1g", quantity=100)
        lot_id = make_lot(db, medicine_id, quantity=12, batch_number="CEF-001")

    assert _adjust(client, lot_id, -12).status_code == 201

    assert alert_recorder.types_for(medicine_id) == ["out_of_stock"]
    alert = alert_recorder.messages[0]
    assert alert["batchNumber"] == "CEF-001"
    assert alert["message"] == "Ceftriaxone 1g (batch CEF-001) is out of stock"


def test_list_adjustments_newest_first(test_context, make_medicine, make_lot):
    client, session_local = test_context
    with session_local() as db:
        lot_id = make_lot(db, make_medicine(db), quantity=30)

    reasons = ["First count", "Second count", "Third count"]
    for reason in reasons:
        assert _adjust(client, lot_id, -1, adjustment_type="correction", reason=reason).status_code == 201

    res = client.get("/adjustments")
    assert res.status_code == 200, res.text
    listed = [row["reason"] for row in res.json()["items"]]
    assert sorted(listed) == sorted(reasons)
    dates = [row["adjustment_date"] for row in res.json()["items"]]
    assert dates == sorted(dates, reverse=True)
    assert res.json()["pagination"]["total"] == 3


def test_adjustment_rows_are_immutable(test_context, make_medicine, make_lot):
    client, session_local = test_context
    with session_local() as db:
        lot_id = make_lot(db, make_medicine(db), quantity=10)
    adjustment_id = _adjust(client, lot_id, -1).json()["id"]

    with session_local() as db:
        adjustment = db.get(StockAdjustment, adjustment_id)
        adjustment.reason = "Rewritten history"
        with pytest.raises(ImmutableRecord):
            db.flush()
        db.rollback()

    with session_local() as db:
        adjustment = db.get(StockAdjustment, adjustment_id)
        db.delete(adjustment)
        with pytest.raises(ImmutableRecord):
            db.flush()
        db.rollback()

    with session_local() as db:
        assert db.get(StockAdjustment, adjustment_id).reason == "Broken seal"
