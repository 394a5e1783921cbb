import pytest

from pharmastock.core.errors import InsufficientStock, NotFound
from pharmastock.models.inventory import (
    LOT_STATUS_ACTIVE,
    LOT_STATUS_DAMAGED,
    LOT_STATUS_EXPIRED,
    LOT_STATUS_SOLD_OUT,
    InventoryLot,
)
from pharmastock.models.medicine import Medicine
from pharmastock.services.stock_service import (
    apply_delta,
    apply_lot_delta,
    derive_lot_status,
    derive_stock_status,
    lock_lot,
    lock_medicines,
    pending_snapshots,
    stock_transaction,
)


def test_apply_delta_returns_new_quantity(db, make_medicine, notifier):
    medicine_id = make_medicine(db, quantity=40)

    with stock_transaction(db, notifier):
        new_quantity = apply_delta(db, medicine_id, -15)

    assert new_quantity == 25
    assert db.get(Medicine, medicine_id).quantity == 25


def test_apply_delta_rejects_negative_result_and_leaves_row_untouched(db, make_medicine, notifier, alert_recorder):
    medicine_id = make_medicine(db, quantity=4)

    with pytest.raises(InsufficientStock) as exc_info:
        with stock_transaction(db, notifier):
            apply_delta(db, medicine_id, -10)

    err = exc_info.value
    assert err.available == 4
    assert err.requested == 10
    assert str(err) == f"Insufficient stock for medicine {medicine_id}: available 4, requested 10"
    assert db.get(Medicine, medicine_id).quantity == 4
    assert alert_recorder.messages == []


def test_apply_delta_allows_exact_depletion(db, make_medicine, notifier, alert_recorder):
    medicine_id = make_medicine(db, quantity=7)

    with stock_transaction(db, notifier):
        apply_delta(db, medicine_id, -7)

    medicine = db.get(Medicine, medicine_id)
    assert medicine.quantity == 0
    assert medicine.status == "sold_out"
    assert alert_recorder.types_for(medicine_id) == ["out_of_stock"]


def test_lock_medicines_reports_missing_id(db, make_medicine):
    medicine_id = make_medicine(db)

    with pytest.raises(NotFound) as exc_info:
        lock_medicines(db, [medicine_id, "missing-medicine"])

    assert exc_info.value.resource == "Medicine"
    assert exc_info.value.resource_id == "missing-medicine"
    db.rollback()


def test_lock_medicines_returns_every_requested_row(db, make_medicine):
    first = make_medicine(db, name="Amoxicillin 250mg")
    second = make_medicine(db, name="Ibuprofen 400mg")

    locked = lock_medicines(db, [second, first, second])

    assert set(locked) == {first, second}
    db.rollback()


def test_lock_lot_reports_missing_lot(db):
    with pytest.raises(NotFound) as exc_info:
        lock_lot(db, "missing-lot")

    assert exc_info.value.resource == "Inventory lot"
    db.rollback()


def test_derive_stock_status():
    assert derive_stock_status(0) == "sold_out"
    assert derive_stock_status(1) == "active"


@pytest.mark.parametrize(
    ("previous_status", "new_quantity", "expected"),
    [
        (LOT_STATUS_ACTIVE, 0, LOT_STATUS_SOLD_OUT),
        (LOT_STATUS_DAMAGED, 0, LOT_STATUS_SOLD_OUT),
        (LOT_STATUS_SOLD_OUT, 5, LOT_STATUS_ACTIVE),
        (LOT_STATUS_ACTIVE, 5, LOT_STATUS_ACTIVE),
        (LOT_STATUS_EXPIRED, 5, LOT_STATUS_EXPIRED),
        (LOT_STATUS_DAMAGED, 3, LOT_STATUS_DAMAGED),
    ],
)
def test_derive_lot_status(previous_status, new_quantity, expected):
    assert derive_lot_status(previous_status, new_quantity) == expected


def test_lot_status_round_trip(db, make_medicine, make_lot, notifier):
    medicine_id = make_medicine(db)
    lot_id = make_lot(db, medicine_id, quantity=6)

    with stock_transaction(db, notifier):
        apply_lot_delta(db, lock_lot(db, lot_id), -6)
    assert db.get(InventoryLot, lot_id).status == LOT_STATUS_SOLD_OUT

    with stock_transaction(db, notifier):
        apply_lot_delta(db, lock_lot(db, lot_id), 4)
    lot = db.get(InventoryLot, lot_id)
    assert lot.status == LOT_STATUS_ACTIVE
    assert lot.quantity == 4


def test_rollback_discards_queued_snapshots(db, make_medicine, notifier, alert_recorder):
    medicine_id = make_medicine(db, quantity=12)

    with pytest.raises(RuntimeError):
        with stock_transaction(db, notifier):
            apply_delta(db, medicine_id, -10)
            assert len(pending_snapshots(db)) == 1
            raise RuntimeError("boom")

    assert pending_snapshots(db) == []
    assert alert_recorder.messages == []
    assert db.get(Medicine, medicine_id).quantity == 12


def test_snapshot_is_taken_once_per_row(db, make_medicine, notifier, alert_recorder):
    medicine_id = make_medicine(db, quantity=12)

    with stock_transaction(db, notifier):
        apply_delta(db, medicine_id, -3)
        apply_delta(db, medicine_id, -4)

    assert alert_recorder.types_for(medicine_id) == ["low_stock"]
    assert alert_recorder.messages[0]["quantity"] == 5
    assert alert_recorder.messages[0]["priority"] == "high"


def test_failing_subscriber_does_not_fail_mutation(db, make_medicine, notifier, alert_recorder):
    medicine_id = make_medicine(db, quantity=12)

    def broken_subscriber(message: dict) -> None:
        raise ConnectionError("socket closed")

    notifier.broadcaster.subscribe(broken_subscriber, subscriber_id="broken")

    with stock_transaction(db, notifier):
        apply_delta(db, medicine_id, -6)

    assert db.get(Medicine, medicine_id).quantity == 6
    assert alert_recorder.types_for(medicine_id) == ["low_stock"]


def test_notifier_failure_is_swallowed_after_commit(db, make_medicine, notifier, monkeypatch):
    medicine_id = make_medicine(db, quantity=12)

    def exploding_notify(snapshots):
        raise RuntimeError("notifier down")

    monkeypatch.setattr(notifier, "notify", exploding_notify)

    with stock_transaction(db, notifier):
        apply_delta(db, medicine_id, -2)

    assert db.get(Medicine, medicine_id).quantity == 10
