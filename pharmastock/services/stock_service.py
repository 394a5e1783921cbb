"""
Single entry point for stock quantity changes.

Every delta, whether it targets a Medicine row or an InventoryLot row,
goes through ``apply_medicine_delta`` / ``apply_lot_delta``. Both reject a
result below zero and leave the row untouched when they do. Callers run
inside ``stock_transaction`` so a multi-row operation commits or rolls back
as a whole, and alerts are only evaluated for state that was committed.
"""

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.orm import Session

from pharmastock.core.errors import InsufficientStock, NotFound
from pharmastock.core.observability import log_event
from pharmastock.models.inventory import LOT_STATUS_ACTIVE, LOT_STATUS_SOLD_OUT, InventoryLot
from pharmastock.models.medicine import STOCK_STATUS_ACTIVE, STOCK_STATUS_SOLD_OUT, Medicine
from pharmastock.services.notification_service import (
    StockSnapshot,
    ThresholdNotifier,
    get_notifier,
    snapshot_for_medicine,
)

logger = logging.getLogger("pharmastock.stock")

_PENDING_KEY = "pharmastock.touched_stock_rows"


def derive_stock_status(quantity: int) -> str:
    return STOCK_STATUS_SOLD_OUT if quantity == 0 else STOCK_STATUS_ACTIVE


def derive_lot_status(previous_status: str, new_quantity: int) -> str:
    if new_quantity == 0:
        return LOT_STATUS_SOLD_OUT
    if previous_status == LOT_STATUS_SOLD_OUT:
        return LOT_STATUS_ACTIVE
    return previous_status


def lock_medicines(db: Session, medicine_ids: Iterable[str]) -> dict[str, Medicine]:
    # Ascending id order keeps concurrent multi-item operations deadlock free.
    ordered_ids = sorted(set(medicine_ids))
    if not ordered_ids:
        return {}

    # Pending changes must reach the row before populate_existing reloads it.
    db.flush()
    rows = db.execute(
        select(Medicine)
        .where(Medicine.id.in_(ordered_ids))
        .order_by(Medicine.id.asc())
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().all()
    medicines = {medicine.id: medicine for medicine in rows}

    for medicine_id in ordered_ids:
        if medicine_id not in medicines:
            raise NotFound("Medicine", medicine_id)
    return medicines


def lock_lot(db: Session, lot_id: str) -> InventoryLot:
    db.flush()
    lot = db.execute(
        select(InventoryLot)
        .where(InventoryLot.id == lot_id)
        .with_for_update(of=InventoryLot)
        .execution_options(populate_existing=True)
    ).unique().scalar_one_or_none()
    if lot is None:
        raise NotFound("Inventory lot", lot_id)
    return lot


def _track(db: Session, key: tuple[str, str], row: Medicine | InventoryLot) -> None:
    db.info.setdefault(_PENDING_KEY, {})[key] = row


def apply_medicine_delta(db: Session, medicine: Medicine, delta: int) -> int:
    previous_quantity = medicine.quantity
    new_quantity = previous_quantity + delta
    if new_quantity < 0:
        raise InsufficientStock(
            target_type="medicine",
            target_id=medicine.id,
            available=previous_quantity,
            requested=-delta,
        )

    medicine.quantity = new_quantity
    _track(db, ("medicine", medicine.id), medicine)
    log_event(
        logger,
        "stock_delta_applied",
        ledger="medicine",
        medicine_id=medicine.id,
        delta=delta,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        status=derive_stock_status(new_quantity),
    )
    return new_quantity


def apply_lot_delta(db: Session, lot: InventoryLot, delta: int) -> int:
    previous_quantity = lot.quantity
    new_quantity = previous_quantity + delta
    if new_quantity < 0:
        raise InsufficientStock(
            target_type="inventory lot",
            target_id=lot.id,
            available=previous_quantity,
            requested=-delta,
        )

    previous_status = lot.status
    lot.quantity = new_quantity
    lot.status = derive_lot_status(previous_status, new_quantity)
    _track(db, ("lot", lot.id), lot)
    log_event(
        logger,
        "stock_delta_applied",
        ledger="inventory_lot",
        lot_id=lot.id,
        batch_number=lot.batch_number,
        delta=delta,
        previous_quantity=previous_quantity,
        new_quantity=new_quantity,
        previous_status=previous_status,
        status=lot.status,
    )
    return new_quantity


def apply_delta(db: Session, medicine_id: str, delta: int) -> int:
    medicine = lock_medicines(db, [medicine_id])[medicine_id]
    return apply_medicine_delta(db, medicine, delta)


def _snapshot(row: Medicine | InventoryLot) -> StockSnapshot:
    if isinstance(row, InventoryLot):
        return StockSnapshot(
            medicine_id=row.medicine_id,
            medicine_name=row.medicine.name,
            quantity=row.quantity,
            expiry_date=row.expiry_date,
            unit=row.medicine.unit,
            batch_number=row.batch_number,
        )
    return snapshot_for_medicine(row)


def pending_snapshots(db: Session) -> list[StockSnapshot]:
    touched = db.info.get(_PENDING_KEY, {})
    return [_snapshot(row) for row in touched.values()]


def dispatch_stock_alerts(notifier: ThresholdNotifier, snapshots: list[StockSnapshot]) -> None:
    if not snapshots:
        return
    try:
        notifier.notify(snapshots)
    except Exception as exc:
        log_event(
            logger,
            "stock_alert_dispatch_failed",
            level=logging.ERROR,
            rows=len(snapshots),
            error=str(exc),
        )


def commit_stock_changes(db: Session, notifier: ThresholdNotifier | None = None) -> None:
    # Snapshots are taken before commit so the notifier never reloads expired rows.
    snapshots = pending_snapshots(db)
    try:
        db.commit()
    except Exception:
        rollback_stock_changes(db)
        raise
    db.info.pop(_PENDING_KEY, None)
    dispatch_stock_alerts(notifier or get_notifier(), snapshots)


def rollback_stock_changes(db: Session) -> None:
    db.info.pop(_PENDING_KEY, None)
    db.rollback()


@contextmanager
def stock_transaction(db: Session, notifier: ThresholdNotifier | None = None) -> Iterator[Session]:
    try:
        yield db
        db.flush()
    except Exception:
        rollback_stock_changes(db)
        raise
    commit_stock_changes(db, notifier)
