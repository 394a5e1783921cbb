import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmastock.core.errors import DuplicateBatchNumber, NotFound
from pharmastock.core.id_utils import generate_id
from pharmastock.core.money import to_money
from pharmastock.core.observability import log_event
from pharmastock.models.inventory import LOT_STATUS_ACTIVE, InventoryLot
from pharmastock.models.medicine import Medicine
from pharmastock.schemas.inventory import InventoryLotIn
from pharmastock.services.notification_service import ThresholdNotifier, ThresholdRules
from pharmastock.services.stock_service import apply_lot_delta, lock_lot, stock_transaction

logger = logging.getLogger("pharmastock.stock")


@dataclass(frozen=True)
class MedicineStockLevel:
    medicine: Medicine
    lot_count: int
    lot_quantity: int


def _batch_number_taken(db: Session, batch_number: str) -> bool:
    return db.execute(
        select(InventoryLot.id).where(InventoryLot.batch_number == batch_number)
    ).first() is not None


def create_lot(
    db: Session,
    payload: InventoryLotIn,
    *,
    notifier: ThresholdNotifier | None = None,
) -> InventoryLot:
    if db.get(Medicine, payload.medicine_id) is None:
        raise NotFound("Medicine", payload.medicine_id)
    if _batch_number_taken(db, payload.batch_number):
        raise DuplicateBatchNumber(payload.batch_number)

    try:
        with stock_transaction(db, notifier):
            lot = InventoryLot(
                id=generate_id(),
                medicine_id=payload.medicine_id,
                batch_number=payload.batch_number,
                quantity=0,
                unit_price=to_money(payload.unit_price),
                selling_price=to_money(payload.selling_price),
                expiry_date=payload.expiry_date,
                purchase_date=payload.purchase_date,
                supplier_id=payload.supplier_id,
                location=payload.location,
                status=payload.status or LOT_STATUS_ACTIVE,
                notes=payload.notes,
            )
            db.add(lot)
            db.flush()
            # Opening quantity goes through the lot mutator so status is derived in one place.
            apply_lot_delta(db, lot, payload.quantity)
    except IntegrityError:
        raise DuplicateBatchNumber(payload.batch_number) from None

    log_event(
        logger,
        "inventory_lot_created",
        lot_id=lot.id,
        medicine_id=payload.medicine_id,
        batch_number=payload.batch_number,
        quantity=payload.quantity,
    )
    return lot


def get_lot(db: Session, lot_id: str) -> InventoryLot:
    lot = db.execute(
        select(InventoryLot).where(InventoryLot.id == lot_id)
    ).unique().scalar_one_or_none()
    if not lot:
        raise NotFound("Inventory lot", lot_id)
    return lot


def list_lots(
    db: Session,
    *,
    limit: int = 50,
    offset: int = 0,
    medicine_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
    expiry_date_from: date | None = None,
    expiry_date_to: date | None = None,
) -> tuple[list[InventoryLot], int]:
    conditions = []
    if medicine_id:
        conditions.append(InventoryLot.medicine_id == medicine_id)
    if status:
        conditions.append(InventoryLot.status == status)
    if expiry_date_from:
        conditions.append(InventoryLot.expiry_date >= expiry_date_from)
    if expiry_date_to:
        conditions.append(InventoryLot.expiry_date <= expiry_date_to)
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                InventoryLot.batch_number.ilike(pattern),
                InventoryLot.medicine_id.in_(select(Medicine.id).where(Medicine.name.ilike(pattern))),
            )
        )

    count_stmt = select(func.count(InventoryLot.id)).where(*conditions)
    data_stmt = (
        select(InventoryLot)
        .where(*conditions)
        .order_by(InventoryLot.created_at.desc(), InventoryLot.id.asc())
        .offset(offset)
        .limit(limit)
    )

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(data_stmt).unique().scalars().all()
    return list(rows), total


def update_lot_quantity(
    db: Session,
    lot_id: str,
    quantity_change: int,
    *,
    notifier: ThresholdNotifier | None = None,
) -> InventoryLot:
    """Direct lot quantity change. Unlike an adjustment, no audit row is written."""
    with stock_transaction(db, notifier):
        lot = lock_lot(db, lot_id)
        apply_lot_delta(db, lot, quantity_change)
    return lot


def get_medicine_stock(db: Session, medicine_id: str) -> MedicineStockLevel:
    medicine = db.get(Medicine, medicine_id)
    if medicine is None:
        raise NotFound("Medicine", medicine_id)

    lot_count, lot_quantity = db.execute(
        select(func.count(InventoryLot.id), func.coalesce(func.sum(InventoryLot.quantity), 0)).where(
            InventoryLot.medicine_id == medicine_id,
            InventoryLot.status == LOT_STATUS_ACTIVE,
        )
    ).one()
    return MedicineStockLevel(medicine=medicine, lot_count=int(lot_count), lot_quantity=int(lot_quantity))


@dataclass(frozen=True)
class InventorySummary:
    total_items: int
    active_items: int
    total_value: Decimal
    expiring_items: int
    low_stock_items: int


def _expiring_condition(today: date, days: int):
    # Includes active lots already past expiry.
    return InventoryLot.expiry_date <= today + timedelta(days=days)


def _low_stock_condition(threshold: int):
    return InventoryLot.quantity <= threshold


def get_inventory_summary(db: Session, *, today: date, rules: ThresholdRules) -> InventorySummary:
    active = InventoryLot.status == LOT_STATUS_ACTIVE

    def _count(*conditions) -> int:
        return int(db.execute(select(func.count(InventoryLot.id)).where(*conditions)).scalar_one())

    total_value = db.execute(
        select(func.coalesce(func.sum(InventoryLot.quantity * InventoryLot.unit_price), 0)).where(active)
    ).scalar_one()

    return InventorySummary(
        total_items=_count(),
        active_items=_count(active),
        total_value=to_money(total_value),
        expiring_items=_count(active, _expiring_condition(today, rules.expiring_soon_days)),
        low_stock_items=_count(active, _low_stock_condition(rules.low_stock_threshold)),
    )


def list_expiring_lots(db: Session, *, today: date, days: int) -> list[InventoryLot]:
    rows = db.execute(
        select(InventoryLot)
        .where(InventoryLot.status == LOT_STATUS_ACTIVE, _expiring_condition(today, days))
        .order_by(InventoryLot.expiry_date.asc(), InventoryLot.id.asc())
    ).scalars().all()
    return list(rows)


def list_low_stock_lots(db: Session, *, threshold: int) -> list[InventoryLot]:
    rows = db.execute(
        select(InventoryLot)
        .where(InventoryLot.status == LOT_STATUS_ACTIVE, _low_stock_condition(threshold))
        .order_by(InventoryLot.quantity.asc(), InventoryLot.id.asc())
    ).scalars().all()
    return list(rows)
