import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmastock.core.id_utils import generate_id
from pharmastock.core.observability import log_event
from pharmastock.models.adjustment import StockAdjustment
from pharmastock.schemas.adjustment import StockAdjustmentIn
from pharmastock.services.notification_service import ThresholdNotifier
from pharmastock.services.stock_service import apply_lot_delta, lock_lot, stock_transaction

logger = logging.getLogger("pharmastock.stock")


def create_adjustment(
    db: Session,
    payload: StockAdjustmentIn,
    *,
    notifier: ThresholdNotifier | None = None,
) -> StockAdjustment:
    with stock_transaction(db, notifier):
        lot = lock_lot(db, payload.inventory_id)
        new_quantity = apply_lot_delta(db, lot, payload.quantity_change)

        adjustment = StockAdjustment(
            id=generate_id(),
            inventory_id=lot.id,
            adjustment_type=payload.adjustment_type,
            quantity_change=payload.quantity_change,
            reason=payload.reason,
            adjusted_by=payload.adjusted_by,
            notes=payload.notes,
        )
        db.add(adjustment)

    log_event(
        logger,
        "stock_adjustment_recorded",
        adjustment_id=adjustment.id,
        inventory_id=payload.inventory_id,
        adjustment_type=payload.adjustment_type,
        quantity_change=payload.quantity_change,
        new_quantity=new_quantity,
    )
    return adjustment


def list_adjustments(
    db: Session,
    *,
    limit: int | None = None,
    offset: int = 0,
) -> list[StockAdjustment]:
    stmt = (
        select(StockAdjustment)
        .order_by(StockAdjustment.adjustment_date.desc(), StockAdjustment.id.asc())
        .offset(offset)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars().all())


def count_adjustments(db: Session) -> int:
    return int(db.execute(select(func.count(StockAdjustment.id))).scalar_one())
