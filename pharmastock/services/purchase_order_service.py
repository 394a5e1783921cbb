"""
Purchase order lifecycle and stock receiving.

Two paths move a purchase order into ``received``:

* ``receive_purchase_order`` applies the quantities actually received,
  aggregated per medicine, and overwrites selling price and expiry.
* ``mark_purchase_order_received`` (reached through a plain status change)
  applies the ordered quantities and leaves prices and dates alone.

Both are kept, under different names, and the second logs a warning every
time it runs.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from pharmastock.core.config import settings
from pharmastock.core.errors import AlreadyReceived, InvalidItem, NotFound, TerminalOrder
from pharmastock.core.id_utils import generate_id, generate_reference_number
from pharmastock.core.money import ZERO_MONEY, line_total, sum_money, to_money
from pharmastock.core.observability import log_event
from pharmastock.models.medicine import Medicine
from pharmastock.models.purchase_order import (
    PO_STATUS_DRAFT,
    PO_STATUS_RECEIVED,
    PurchaseOrder,
    PurchaseOrderItem,
)
from pharmastock.schemas.purchase_order import PurchaseOrderCreate, PurchaseOrderReceive
from pharmastock.services.notification_service import ThresholdNotifier
from pharmastock.services.stock_service import apply_medicine_delta, lock_medicines, stock_transaction

logger = logging.getLogger("pharmastock.stock")


@dataclass(frozen=True)
class ReceiptLine:
    medicine_id: str
    quantity_received: int
    selling_price: Decimal
    expiry_date: date


@dataclass(frozen=True)
class ReceiptAggregate:
    medicine_id: str
    total_quantity: int
    selling_price: Decimal
    expiry_date: date
    manufacturing_date: date


SellingPricePolicy = Callable[[Sequence[ReceiptLine]], Decimal]


def mean_selling_price(lines: Sequence[ReceiptLine]) -> Decimal:
    total = sum((to_money(line.selling_price) for line in lines), ZERO_MONEY)
    return to_money(total / len(lines))


def quantity_weighted_selling_price(lines: Sequence[ReceiptLine]) -> Decimal:
    units = sum(line.quantity_received for line in lines)
    weighted = sum((to_money(line.selling_price) * line.quantity_received for line in lines), ZERO_MONEY)
    return to_money(weighted / units)


SELLING_PRICE_POLICIES: dict[str, SellingPricePolicy] = {
    "mean": mean_selling_price,
    "quantity_weighted": quantity_weighted_selling_price,
}


def resolve_selling_price_policy(name: str | None = None) -> SellingPricePolicy:
    key = name or settings.receiving_selling_price_policy
    try:
        return SELLING_PRICE_POLICIES[key]
    except KeyError:
        raise ValueError(f"Unknown selling price policy: {key}") from None


def aggregate_receipt_lines(
    lines: Sequence[ReceiptLine],
    *,
    received_date: date,
    price_policy: SellingPricePolicy | None = None,
) -> list[ReceiptAggregate]:
    policy = price_policy or resolve_selling_price_policy()
    groups: dict[str, list[ReceiptLine]] = defaultdict(list)
    for line in lines:
        groups[line.medicine_id].append(line)

    return [
        ReceiptAggregate(
            medicine_id=medicine_id,
            total_quantity=sum(line.quantity_received for line in group),
            selling_price=policy(group),
            expiry_date=min(line.expiry_date for line in group),
            manufacturing_date=received_date,
        )
        for medicine_id, group in sorted(groups.items())
    ]


def generate_order_number() -> str:
    return generate_reference_number("PO")


def _get_order(db: Session, order_id: str, *, for_update: bool = False) -> PurchaseOrder:
    stmt = select(PurchaseOrder).where(PurchaseOrder.id == order_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    order = db.execute(stmt).scalar_one_or_none()
    if not order:
        raise NotFound("Purchase order", order_id)
    return order


def get_purchase_order(db: Session, order_id: str) -> PurchaseOrder:
    return _get_order(db, order_id)


def create_purchase_order(db: Session, payload: PurchaseOrderCreate) -> PurchaseOrder:
    if not payload.items:
        raise InvalidItem("Purchase order must contain at least one item")

    medicine_ids = {item.medicine_id for item in payload.items}
    found = set(
        db.execute(select(Medicine.id).where(Medicine.id.in_(medicine_ids))).scalars().all()
    )
    missing = sorted(medicine_ids - found)
    if missing:
        raise NotFound("Medicine", missing[0])

    items = [
        PurchaseOrderItem(
            id=generate_id(),
            medicine_id=item.medicine_id,
            position=position,
            quantity=item.quantity,
            unit_price=to_money(item.unit_price),
            total_price=line_total(item.quantity, item.unit_price),
        )
        for position, item in enumerate(payload.items)
    ]
    order = PurchaseOrder(
        id=generate_id(),
        order_number=generate_order_number(),
        supplier_id=payload.supplier_id,
        status=payload.status or PO_STATUS_DRAFT,
        order_date=payload.order_date or date.today(),
        expected_delivery_date=payload.expected_delivery_date,
        notes=payload.notes,
        total_amount=sum_money(item.total_price for item in items),
        items=items,
    )
    db.add(order)
    db.commit()
    db.refresh(order)

    log_event(
        logger,
        "purchase_order_created",
        purchase_order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        items_count=len(payload.items),
        total_amount=float(order.total_amount),
    )
    return order


def list_purchase_orders(
    db: Session,
    *,
    limit: int = 50,
    offset: int = 0,
    status: str | None = None,
    search: str | None = None,
) -> tuple[list[PurchaseOrder], int]:
    count_stmt = select(func.count(PurchaseOrder.id))
    data_stmt = select(PurchaseOrder)

    if status:
        count_stmt = count_stmt.where(PurchaseOrder.status == status)
        data_stmt = data_stmt.where(PurchaseOrder.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        condition = or_(
            PurchaseOrder.order_number.ilike(pattern),
            PurchaseOrder.supplier_id.ilike(pattern),
            PurchaseOrder.notes.ilike(pattern),
        )
        count_stmt = count_stmt.where(condition)
        data_stmt = data_stmt.where(condition)

    total_count = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.asc()).offset(offset).limit(limit)
    ).scalars().all()
    return list(rows), total_count


def _receipt_lines(order: PurchaseOrder, receipt: PurchaseOrderReceive) -> list[ReceiptLine]:
    order_items = {item.id: item for item in order.items}
    lines: list[ReceiptLine] = []
    for entry in receipt.items:
        order_item = order_items.get(entry.purchase_order_item_id)
        if order_item is None:
            raise InvalidItem(
                f"Item {entry.purchase_order_item_id} does not belong to purchase order {order.id}",
                details={"purchase_order_item_id": entry.purchase_order_item_id},
            )
        if not 1 <= entry.quantity_received <= order_item.quantity:
            raise InvalidItem(
                f"Received quantity {entry.quantity_received} for item {order_item.id} "
                f"must be between 1 and ordered quantity {order_item.quantity}",
                details={
                    "purchase_order_item_id": order_item.id,
                    "quantity_received": entry.quantity_received,
                    "quantity_ordered": order_item.quantity,
                },
            )
        lines.append(
            ReceiptLine(
                medicine_id=order_item.medicine_id,
                quantity_received=entry.quantity_received,
                selling_price=to_money(entry.selling_price),
                expiry_date=entry.expiry_date,
            )
        )
    return lines


def receive_purchase_order(
    db: Session,
    order_id: str,
    receipt: PurchaseOrderReceive,
    *,
    notifier: ThresholdNotifier | None = None,
    price_policy: SellingPricePolicy | None = None,
) -> PurchaseOrder:
    with stock_transaction(db, notifier):
        order = _get_order(db, order_id, for_update=True)
        if order.status == PO_STATUS_RECEIVED:
            raise AlreadyReceived(order.id)

        aggregates = aggregate_receipt_lines(
            _receipt_lines(order, receipt),
            received_date=receipt.received_date,
            price_policy=price_policy,
        )
        medicines = lock_medicines(db, [aggregate.medicine_id for aggregate in aggregates])
        for aggregate in aggregates:
            medicine = medicines[aggregate.medicine_id]
            apply_medicine_delta(db, medicine, aggregate.total_quantity)
            medicine.selling_price = aggregate.selling_price
            medicine.expiry_date = aggregate.expiry_date
            medicine.manufacturing_date = aggregate.manufacturing_date

        order.status = PO_STATUS_RECEIVED
        order.received_date = receipt.received_date

    log_event(
        logger,
        "purchase_order_received",
        purchase_order_id=order_id,
        medicines=len(aggregates),
        units=sum(aggregate.total_quantity for aggregate in aggregates),
    )
    return order


def mark_purchase_order_received(
    db: Session,
    order: PurchaseOrder,
    *,
    received_date: date | None = None,
) -> None:
    """
    Apply the ordered quantities as received stock. Prices, expiry and
    manufacturing dates are not touched. Runs inside the caller's
    stock transaction.
    """
    log_event(
        logger,
        "purchase_order_marked_received_without_receipt",
        level=logging.WARNING,
        purchase_order_id=order.id,
        previous_status=order.status,
        note="ordered quantities applied; selling price and expiry not updated",
    )

    ordered: dict[str, int] = defaultdict(int)
    for item in order.items:
        ordered[item.medicine_id] += item.quantity

    medicines = lock_medicines(db, ordered.keys())
    for medicine_id in sorted(ordered):
        apply_medicine_delta(db, medicines[medicine_id], ordered[medicine_id])

    order.status = PO_STATUS_RECEIVED
    order.received_date = received_date or date.today()


def update_purchase_order_status(
    db: Session,
    order_id: str,
    new_status: str,
    *,
    notifier: ThresholdNotifier | None = None,
) -> PurchaseOrder:
    with stock_transaction(db, notifier):
        order = _get_order(db, order_id, for_update=True)
        previous_status = order.status

        if previous_status == PO_STATUS_RECEIVED:
            if new_status != PO_STATUS_RECEIVED:
                raise TerminalOrder(order.id, previous_status, new_status)
        elif new_status == PO_STATUS_RECEIVED:
            mark_purchase_order_received(db, order)
        else:
            order.status = new_status

    log_event(
        logger,
        "purchase_order_status_updated",
        purchase_order_id=order_id,
        previous_status=previous_status,
        status=new_status,
    )
    return order
