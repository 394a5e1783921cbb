import logging
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmastock.core.errors import EmptyCart, InvalidItem, NotFound
from pharmastock.core.id_utils import generate_id, generate_reference_number
from pharmastock.core.money import ZERO_MONEY, line_total, sum_money, to_money
from pharmastock.core.observability import log_event
from pharmastock.models.sales import Sale, SaleItem
from pharmastock.schemas.sales import SaleCreate, SaleItemIn, SaleItemPatch, SaleUpdate
from pharmastock.services.notification_service import ThresholdNotifier
from pharmastock.services.stock_service import apply_medicine_delta, lock_medicines, stock_transaction

logger = logging.getLogger("pharmastock.stock")


def generate_sale_number() -> str:
    return generate_reference_number("S")


def _build_sale_items(items: Iterable[SaleItemIn | SaleItemPatch]) -> list[SaleItem]:
    rows: list[SaleItem] = []
    for position, item in enumerate(items):
        unit_price = to_money(item.unit_price)
        discount = to_money(item.discount) if item.discount is not None else ZERO_MONEY
        if discount > unit_price:
            raise InvalidItem(
                f"Discount {discount} exceeds unit price {unit_price} for medicine {item.medicine_id}",
                details={"medicine_id": item.medicine_id},
            )
        rows.append(
            SaleItem(
                id=generate_id(),
                medicine_id=item.medicine_id,
                position=position,
                quantity=item.quantity,
                unit_price=unit_price,
                discount=discount,
                total_price=line_total(item.quantity, unit_price, discount),
            )
        )
    return rows


def sale_total(items: Iterable[SaleItem], *, discount: Decimal, tax: Decimal) -> Decimal:
    # discount is a flat amount off the whole sale, not per line
    subtotal = sum_money(item.total_price for item in items)
    discount = to_money(discount)
    if discount > subtotal:
        raise InvalidItem(
            f"Sale discount {discount} exceeds subtotal {subtotal}",
            details={"discount": float(discount), "subtotal": float(subtotal)},
        )
    return to_money(subtotal - discount + to_money(tax))


def _get_sale(db: Session, sale_id: str, *, for_update: bool = False) -> Sale:
    stmt = select(Sale).where(Sale.id == sale_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    sale = db.execute(stmt).scalar_one_or_none()
    if not sale:
        raise NotFound("Sale", sale_id)
    return sale


def get_sale(db: Session, sale_id: str) -> Sale:
    return _get_sale(db, sale_id)


def create_sale(
    db: Session,
    payload: SaleCreate,
    *,
    notifier: ThresholdNotifier | None = None,
) -> Sale:
    if not payload.items:
        raise EmptyCart()

    discount = to_money(payload.discount)
    tax = to_money(payload.tax)

    with stock_transaction(db, notifier):
        medicines = lock_medicines(db, [item.medicine_id for item in payload.items])
        for item in payload.items:
            apply_medicine_delta(db, medicines[item.medicine_id], -item.quantity)

        items = _build_sale_items(payload.items)
        sale = Sale(
            id=generate_id(),
            sale_number=generate_sale_number(),
            sale_date=payload.sale_date or date.today(),
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            payment_method=payload.payment_method,
            discount=discount,
            tax=tax,
            total_amount=sale_total(items, discount=discount, tax=tax),
            items=items,
        )
        db.add(sale)

    log_event(
        logger,
        "sale_created",
        sale_id=sale.id,
        sale_number=sale.sale_number,
        items_count=len(payload.items),
        total_amount=float(sale.total_amount),
    )
    return sale


_CLEARABLE_FIELDS = ("customer_name", "customer_phone", "payment_method")


def _apply_scalar_patch(sale: Sale, patch: SaleUpdate) -> None:
    # An explicit null clears a nullable field; an omitted field keeps its value.
    provided = patch.model_fields_set
    for field in _CLEARABLE_FIELDS:
        if field in provided:
            setattr(sale, field, getattr(patch, field))
    if patch.sale_date is not None:
        sale.sale_date = patch.sale_date
    if patch.discount is not None:
        sale.discount = to_money(patch.discount)
    if patch.tax is not None:
        sale.tax = to_money(patch.tax)


def _replace_sale_items(db: Session, sale: Sale, patch_items: list[SaleItemPatch]) -> None:
    complete_items = [item for item in patch_items if item.is_complete()]
    skipped = len(patch_items) - len(complete_items)
    if skipped:
        log_event(
            logger,
            "sale_update_items_skipped",
            level=logging.WARNING,
            sale_id=sale.id,
            skipped=skipped,
        )
    if not complete_items:
        raise EmptyCart("Sale update must contain at least one item with medicine_id, quantity and unit_price")

    old_items = list(sale.items)
    medicines = lock_medicines(
        db,
        [item.medicine_id for item in old_items] + [item.medicine_id for item in complete_items],
    )

    # Restore first so a re-submitted line can reuse its own quantity.
    for item in old_items:
        apply_medicine_delta(db, medicines[item.medicine_id], item.quantity)
    for item in complete_items:
        apply_medicine_delta(db, medicines[item.medicine_id], -item.quantity)

    new_items = _build_sale_items(complete_items)
    sale.items.clear()
    db.flush()
    sale.items.extend(new_items)


def update_sale(
    db: Session,
    sale_id: str,
    patch: SaleUpdate,
    *,
    notifier: ThresholdNotifier | None = None,
) -> Sale:
    with stock_transaction(db, notifier):
        sale = _get_sale(db, sale_id, for_update=True)
        _apply_scalar_patch(sale, patch)
        if patch.items is not None:
            _replace_sale_items(db, sale, patch.items)
        sale.total_amount = sale_total(sale.items, discount=sale.discount, tax=sale.tax)

    log_event(
        logger,
        "sale_updated",
        sale_id=sale.id,
        items_replaced=patch.items is not None,
        total_amount=float(sale.total_amount),
    )
    return sale


def delete_sale(
    db: Session,
    sale_id: str,
    *,
    notifier: ThresholdNotifier | None = None,
) -> None:
    with stock_transaction(db, notifier):
        sale = _get_sale(db, sale_id, for_update=True)
        items = list(sale.items)
        medicines = lock_medicines(db, [item.medicine_id for item in items])
        for item in items:
            apply_medicine_delta(db, medicines[item.medicine_id], item.quantity)
        db.delete(sale)

    log_event(logger, "sale_deleted", sale_id=sale_id, items_restored=len(items))


def list_sales(
    db: Session,
    *,
    limit: int = 50,
    offset: int = 0,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[list[Sale], int]:
    count_stmt = select(func.count(Sale.id))
    data_stmt = select(Sale)

    if start_date:
        count_stmt = count_stmt.where(Sale.sale_date >= start_date)
        data_stmt = data_stmt.where(Sale.sale_date >= start_date)
    if end_date:
        count_stmt = count_stmt.where(Sale.sale_date <= end_date)
        data_stmt = data_stmt.where(Sale.sale_date <= end_date)

    total_count = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(Sale.created_at.desc(), Sale.id.asc()).offset(offset).limit(limit)
    ).scalars().all()
    return list(rows), total_count


__all__ = [
    "create_sale",
    "delete_sale",
    "generate_sale_number",
    "get_sale",
    "list_sales",
    "sale_total",
    "update_sale",
]
