from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pharmastock.core.api_docs import error_responses
from pharmastock.core.deps import get_db, get_threshold_notifier
from pharmastock.core.money import to_money
from pharmastock.models.purchase_order import PurchaseOrder
from pharmastock.schemas.common import PaginationMeta
from pharmastock.schemas.purchase_order import (
    PurchaseOrderCreate,
    PurchaseOrderItemOut,
    PurchaseOrderListOut,
    PurchaseOrderOut,
    PurchaseOrderReceive,
    PurchaseOrderStatus,
    PurchaseOrderStatusUpdateIn,
    PurchaseOrderSummaryOut,
)
from pharmastock.services import purchase_order_service
from pharmastock.services.notification_service import ThresholdNotifier

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])


def _purchase_order_out(order: PurchaseOrder) -> PurchaseOrderOut:
    return PurchaseOrderOut(
        id=order.id,
        order_number=order.order_number,
        supplier_id=order.supplier_id,
        status=order.status,
        order_date=order.order_date,
        expected_delivery_date=order.expected_delivery_date,
        received_date=order.received_date,
        notes=order.notes,
        total_amount=float(to_money(order.total_amount)),
        items=[
            PurchaseOrderItemOut(
                id=item.id,
                medicine_id=item.medicine_id,
                quantity=item.quantity,
                unit_price=float(to_money(item.unit_price)),
                total_price=float(to_money(item.total_price)),
            )
            for item in order.items
        ],
        created_at=order.created_at,
    )


@router.post(
    "",
    response_model=PurchaseOrderOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create purchase order",
    responses=error_responses(400, 404, 422, 500),
)
def create_purchase_order(payload: PurchaseOrderCreate, db: Session = Depends(get_db)):
    order = purchase_order_service.create_purchase_order(db, payload)
    return _purchase_order_out(order)


@router.get(
    "",
    response_model=PurchaseOrderListOut,
    summary="List purchase orders",
    responses=error_responses(422, 500),
)
def list_purchase_orders(
    status_filter: PurchaseOrderStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=100, description="Matches order number, supplier or notes"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    rows, total = purchase_order_service.list_purchase_orders(
        db,
        limit=limit,
        offset=offset,
        status=status_filter,
        search=search,
    )
    items = [
        PurchaseOrderSummaryOut(
            id=row.id,
            order_number=row.order_number,
            supplier_id=row.supplier_id,
            status=row.status,
            order_date=row.order_date,
            received_date=row.received_date,
            total_amount=float(to_money(row.total_amount)),
            items_count=len(row.items),
            created_at=row.created_at,
        )
        for row in rows
    ]
    count = len(items)
    return PurchaseOrderListOut(
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
        items=items,
    )


@router.get(
    "/{order_id}",
    response_model=PurchaseOrderOut,
    summary="Get purchase order",
    responses=error_responses(404, 422, 500),
)
def get_purchase_order(order_id: str, db: Session = Depends(get_db)):
    return _purchase_order_out(purchase_order_service.get_purchase_order(db, order_id))


@router.post(
    "/{order_id}/receive",
    response_model=PurchaseOrderOut,
    summary="Receive purchase order",
    description=(
        "Adds the received quantities to medicine stock, aggregated per medicine, "
        "and overwrites selling price, expiry date and manufacturing date."
    ),
    responses=error_responses(400, 404, 409, 422, 500),
)
def receive_purchase_order(
    order_id: str,
    payload: PurchaseOrderReceive,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    order = purchase_order_service.receive_purchase_order(db, order_id, payload, notifier=notifier)
    return _purchase_order_out(order)


@router.patch(
    "/{order_id}/status",
    response_model=PurchaseOrderOut,
    summary="Update purchase order status",
    description=(
        "Received orders are terminal. Moving an order to `received` here applies the "
        "ordered quantities without updating prices or expiry; prefer the receive endpoint."
    ),
    responses=error_responses(404, 409, 422, 500),
)
def update_purchase_order_status(
    order_id: str,
    payload: PurchaseOrderStatusUpdateIn,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    order = purchase_order_service.update_purchase_order_status(
        db, order_id, payload.status, notifier=notifier
    )
    return _purchase_order_out(order)
