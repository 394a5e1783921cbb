from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from pharmastock.core.api_docs import error_responses
from pharmastock.core.deps import get_db, get_threshold_notifier
from pharmastock.core.money import to_money
from pharmastock.models.sales import Sale
from pharmastock.schemas.common import PaginationMeta
from pharmastock.schemas.sales import (
    SaleCreate,
    SaleItemOut,
    SaleListOut,
    SaleOut,
    SaleSummaryOut,
    SaleUpdate,
)
from pharmastock.services import sales_service
from pharmastock.services.notification_service import ThresholdNotifier

router = APIRouter(prefix="/sales", tags=["sales"])


def _sale_out(sale: Sale) -> SaleOut:
    return SaleOut(
        id=sale.id,
        sale_number=sale.sale_number,
        sale_date=sale.sale_date,
        customer_name=sale.customer_name,
        customer_phone=sale.customer_phone,
        payment_method=sale.payment_method,
        discount=float(to_money(sale.discount)),
        tax=float(to_money(sale.tax)),
        total_amount=float(to_money(sale.total_amount)),
        items=[
            SaleItemOut(
                id=item.id,
                medicine_id=item.medicine_id,
                quantity=item.quantity,
                unit_price=float(to_money(item.unit_price)),
                discount=float(to_money(item.discount)),
                total_price=float(to_money(item.total_price)),
            )
            for item in sale.items
        ],
        created_at=sale.created_at,
    )


@router.post(
    "",
    response_model=SaleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create sale",
    description="Records a sale and deducts every line from medicine stock in one transaction.",
    responses=error_responses(400, 404, 422, 500),
)
def create_sale(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    sale = sales_service.create_sale(db, payload, notifier=notifier)
    return _sale_out(sale)


@router.get(
    "",
    response_model=SaleListOut,
    summary="List sales",
    responses={
        200: {
            "description": "Paginated sales",
            "content": {
                "application/json": {
                    "example": {
                        "pagination": {
                            "total": 2,
                            "limit": 50,
                            "offset": 0,
                            "count": 2,
                            "has_next": False,
                        },
                        "start_date": None,
                        "end_date": None,
                        "items": [
                            {
                                "id": "sale-id",
                                "sale_number": "S-20260216-7KQ2MX",
                                "sale_date": "2026-02-16",
                                "customer_name": "Abebe Kebede",
                                "total_amount": 91.5,
                                "created_at": "2026-02-16T10:00:00Z",
                            }
                        ],
                    }
                }
            },
        },
        **error_responses(400, 422, 500),
    },
)
def list_sales(
    start_date: date | None = Query(default=None, description="Filter from sale date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to sale date (YYYY-MM-DD)"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")

    rows, total_count = sales_service.list_sales(
        db,
        limit=limit,
        offset=offset,
        start_date=start_date,
        end_date=end_date,
    )
    items = [
        SaleSummaryOut(
            id=row.id,
            sale_number=row.sale_number,
            sale_date=row.sale_date,
            customer_name=row.customer_name,
            total_amount=float(to_money(row.total_amount)),
            created_at=row.created_at,
        )
        for row in rows
    ]
    count = len(items)

    return SaleListOut(
        pagination=PaginationMeta(
            total=total_count,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total_count,
        ),
        start_date=start_date,
        end_date=end_date,
        items=items,
    )


@router.get(
    "/{sale_id}",
    response_model=SaleOut,
    summary="Get sale",
    responses=error_responses(404, 422, 500),
)
def get_sale(sale_id: str, db: Session = Depends(get_db)):
    return _sale_out(sales_service.get_sale(db, sale_id))


@router.put(
    "/{sale_id}",
    response_model=SaleOut,
    summary="Update sale",
    description=(
        "Partial update. When `items` is sent, the previous lines are restored to stock "
        "and the new lines are deducted in the same transaction."
    ),
    responses=error_responses(400, 404, 422, 500),
)
def update_sale(
    sale_id: str,
    payload: SaleUpdate,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    sale = sales_service.update_sale(db, sale_id, payload, notifier=notifier)
    return _sale_out(sale)


@router.delete(
    "/{sale_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete sale",
    description="Restores every line to stock, then deletes the sale.",
    responses=error_responses(404, 500),
)
def delete_sale(
    sale_id: str,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    sales_service.delete_sale(db, sale_id, notifier=notifier)
