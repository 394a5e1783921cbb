from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pharmastock.core.api_docs import error_responses
from pharmastock.core.deps import get_db, get_threshold_notifier
from pharmastock.models.adjustment import StockAdjustment
from pharmastock.schemas.adjustment import StockAdjustmentIn, StockAdjustmentListOut, StockAdjustmentOut
from pharmastock.schemas.common import PaginationMeta
from pharmastock.services import adjustment_service
from pharmastock.services.notification_service import ThresholdNotifier

router = APIRouter(prefix="/adjustments", tags=["adjustments"])


def _adjustment_out(row: StockAdjustment) -> StockAdjustmentOut:
    return StockAdjustmentOut(
        id=row.id,
        inventory_id=row.inventory_id,
        adjustment_type=row.adjustment_type,
        quantity_change=row.quantity_change,
        reason=row.reason,
        adjusted_by=row.adjusted_by,
        notes=row.notes,
        adjustment_date=row.adjustment_date,
    )


@router.post(
    "",
    response_model=StockAdjustmentOut,
    status_code=status.HTTP_201_CREATED,
    summary="Record stock adjustment",
    description="Applies a signed quantity change to an inventory lot and writes an audit row.",
    responses=error_responses(400, 404, 422, 500),
)
def create_adjustment(
    payload: StockAdjustmentIn,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    adjustment = adjustment_service.create_adjustment(db, payload, notifier=notifier)
    return _adjustment_out(adjustment)


@router.get(
    "",
    response_model=StockAdjustmentListOut,
    summary="List stock adjustments",
    description="Newest first.",
    responses=error_responses(422, 500),
)
def list_adjustments(
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    total = adjustment_service.count_adjustments(db)
    items = [_adjustment_out(row) for row in adjustment_service.list_adjustments(db, limit=limit, offset=offset)]
    count = len(items)
    return StockAdjustmentListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )
