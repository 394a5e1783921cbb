from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from pharmastock.core.api_docs import error_responses
from pharmastock.core.deps import get_db, get_threshold_notifier
from pharmastock.core.money import to_money
from pharmastock.models.inventory import InventoryLot
from pharmastock.schemas.common import PaginationMeta
from pharmastock.schemas.inventory import (
    InventoryLotIn,
    InventoryLotListOut,
    InventoryLotOut,
    InventorySummaryOut,
    LotQuantityUpdateIn,
    LotStatus,
    MedicineStockOut,
)
from pharmastock.services import inventory_service
from pharmastock.services.notification_service import ThresholdNotifier

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _lot_out(lot: InventoryLot) -> InventoryLotOut:
    return InventoryLotOut(
        id=lot.id,
        medicine_id=lot.medicine_id,
        medicine_name=lot.medicine.name,
        batch_number=lot.batch_number,
        quantity=lot.quantity,
        unit_price=float(to_money(lot.unit_price)),
        selling_price=float(to_money(lot.selling_price)),
        expiry_date=lot.expiry_date,
        purchase_date=lot.purchase_date,
        supplier_id=lot.supplier_id,
        location=lot.location,
        status=lot.status,
        notes=lot.notes,
        created_at=lot.created_at,
    )


@router.post(
    "/lots",
    response_model=InventoryLotOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create inventory lot",
    responses=error_responses(404, 409, 422, 500),
)
def create_lot(
    payload: InventoryLotIn,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    lot = inventory_service.create_lot(db, payload, notifier=notifier)
    return _lot_out(lot)


@router.get(
    "/lots",
    response_model=InventoryLotListOut,
    summary="List inventory lots",
    responses={
        200: {
            "description": "Paginated inventory lots",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "lot-id",
                                "medicine_id": "medicine-id",
                                "medicine_name": "Amoxicillin 250mg",
                                "batch_number": "AMX-2026-014",
                                "quantity": 120,
                                "unit_price": 8.0,
                                "selling_price": 12.5,
                                "expiry_date": "2027-06-30",
                                "purchase_date": "2026-02-16",
                                "supplier_id": None,
                                "location": "Shelf B2",
                                "status": "active",
                                "notes": None,
                                "created_at": "2026-02-16T10:00:00Z",
                            }
                        ],
                        "pagination": {
                            "total": 1,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": False,
                        },
                    }
                }
            },
        },
        **error_responses(400, 422, 500),
    },
)
def list_lots(
    medicine_id: str | None = Query(default=None, description="Optional medicine filter"),
    lot_status: LotStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None, max_length=100, description="Matches batch number or medicine name"),
    expiry_date_from: date | None = Query(default=None),
    expiry_date_to: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
):
    if expiry_date_from and expiry_date_to and expiry_date_to < expiry_date_from:
        raise HTTPException(status_code=400, detail="expiry_date_to cannot be before expiry_date_from")

    rows, total = inventory_service.list_lots(
        db,
        limit=limit,
        offset=offset,
        medicine_id=medicine_id,
        status=lot_status,
        search=search,
        expiry_date_from=expiry_date_from,
        expiry_date_to=expiry_date_to,
    )
    items = [_lot_out(row) for row in rows]
    count = len(items)
    return InventoryLotListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )


@router.get(
    "/summary",
    response_model=InventorySummaryOut,
    summary="Inventory lot summary",
    description="Counts and stock value over active lots, using the configured alert thresholds.",
    responses=error_responses(500),
)
def get_inventory_summary(
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    rules = notifier.rules
    summary = inventory_service.get_inventory_summary(db, today=notifier.now().date(), rules=rules)
    return InventorySummaryOut(
        total_items=summary.total_items,
        active_items=summary.active_items,
        total_value=float(summary.total_value),
        expiring_items=summary.expiring_items,
        low_stock_items=summary.low_stock_items,
        expiring_soon_days=rules.expiring_soon_days,
        low_stock_threshold=rules.low_stock_threshold,
    )


@router.get(
    "/expiring",
    response_model=list[InventoryLotOut],
    summary="Active lots expiring within a number of days",
    description="Includes lots already past expiry. Ordered by expiry date.",
    responses=error_responses(422, 500),
)
def list_expiring_lots(
    days: int | None = Query(default=None, ge=0, le=3650, description="Defaults to the expiring-soon window"),
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    window = days if days is not None else notifier.rules.expiring_soon_days
    rows = inventory_service.list_expiring_lots(db, today=notifier.now().date(), days=window)
    return [_lot_out(row) for row in rows]


@router.get(
    "/low-stock",
    response_model=list[InventoryLotOut],
    summary="Active lots at or below a stock threshold",
    responses=error_responses(422, 500),
)
def list_low_stock_lots(
    threshold: int | None = Query(default=None, ge=0, description="Defaults to the low-stock threshold"),
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    cutoff = threshold if threshold is not None else notifier.rules.low_stock_threshold
    rows = inventory_service.list_low_stock_lots(db, threshold=cutoff)
    return [_lot_out(row) for row in rows]


@router.get(
    "/lots/{lot_id}",
    response_model=InventoryLotOut,
    summary="Get inventory lot",
    responses=error_responses(404, 422, 500),
)
def get_lot(lot_id: str, db: Session = Depends(get_db)):
    return _lot_out(inventory_service.get_lot(db, lot_id))


@router.patch(
    "/lots/{lot_id}/quantity",
    response_model=InventoryLotOut,
    summary="Change lot quantity",
    description="Applies a signed quantity change without an audit row. Use `/adjustments` to record why stock moved.",
    responses=error_responses(400, 404, 422, 500),
)
def update_lot_quantity(
    lot_id: str,
    payload: LotQuantityUpdateIn,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    lot = inventory_service.update_lot_quantity(db, lot_id, payload.quantity_change, notifier=notifier)
    return _lot_out(lot)


@router.get(
    "/medicines/{medicine_id}/stock",
    response_model=MedicineStockOut,
    summary="Get stock level for a medicine",
    description="`quantity` is the medicine counter; `lot_quantity` sums active lots and is reported separately.",
    responses=error_responses(404, 422, 500),
)
def get_medicine_stock(medicine_id: str, db: Session = Depends(get_db)):
    level = inventory_service.get_medicine_stock(db, medicine_id)
    medicine = level.medicine
    return MedicineStockOut(
        medicine_id=medicine.id,
        name=medicine.name,
        unit=medicine.unit,
        quantity=medicine.quantity,
        status=medicine.status,
        selling_price=float(to_money(medicine.selling_price)),
        expiry_date=medicine.expiry_date,
        lot_count=level.lot_count,
        lot_quantity=level.lot_quantity,
    )
