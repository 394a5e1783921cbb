from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from pharmastock.schemas.common import PaginationMeta

PurchaseOrderStatus = Literal["draft", "ordered", "received", "cancelled"]


class PurchaseOrderItemIn(BaseModel):
    medicine_id: str = Field(min_length=1, max_length=36)
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0, description="Unit cost agreed with the supplier")


class PurchaseOrderCreate(BaseModel):
    supplier_id: str = Field(min_length=1, max_length=36)
    order_date: date | None = None
    expected_delivery_date: date | None = None
    status: Literal["draft", "ordered"] = "draft"
    notes: str | None = Field(default=None, max_length=2000)
    items: list[PurchaseOrderItemIn] = Field(min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "supplier_id": "supplier-id-here",
                "order_date": "2026-02-16",
                "expected_delivery_date": "2026-02-20",
                "status": "ordered",
                "items": [
                    {"medicine_id": "medicine-id-here", "quantity": 100, "unit_price": 8.0},
                ],
            }
        }
    )


class ReceiveItemIn(BaseModel):
    purchase_order_item_id: str = Field(min_length=1, max_length=36)
    quantity_received: int = Field(description="Must be between 1 and the ordered quantity.")
    selling_price: Decimal = Field(ge=0)
    expiry_date: date


class PurchaseOrderReceive(BaseModel):
    received_date: date
    items: list[ReceiveItemIn] = Field(min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "received_date": "2026-02-20",
                "items": [
                    {
                        "purchase_order_item_id": "purchase-order-item-id",
                        "quantity_received": 100,
                        "selling_price": 12.5,
                        "expiry_date": "2027-06-30",
                    }
                ],
            }
        }
    )


class PurchaseOrderStatusUpdateIn(BaseModel):
    status: PurchaseOrderStatus


class PurchaseOrderItemOut(BaseModel):
    id: str
    medicine_id: str
    quantity: int
    unit_price: float
    total_price: float


class PurchaseOrderOut(BaseModel):
    id: str
    order_number: str
    supplier_id: str
    status: PurchaseOrderStatus
    order_date: date
    expected_delivery_date: date | None = None
    received_date: date | None = None
    notes: str | None = None
    total_amount: float
    items: list[PurchaseOrderItemOut]
    created_at: datetime


class PurchaseOrderSummaryOut(BaseModel):
    id: str
    order_number: str
    supplier_id: str
    status: PurchaseOrderStatus
    order_date: date
    received_date: date | None = None
    total_amount: float
    items_count: int
    created_at: datetime


class PurchaseOrderListOut(BaseModel):
    pagination: PaginationMeta
    items: list[PurchaseOrderSummaryOut]
