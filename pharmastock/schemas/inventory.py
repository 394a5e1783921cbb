from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pharmastock.schemas.common import PaginationMeta

LotStatus = Literal["active", "expired", "damaged", "returned", "sold_out"]


class InventoryLotIn(BaseModel):
    medicine_id: str = Field(min_length=1, max_length=36)
    batch_number: str = Field(min_length=1, max_length=100)
    quantity: int = Field(ge=0)
    unit_price: Decimal = Field(ge=0)
    selling_price: Decimal = Field(ge=0)
    expiry_date: date
    purchase_date: date
    supplier_id: str | None = Field(default=None, max_length=36)
    location: str | None = Field(default=None, max_length=100)
    status: LotStatus = "active"
    notes: str | None = Field(default=None, max_length=255)

    @field_validator("batch_number")
    @classmethod
    def normalize_batch_number(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("batch_number cannot be blank")
        return normalized

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "medicine_id": "medicine-id-here",
                "batch_number": "AMX-2026-014",
                "quantity": 120,
                "unit_price": 8.0,
                "selling_price": 12.5,
                "expiry_date": "2027-06-30",
                "purchase_date": "2026-02-16",
                "location": "Shelf B2",
            }
        }
    )


class LotQuantityUpdateIn(BaseModel):
    quantity_change: int = Field(
        ..., description="Positive adds stock, negative removes stock. Cannot be zero."
    )

    @field_validator("quantity_change")
    @classmethod
    def validate_non_zero_quantity_change(cls, value: int) -> int:
        if value == 0:
            raise ValueError("quantity_change cannot be zero")
        return value


class InventoryLotOut(BaseModel):
    id: str
    medicine_id: str
    medicine_name: str
    batch_number: str
    quantity: int
    unit_price: float
    selling_price: float
    expiry_date: date
    purchase_date: date
    supplier_id: str | None = None
    location: str | None = None
    status: LotStatus
    notes: str | None = None
    created_at: datetime


class InventoryLotListOut(BaseModel):
    items: list[InventoryLotOut]
    pagination: PaginationMeta


class MedicineStockOut(BaseModel):
    medicine_id: str
    name: str
    unit: str | None = None
    quantity: int
    status: Literal["active", "sold_out"]
    selling_price: float
    expiry_date: date | None = None
    lot_count: int
    lot_quantity: int


class InventorySummaryOut(BaseModel):
    total_items: int
    active_items: int
    total_value: float
    expiring_items: int
    low_stock_items: int
    expiring_soon_days: int
    low_stock_threshold: int

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total_items": 150,
                "active_items": 145,
                "total_value": 25000.5,
                "expiring_items": 5,
                "low_stock_items": 12,
                "expiring_soon_days": 30,
                "low_stock_threshold": 10,
            }
        }
    )
