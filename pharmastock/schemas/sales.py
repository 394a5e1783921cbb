from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from pharmastock.schemas.common import PaginationMeta


class SaleItemIn(BaseModel):
    medicine_id: str = Field(min_length=1, max_length=36)
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    discount: Decimal | None = Field(default=None, ge=0, description="Per-unit discount")


class SaleCreate(BaseModel):
    sale_date: date | None = None
    customer_name: Optional[str] = Field(default=None, max_length=255)
    customer_phone: Optional[str] = Field(default=None, max_length=30)
    payment_method: Optional[str] = Field(default=None, max_length=30)
    discount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Flat amount taken off the sale subtotal, before tax.",
    )
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    items: List[SaleItemIn]

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sale_date": "2026-02-16",
                "customer_name": "Abebe Kebede",
                "payment_method": "cash",
                "tax": 15.0,
                "items": [
                    {
                        "medicine_id": "medicine-id-here",
                        "quantity": 3,
                        "unit_price": 25.5,
                    }
                ],
            }
        }
    )


class SaleItemPatch(BaseModel):
    medicine_id: str | None = Field(default=None, min_length=1, max_length=36)
    quantity: int | None = Field(default=None, gt=0)
    unit_price: Decimal | None = Field(default=None, ge=0)
    discount: Decimal | None = Field(default=None, ge=0)

    def is_complete(self) -> bool:
        return self.medicine_id is not None and self.quantity is not None and self.unit_price is not None


class SaleUpdate(BaseModel):
    sale_date: date | None = None
    customer_name: Optional[str] = Field(default=None, max_length=255)
    customer_phone: Optional[str] = Field(default=None, max_length=30)
    payment_method: Optional[str] = Field(default=None, max_length=30)
    discount: Decimal | None = Field(default=None, ge=0)
    tax: Decimal | None = Field(default=None, ge=0)
    items: list[SaleItemPatch] | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "tax": 20.0,
                "items": [
                    {
                        "medicine_id": "medicine-id-here",
                        "quantity": 2,
                        "unit_price": 25.5,
                    }
                ],
            }
        }
    )


class SaleItemOut(BaseModel):
    id: str
    medicine_id: str
    quantity: int
    unit_price: float
    discount: float
    total_price: float


class SaleOut(BaseModel):
    id: str
    sale_number: str
    sale_date: date
    customer_name: str | None = None
    customer_phone: str | None = None
    payment_method: str | None = None
    discount: float
    tax: float
    total_amount: float
    items: list[SaleItemOut]
    created_at: datetime


class SaleSummaryOut(BaseModel):
    id: str
    sale_number: str
    sale_date: date
    customer_name: str | None = None
    total_amount: float
    created_at: datetime


class SaleListOut(BaseModel):
    pagination: PaginationMeta
    start_date: date | None = None
    end_date: date | None = None
    items: list[SaleSummaryOut]
