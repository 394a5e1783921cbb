from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pharmastock.schemas.common import PaginationMeta

AdjustmentType = Literal["damage", "theft", "expired", "correction", "return"]


class StockAdjustmentIn(BaseModel):
    inventory_id: str = Field(min_length=1, max_length=36)
    adjustment_type: AdjustmentType
    quantity_change: int = Field(
        ..., description="Positive adds stock to the lot, negative removes stock. Cannot be zero."
    )
    reason: str = Field(..., min_length=3, max_length=255)
    adjusted_by: str | None = Field(default=None, max_length=36)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("quantity_change")
    @classmethod
    def validate_non_zero_quantity_change(cls, value: int) -> int:
        if value == 0:
            raise ValueError("quantity_change cannot be zero")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "inventory_id": "inventory-lot-id-here",
                "adjustment_type": "damage",
                "quantity_change": -2,
                "reason": "Broken bottles",
                "notes": "2 bottles cracked during shelving",
            }
        }
    )


class StockAdjustmentOut(BaseModel):
    id: str
    inventory_id: str
    adjustment_type: AdjustmentType
    quantity_change: int
    reason: str
    adjusted_by: str | None = None
    notes: str | None = None
    adjustment_date: datetime


class StockAdjustmentListOut(BaseModel):
    items: list[StockAdjustmentOut]
    pagination: PaginationMeta
