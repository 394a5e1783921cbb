from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AlertType = Literal["expired", "expire_soon", "low_stock", "out_of_stock"]
AlertPriority = Literal["low", "medium", "high", "urgent"]


class AlertPayload(BaseModel):
    type: AlertType
    title: str = Field(min_length=1, max_length=120)
    message: str = Field(min_length=1, max_length=500)
    medicine_id: str | None = None
    medicine_name: str | None = None
    batch_number: str | None = None
    quantity: int | None = None
    expiry_date: date | None = None
    priority: AlertPriority
    timestamp: str

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "type": "low_stock",
                "title": "Low Stock Alert",
                "message": "Amoxicillin 250mg is running low (4 capsules remaining)",
                "medicineId": "medicine-id",
                "medicineName": "Amoxicillin 250mg",
                "quantity": 4,
                "priority": "high",
                "timestamp": "2026-02-16T10:00:00+00:00",
            }
        },
    )

    def to_message(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class NotificationStatsOut(BaseModel):
    expired: int
    expiring_soon: int
    low_stock: int
    out_of_stock: int
    connected_clients: int


class InventoryCheckOut(BaseModel):
    message: str
    alerts: dict[str, int]


class CustomNotificationOut(BaseModel):
    delivered: int


class CustomNotificationIn(BaseModel):
    type: AlertType
    title: str = Field(min_length=1, max_length=120)
    message: str = Field(min_length=1, max_length=500)
    priority: AlertPriority = "medium"
    medicine_id: str | None = Field(default=None, max_length=36)
    medicine_name: str | None = Field(default=None, max_length=255)
    batch_number: str | None = Field(default=None, max_length=100)
    quantity: int | None = Field(default=None, ge=0)
    expiry_date: date | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "low_stock",
                "title": "Reorder reminder",
                "message": "Paracetamol 500mg supplier delivery is delayed",
                "priority": "medium",
            }
        }
    )


class InventoryCheckRuleOut(BaseModel):
    alert_type: AlertType
    emitted: int
