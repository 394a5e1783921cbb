from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pharmastock.db.base import Base
from pharmastock.models.medicine import Medicine

LOT_STATUS_ACTIVE = "active"
LOT_STATUS_EXPIRED = "expired"
LOT_STATUS_DAMAGED = "damaged"
LOT_STATUS_RETURNED = "returned"
LOT_STATUS_SOLD_OUT = "sold_out"

LOT_STATUSES = {
    LOT_STATUS_ACTIVE,
    LOT_STATUS_EXPIRED,
    LOT_STATUS_DAMAGED,
    LOT_STATUS_RETURNED,
    LOT_STATUS_SOLD_OUT,
}


class InventoryLot(Base):
    """
    Batch-level stock. Kept as its own ledger: sales and receiving move
    Medicine.quantity, adjustments move InventoryLot.quantity.
    """
    __tablename__ = "inventory_lots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    medicine_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("medicines.id", ondelete="RESTRICT"), index=True
    )
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    supplier_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # shelf, storage room
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LOT_STATUS_ACTIVE, server_default=LOT_STATUS_ACTIVE
    )
    notes: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    medicine: Mapped[Medicine] = relationship(lazy="joined", innerjoin=True)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_inventory_lots_quantity_non_negative"),
        Index("ix_inventory_lots_medicine_expiry", "medicine_id", "expiry_date"),
        Index("ix_inventory_lots_status_expiry", "status", "expiry_date"),
    )
