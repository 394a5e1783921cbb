from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from pharmastock.db.base import Base

STOCK_STATUS_ACTIVE = "active"
STOCK_STATUS_SOLD_OUT = "sold_out"


class Medicine(Base):
    """
    Catalog row holding the aggregate on-hand quantity of one medicine.
    Catalog management owns the row; the stock core only writes quantity,
    selling_price, expiry_date and manufacturing_date.
    """
    __tablename__ = "medicines"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # tablet, bottle, sachet

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    cost_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default="0")

    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    manufacturing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_medicines_quantity_non_negative"),
        CheckConstraint("cost_price >= 0", name="ck_medicines_cost_price_non_negative"),
        CheckConstraint("selling_price >= 0", name="ck_medicines_selling_price_non_negative"),
    )

    @property
    def status(self) -> str:
        return STOCK_STATUS_SOLD_OUT if self.quantity == 0 else STOCK_STATUS_ACTIVE
