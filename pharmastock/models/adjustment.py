from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, event, func
from sqlalchemy.orm import Mapped, mapped_column

from pharmastock.core.errors import ImmutableRecord
from pharmastock.db.base import Base

ADJUSTMENT_TYPES = {"damage", "theft", "expired", "correction", "return"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockAdjustment(Base):
    """
    Append-only audit row. One row per applied lot delta.
    """
    __tablename__ = "stock_adjustments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    inventory_id: Mapped[str] = mapped_column(String(36), ForeignKey("inventory_lots.id"), index=True)

    adjustment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)  # signed
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    adjusted_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    adjustment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), index=True
    )


@event.listens_for(StockAdjustment, "before_update")
def _reject_adjustment_update(mapper, connection, target: StockAdjustment) -> None:
    raise ImmutableRecord(f"Stock adjustment {target.id} is immutable")


@event.listens_for(StockAdjustment, "before_delete")
def _reject_adjustment_delete(mapper, connection, target: StockAdjustment) -> None:
    raise ImmutableRecord(f"Stock adjustment {target.id} cannot be deleted")
