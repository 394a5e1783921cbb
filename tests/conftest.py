import pytest
import os
from datetime import date, datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pharmastock.models  # noqa: F401
from pharmastock.core.deps import get_db, get_threshold_notifier
from pharmastock.core.id_utils import generate_id
from pharmastock.db.base import Base
from pharmastock.main import app
from pharmastock.models.inventory import LOT_STATUS_ACTIVE, InventoryLot
from pharmastock.models.medicine import Medicine
from pharmastock.services.notification_service import AlertBroadcaster, ThresholdNotifier, ThresholdRules

FIXED_NOW = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()

TEST_RULES = ThresholdRules(
    low_stock_threshold=10,
    low_stock_high_priority_threshold=5,
    expiring_soon_days=30,
    expiring_high_priority_days=7,
)


class AlertRecorder:
    def __init__(self) -> None:
        self.messages: list[dict] = []

    def __call__(self, message: dict) -> None:
        self.messages.append(message)

    def types_for(self, medicine_id: str) -> list[str]:
        return [message["type"] for message in self.messages if message.get("medicineId") == medicine_id]

    def clear(self) -> None:
        self.messages.clear()


@pytest.fixture()
def alert_recorder():
    return AlertRecorder()


@pytest.fixture()
def notifier(alert_recorder):
    broadcaster = AlertBroadcaster()
    broadcaster.subscribe(alert_recorder, subscriber_id="test-recorder")
    return ThresholdNotifier(broadcaster, rules=TEST_RULES, clock=lambda: FIXED_NOW)


@pytest.fixture()
def session_local():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    yield session_local
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_local):
    session = session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def test_context(session_local, notifier):
    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_threshold_notifier] = lambda: notifier

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()


@pytest.fixture()
def make_medicine():
    def _make(
        db: Session,
        *,
        name: str = "Paracetamol 500mg",
        quantity: int = 50,
        selling_price: str = "2.50",
        expiry_date: date | None = date(2027, 12, 31),
        unit: str | None = "tablet",
        is_active: bool = True,
    ) -> str:
        medicine_id = generate_id()
        db.add(
            Medicine(
                id=medicine_id,
                name=name,
                unit=unit,
                quantity=quantity,
                cost_price=Decimal("1.00"),
                selling_price=Decimal(selling_price),
                expiry_date=expiry_date,
                is_active=is_active,
            )
        )
        db.commit()
        return medicine_id

    return _make


@pytest.fixture()
def make_lot():
    def _make(
        db: Session,
        medicine_id: str,
        *,
        quantity: int = 20,
        batch_number: str | None = None,
        status: str = LOT_STATUS_ACTIVE,
        expiry_date: date = date(2027, 6, 30),
    ) -> str:
        lot_id = generate_id()
        db.add(
            InventoryLot(
                id=lot_id,
                medicine_id=medicine_id,
                batch_number=batch_number or f"B-{lot_id[:8]}",
                quantity=quantity,
                unit_price=Decimal("1.00"),
                selling_price=Decimal("2.00"),
                expiry_date=expiry_date,
                purchase_date=date(2026, 1, 15),
                status=status,
            )
        )
        db.commit()
        return lot_id

    return _make
