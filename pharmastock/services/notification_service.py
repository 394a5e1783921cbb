import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmastock.core.config import settings
from pharmastock.core.observability import log_event
from pharmastock.models.medicine import Medicine
from pharmastock.schemas.notification import AlertPayload

logger = logging.getLogger("pharmastock.alerts")

ALERT_EXPIRED = "expired"
ALERT_EXPIRING_SOON = "expire_soon"
ALERT_LOW_STOCK = "low_stock"
ALERT_OUT_OF_STOCK = "out_of_stock"

ALERT_TYPES = (ALERT_EXPIRED, ALERT_EXPIRING_SOON, ALERT_LOW_STOCK, ALERT_OUT_OF_STOCK)

Subscriber = Callable[[dict], None]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StockSnapshot:
    """Post-mutation state of one medicine or lot, detached from the session."""

    medicine_id: str
    medicine_name: str
    quantity: int
    expiry_date: date | None
    unit: str | None = None
    batch_number: str | None = None


@dataclass(frozen=True)
class ThresholdRules:
    low_stock_threshold: int
    low_stock_high_priority_threshold: int
    expiring_soon_days: int
    expiring_high_priority_days: int

    @classmethod
    def from_settings(cls) -> "ThresholdRules":
        return cls(
            low_stock_threshold=settings.low_stock_threshold,
            low_stock_high_priority_threshold=settings.low_stock_high_priority_threshold,
            expiring_soon_days=settings.expiring_soon_days,
            expiring_high_priority_days=settings.expiring_high_priority_days,
        )


def snapshot_for_medicine(medicine: Medicine) -> StockSnapshot:
    return StockSnapshot(
        medicine_id=medicine.id,
        medicine_name=medicine.name,
        quantity=medicine.quantity,
        expiry_date=medicine.expiry_date,
        unit=medicine.unit,
    )


def is_out_of_stock(quantity: int) -> bool:
    return quantity == 0


def is_low_stock(quantity: int, rules: ThresholdRules) -> bool:
    return 0 < quantity <= rules.low_stock_threshold


def is_expired(expiry_date: date | None, today: date) -> bool:
    return expiry_date is not None and expiry_date < today


def is_expiring_soon(expiry_date: date | None, today: date, rules: ThresholdRules) -> bool:
    if expiry_date is None:
        return False
    return today <= expiry_date <= today + timedelta(days=rules.expiring_soon_days)


def _display_name(snapshot: StockSnapshot) -> str:
    if snapshot.batch_number:
        return f"{snapshot.medicine_name} (batch {snapshot.batch_number})"
    return snapshot.medicine_name


def _base_fields(snapshot: StockSnapshot, now: datetime) -> dict:
    return {
        "medicine_id": snapshot.medicine_id,
        "medicine_name": snapshot.medicine_name,
        "batch_number": snapshot.batch_number,
        "timestamp": now.isoformat(),
    }


def _expired_alert(snapshot: StockSnapshot, now: datetime, rules: ThresholdRules) -> AlertPayload | None:
    if not is_expired(snapshot.expiry_date, now.date()):
        return None
    return AlertPayload(
        type=ALERT_EXPIRED,
        title="Medicine Expired",
        message=f"{_display_name(snapshot)} has expired on {snapshot.expiry_date.isoformat()}",
        expiry_date=snapshot.expiry_date,
        priority="urgent",
        **_base_fields(snapshot, now),
    )


def _expiring_soon_alert(snapshot: StockSnapshot, now: datetime, rules: ThresholdRules) -> AlertPayload | None:
    today = now.date()
    if not is_expiring_soon(snapshot.expiry_date, today, rules):
        return None
    days_until_expiry = (snapshot.expiry_date - today).days
    return AlertPayload(
        type=ALERT_EXPIRING_SOON,
        title="Medicine Expiring Soon",
        message=f"{_display_name(snapshot)} will expire in {days_until_expiry} days",
        expiry_date=snapshot.expiry_date,
        priority="high" if days_until_expiry <= rules.expiring_high_priority_days else "medium",
        **_base_fields(snapshot, now),
    )


def _low_stock_alert(snapshot: StockSnapshot, now: datetime, rules: ThresholdRules) -> AlertPayload | None:
    if not is_low_stock(snapshot.quantity, rules):
        return None
    return AlertPayload(
        type=ALERT_LOW_STOCK,
        title="Low Stock Alert",
        message=(
            f"{_display_name(snapshot)} is running low "
            f"({snapshot.quantity} {snapshot.unit or 'units'} remaining)"
        ),
        quantity=snapshot.quantity,
        priority="high" if snapshot.quantity <= rules.low_stock_high_priority_threshold else "medium",
        **_base_fields(snapshot, now),
    )


def _out_of_stock_alert(snapshot: StockSnapshot, now: datetime, rules: ThresholdRules) -> AlertPayload | None:
    if not is_out_of_stock(snapshot.quantity):
        return None
    return AlertPayload(
        type=ALERT_OUT_OF_STOCK,
        title="Out of Stock",
        message=f"{_display_name(snapshot)} is out of stock",
        quantity=0,
        priority="urgent",
        **_base_fields(snapshot, now),
    )


_RULES = {
    ALERT_EXPIRED: _expired_alert,
    ALERT_EXPIRING_SOON: _expiring_soon_alert,
    ALERT_LOW_STOCK: _low_stock_alert,
    ALERT_OUT_OF_STOCK: _out_of_stock_alert,
}


def evaluate_thresholds(
    snapshot: StockSnapshot,
    *,
    now: datetime,
    rules: ThresholdRules,
) -> list[AlertPayload]:
    alerts: list[AlertPayload] = []
    for alert_type in ALERT_TYPES:
        alert = _RULES[alert_type](snapshot, now, rules)
        if alert is not None:
            alerts.append(alert)
    return alerts


class AlertBroadcaster:
    """
    Fan-out to every current subscriber. No filtering and no de-duplication:
    the same alert is delivered again on every evaluation that produces it.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber, *, subscriber_id: str | None = None) -> str:
        key = subscriber_id or str(uuid.uuid4())
        with self._lock:
            self._subscribers[key] = subscriber
        log_event(logger, "alert_subscriber_joined", subscriber_id=key)
        return key

    def unsubscribe(self, subscriber_id: str) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscriber_id, None)
        if removed is not None:
            log_event(logger, "alert_subscriber_left", subscriber_id=subscriber_id)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def broadcast(self, message: dict) -> int:
        with self._lock:
            targets = list(self._subscribers.items())

        delivered = 0
        for subscriber_id, subscriber in targets:
            try:
                subscriber(message)
            except Exception as exc:
                log_event(
                    logger,
                    "alert_delivery_failed",
                    level=logging.WARNING,
                    subscriber_id=subscriber_id,
                    alert_type=message.get("type"),
                    error=str(exc),
                )
                continue
            delivered += 1
        return delivered


class QueueSubscriber:
    """
    Bridges broadcasts from worker threads onto an event loop queue.
    A full queue drops the alert instead of blocking the publisher.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, *, maxsize: int | None = None) -> None:
        self.loop = loop
        self.queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=maxsize or settings.alert_subscriber_queue_size)
        self.dropped = 0

    def __call__(self, message: dict) -> None:
        self.loop.call_soon_threadsafe(self._offer, message)

    def _offer(self, message: dict) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            log_event(
                logger,
                "alert_dropped_slow_subscriber",
                level=logging.WARNING,
                alert_type=message.get("type"),
                dropped=self.dropped,
            )


class ThresholdNotifier:
    def __init__(
        self,
        broadcaster: AlertBroadcaster | None = None,
        *,
        rules: ThresholdRules | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.broadcaster = broadcaster or AlertBroadcaster()
        self._rules = rules
        self._clock = clock or _utcnow

    @property
    def rules(self) -> ThresholdRules:
        return self._rules or ThresholdRules.from_settings()

    def now(self) -> datetime:
        return self._clock()

    def alerts_for(self, snapshot: StockSnapshot) -> list[AlertPayload]:
        return evaluate_thresholds(snapshot, now=self.now(), rules=self.rules)

    def emit(self, alert: AlertPayload) -> int:
        delivered = self.broadcaster.broadcast(alert.to_message())
        log_event(
            logger,
            "alert_broadcast",
            alert_type=alert.type,
            medicine_id=alert.medicine_id,
            priority=alert.priority,
            delivered=delivered,
        )
        return delivered

    def notify(self, snapshots: Iterable[StockSnapshot]) -> int:
        emitted = 0
        for snapshot in snapshots:
            for alert in self.alerts_for(snapshot):
                self.emit(alert)
                emitted += 1
        return emitted

    def send_custom_notification(self, alert: AlertPayload) -> int:
        delivered = self.emit(alert)
        log_event(logger, "custom_alert_sent", alert_type=alert.type, delivered=delivered)
        return delivered

    # Periodic sweep. Scheduling lives outside this process.

    def _sweep(self, db: Session, alert_type: str, condition) -> int:
        medicines = db.execute(
            select(Medicine)
            .where(Medicine.is_active.is_(True), condition)
            .order_by(Medicine.name.asc())
        ).scalars().all()

        now = self.now()
        rule = _RULES[alert_type]
        emitted = 0
        for medicine in medicines:
            alert = rule(snapshot_for_medicine(medicine), now, self.rules)
            if alert is None:
                continue
            self.emit(alert)
            emitted += 1

        if emitted:
            log_event(logger, "inventory_check_found", level=logging.WARNING, alert_type=alert_type, count=emitted)
        return emitted

    def check_expired(self, db: Session) -> int:
        today = self.now().date()
        return self._sweep(db, ALERT_EXPIRED, Medicine.expiry_date < today)

    def check_expiring_soon(self, db: Session) -> int:
        today = self.now().date()
        horizon = today + timedelta(days=self.rules.expiring_soon_days)
        return self._sweep(db, ALERT_EXPIRING_SOON, Medicine.expiry_date.between(today, horizon))

    def check_low_stock(self, db: Session) -> int:
        return self._sweep(
            db,
            ALERT_LOW_STOCK,
            Medicine.quantity.between(1, self.rules.low_stock_threshold),
        )

    def check_out_of_stock(self, db: Session) -> int:
        return self._sweep(db, ALERT_OUT_OF_STOCK, Medicine.quantity == 0)

    def run_inventory_checks(self, db: Session) -> dict[str, int]:
        log_event(logger, "inventory_check_started")
        counts = {
            ALERT_EXPIRED: self.check_expired(db),
            ALERT_EXPIRING_SOON: self.check_expiring_soon(db),
            ALERT_LOW_STOCK: self.check_low_stock(db),
            ALERT_OUT_OF_STOCK: self.check_out_of_stock(db),
        }
        log_event(logger, "inventory_check_completed", **counts)
        return counts

    def run_check(self, db: Session, alert_type: str) -> int:
        checks = {
            ALERT_EXPIRED: self.check_expired,
            ALERT_EXPIRING_SOON: self.check_expiring_soon,
            ALERT_LOW_STOCK: self.check_low_stock,
            ALERT_OUT_OF_STOCK: self.check_out_of_stock,
        }
        return checks[alert_type](db)

    def get_notification_stats(self, db: Session) -> dict[str, int]:
        today = self.now().date()
        horizon = today + timedelta(days=self.rules.expiring_soon_days)

        def _count(condition) -> int:
            return int(
                db.execute(
                    select(func.count(Medicine.id)).where(Medicine.is_active.is_(True), condition)
                ).scalar_one()
            )

        return {
            "expired": _count(Medicine.expiry_date < today),
            "expiring_soon": _count(Medicine.expiry_date.between(today, horizon)),
            "low_stock": _count(Medicine.quantity.between(1, self.rules.low_stock_threshold)),
            "out_of_stock": _count(Medicine.quantity == 0),
            "connected_clients": self.broadcaster.subscriber_count(),
        }


_notifier = ThresholdNotifier()


def get_notifier() -> ThresholdNotifier:
    return _notifier
