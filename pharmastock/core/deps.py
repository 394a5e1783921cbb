from collections.abc import Iterator

from sqlalchemy.orm import Session

from pharmastock.db.session import SessionLocal
from pharmastock.services.notification_service import ThresholdNotifier, get_notifier


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_threshold_notifier() -> ThresholdNotifier:
    return get_notifier()
