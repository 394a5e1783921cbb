import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, WebSocket
from sqlalchemy.orm import Session

from pharmastock.core.api_docs import error_responses
from pharmastock.core.deps import get_db, get_threshold_notifier
from pharmastock.schemas.notification import (
    AlertPayload,
    AlertType,
    CustomNotificationIn,
    CustomNotificationOut,
    InventoryCheckOut,
    InventoryCheckRuleOut,
    NotificationStatsOut,
)
from pharmastock.services.notification_service import QueueSubscriber, ThresholdNotifier

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get(
    "/stats",
    response_model=NotificationStatsOut,
    summary="Alert counts per rule",
    responses=error_responses(500),
)
def get_notification_stats(
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    return NotificationStatsOut(**notifier.get_notification_stats(db))


@router.post(
    "/check-inventory",
    response_model=InventoryCheckOut,
    summary="Run every inventory check now",
    description="Sweeps active medicines and broadcasts one alert per matching rule.",
    responses=error_responses(500),
)
def check_inventory(
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    counts = notifier.run_inventory_checks(db)
    return InventoryCheckOut(message="Inventory checks completed successfully", alerts=counts)


@router.post(
    "/checks/{alert_type}",
    response_model=InventoryCheckRuleOut,
    summary="Run a single inventory check",
    responses=error_responses(422, 500),
)
def run_single_check(
    alert_type: AlertType,
    db: Session = Depends(get_db),
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    return InventoryCheckRuleOut(alert_type=alert_type, emitted=notifier.run_check(db, alert_type))


@router.post(
    "/custom",
    response_model=CustomNotificationOut,
    summary="Broadcast a custom notification",
    responses=error_responses(422, 500),
)
def send_custom_notification(
    payload: CustomNotificationIn,
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    alert = AlertPayload(**payload.model_dump(), timestamp=notifier.now().isoformat())
    return CustomNotificationOut(delivered=notifier.send_custom_notification(alert))


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Client messages carry nothing; reading only detects the close.
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def alerts_websocket(
    websocket: WebSocket,
    notifier: ThresholdNotifier = Depends(get_threshold_notifier),
):
    await websocket.accept()
    subscriber = QueueSubscriber(asyncio.get_running_loop())
    subscriber_id = notifier.broadcaster.subscribe(subscriber)
    await websocket.send_json(
        {
            "event": "connected",
            "message": "Connected to notification service",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )

    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        while True:
            next_alert = asyncio.create_task(subscriber.queue.get())
            done, _ = await asyncio.wait(
                {next_alert, disconnected},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if disconnected in done:
                next_alert.cancel()
                break
            await websocket.send_json({"event": "notification", "data": next_alert.result()})
    finally:
        disconnected.cancel()
        notifier.broadcaster.unsubscribe(subscriber_id)
