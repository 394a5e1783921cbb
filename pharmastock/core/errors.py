"""
Business-rule errors raised by the stock core.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with. None of them are transient, so callers never retry.
"""

from typing import Any


class StockCoreError(Exception):
    code = "stock_error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InsufficientStock(StockCoreError):
    code = "insufficient_stock"
    status_code = 400

    def __init__(self, *, target_type: str, target_id: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {target_type} {target_id}: "
            f"available {available}, requested {requested}",
            details={
                "target_type": target_type,
                "target_id": target_id,
                "available": available,
                "requested": requested,
            },
        )
        self.target_type = target_type
        self.target_id = target_id
        self.available = available
        self.requested = requested


class NotFound(StockCoreError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            f"{resource} not found: {resource_id}",
            details={"resource": resource, "id": resource_id},
        )
        self.resource = resource
        self.resource_id = resource_id


class InvalidItem(StockCoreError):
    code = "invalid_item"
    status_code = 400


class EmptyCart(StockCoreError):
    code = "empty_cart"
    status_code = 400

    def __init__(self, message: str = "Sale must contain at least one item"):
        super().__init__(message)


class AlreadyReceived(StockCoreError):
    code = "already_received"
    status_code = 409

    def __init__(self, order_id: str):
        super().__init__(
            f"Purchase order {order_id} has already been received",
            details={"purchase_order_id": order_id},
        )


class TerminalOrder(StockCoreError):
    code = "terminal_order"
    status_code = 409

    def __init__(self, order_id: str, current_status: str, requested_status: str):
        super().__init__(
            f"Cannot change status of purchase order {order_id} "
            f"from '{current_status}' to '{requested_status}'",
            details={
                "purchase_order_id": order_id,
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class DuplicateBatchNumber(StockCoreError):
    code = "duplicate_batch_number"
    status_code = 409

    def __init__(self, batch_number: str):
        super().__init__(
            f"Batch number already exists: {batch_number}",
            details={"batch_number": batch_number},
        )


class ImmutableRecord(StockCoreError):
    code = "immutable_record"
    status_code = 409
