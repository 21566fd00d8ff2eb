"""
Exception hierarchy for the logistics services.

Every error carries a stable ``error_code`` and the HTTP status the boundary should
answer with. ``ProviderUnavailableError`` never leaves the estimation layer.
"""

from typing import Any


class LogisticsError(Exception):
    """Base exception for logistics service errors"""

    error_code = "LOGISTICS_ERROR"
    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error_code": self.error_code, "message": self.message, "details": self.details}


class OrderValidationError(LogisticsError):
    """Raised when a command is malformed or misses required input"""

    error_code = "VALIDATION_ERROR"
    status_code = 400


class DuplicateOrderError(OrderValidationError):
    """Raised when a seller order id is already taken"""

    error_code = "DUPLICATE_ORDER"

    def __init__(self, seller_order_id: str):
        super().__init__(f"Seller order id {seller_order_id} already exists", seller_order_id=seller_order_id)
        self.seller_order_id = seller_order_id


class NotFoundError(LogisticsError):
    error_code = "NOT_FOUND"
    status_code = 404
    entity = "Resource"

    def __init__(self, entity_id: str):
        super().__init__(f"{self.entity} {entity_id} not found", entity_id=entity_id)
        self.entity_id = entity_id


class OrderNotFoundError(NotFoundError):
    error_code = "ORDER_NOT_FOUND"
    entity = "Order"


class CustomerNotFoundError(NotFoundError):
    error_code = "CUSTOMER_NOT_FOUND"
    entity = "Customer"


class HubNotFoundError(NotFoundError):
    error_code = "HUB_NOT_FOUND"
    entity = "Hub"


class AgentNotFoundError(NotFoundError):
    error_code = "AGENT_NOT_FOUND"
    entity = "Delivery agent"


class VehicleNotFoundError(NotFoundError):
    error_code = "VEHICLE_NOT_FOUND"
    entity = "Vehicle"


class PaymentIntentNotFoundError(NotFoundError):
    error_code = "PAYMENT_INTENT_NOT_FOUND"
    entity = "Payment intent"


class InvalidTransitionError(LogisticsError):
    """Raised when a status change is not permitted from the current state"""

    error_code = "INVALID_TRANSITION"
    status_code = 400

    def __init__(self, order_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Order {order_id} cannot move from {current_status} to {target_status}",
            order_id=order_id,
            current_status=current_status,
            target_status=target_status,
        )
        self.order_id = order_id
        self.current_status = current_status
        self.target_status = target_status


class CapacityExceededError(LogisticsError):
    """Raised when an assignment would overcommit an agent, vehicle or hub"""

    error_code = "CAPACITY_EXCEEDED"
    status_code = 400

    def __init__(self, resource: str, resource_id: str, requested: float, headroom: float):
        super().__init__(
            f"{resource} {resource_id} over capacity: requested {requested}, remaining headroom {headroom}",
            resource=resource,
            resource_id=resource_id,
            requested=requested,
            headroom=headroom,
        )
        self.resource = resource
        self.resource_id = resource_id
        self.requested = requested
        self.headroom = headroom


class ConcurrentUpdateError(LogisticsError):
    """Raised when the stored order changed between read and write"""

    error_code = "CONCURRENT_UPDATE"
    status_code = 409

    def __init__(self, order_id: str, expected_status: str, actual_status: str):
        super().__init__(
            f"Order {order_id} changed concurrently (expected {expected_status}, found {actual_status})",
            order_id=order_id,
            expected_status=expected_status,
            actual_status=actual_status,
        )


class PaymentFailedError(LogisticsError):
    """Raised when a payment intent did not succeed"""

    error_code = "PAYMENT_FAILED"
    status_code = 400

    def __init__(self, payment_intent_id: str, provider_status: str):
        super().__init__(
            f"Payment {payment_intent_id} not successful (status {provider_status})",
            payment_intent_id=payment_intent_id,
            provider_status=provider_status,
        )
        self.payment_intent_id = payment_intent_id
        self.provider_status = provider_status


class ProviderUnavailableError(LogisticsError):
    """Raised by the remote estimator; always converted to a fallback result"""

    error_code = "PROVIDER_UNAVAILABLE"
    status_code = 503


__all__ = [
    "LogisticsError",
    "OrderValidationError",
    "DuplicateOrderError",
    "NotFoundError",
    "OrderNotFoundError",
    "CustomerNotFoundError",
    "HubNotFoundError",
    "AgentNotFoundError",
    "VehicleNotFoundError",
    "PaymentIntentNotFoundError",
    "InvalidTransitionError",
    "CapacityExceededError",
    "ConcurrentUpdateError",
    "PaymentFailedError",
    "ProviderUnavailableError",
]
