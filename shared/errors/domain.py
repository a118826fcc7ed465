"""
Error vocabulary shared by every service.

Each error carries a stable machine-readable ``code``, the HTTP status it maps
to at the API boundary, a human-readable message and optional structured
details. Services raise these; routers never translate them by hand.
"""
from typing import Any, Optional


class OrderFulfillmentError(Exception):
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class CartEmpty(OrderFulfillmentError):
    code = "CART_EMPTY"
    status_code = 400
    default_message = "Cart is empty"


class ProductNotFound(OrderFulfillmentError):
    code = "PRODUCT_NOT_FOUND"
    status_code = 400
    default_message = "Product does not exist"


class ProductInactive(OrderFulfillmentError):
    code = "PRODUCT_INACTIVE"
    status_code = 400
    default_message = "Product is not active"


class MixedCurrency(OrderFulfillmentError):
    code = "MIXED_CURRENCY"
    status_code = 400
    default_message = "Currencies in the cart must not be mixed"


class OrderNotFound(OrderFulfillmentError):
    code = "ORDER_NOT_FOUND"
    status_code = 404
    default_message = "Order not found"


class InvalidStatusTransition(OrderFulfillmentError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 400

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Status transition {current} -> {requested} is not allowed",
            details={"from": current, "to": requested},
        )


class PaymentIntentConflict(OrderFulfillmentError):
    code = "PAYMENT_INTENT_CONFLICT"
    status_code = 409
    default_message = "Payment intent is already bound to a different order or intent"


class ValidationError(OrderFulfillmentError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid input"


class PaymentProcessorUnavailable(OrderFulfillmentError):
    code = "PAYMENT_PROCESSOR_UNAVAILABLE"
    status_code = 503
    default_message = "Payment processor is not available"


class PaymentProcessorError(OrderFulfillmentError):
    code = "PAYMENT_PROCESSOR_ERROR"
    status_code = 502
    default_message = "Payment processor request failed"


class WebhookSignatureInvalid(OrderFulfillmentError):
    code = "WEBHOOK_SIGNATURE_INVALID"
    status_code = 400
    default_message = "Invalid webhook signature"


class CartSessionNotFound(OrderFulfillmentError):
    code = "SESSION_NOT_FOUND"
    status_code = 404
    default_message = "Cart session not found"
