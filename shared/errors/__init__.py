from .domain import (
    OrderFulfillmentError,
    CartEmpty,
    CartSessionNotFound,
    ProductNotFound,
    ProductInactive,
    MixedCurrency,
    OrderNotFound,
    InvalidStatusTransition,
    PaymentIntentConflict,
    ValidationError,
    PaymentProcessorUnavailable,
    PaymentProcessorError,
    WebhookSignatureInvalid,
)
from .handlers import register_error_handlers

__all__ = [
    "OrderFulfillmentError",
    "CartEmpty",
    "CartSessionNotFound",
    "ProductNotFound",
    "ProductInactive",
    "MixedCurrency",
    "OrderNotFound",
    "InvalidStatusTransition",
    "PaymentIntentConflict",
    "ValidationError",
    "PaymentProcessorUnavailable",
    "PaymentProcessorError",
    "WebhookSignatureInvalid",
    "register_error_handlers",
]
