"""Services - all business logic lives here.

Services:
- Depend only on interfaces (stores, gateway port, notifier port)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or raise domain errors
"""

from checkout.services.cart_service import CartService, CartSummary
from checkout.services.checkout_service import (
    CheckoutRequest,
    CheckoutResult,
    CheckoutService,
    ConfirmResult,
    WebhookOutcome,
)
from checkout.services.fulfillment_service import FulfillmentService
from checkout.services.line_pricer import LinePricer, PricedCart
from checkout.services.qr_codes import QrEncoder

__all__ = [
    "CartService",
    "CartSummary",
    "CheckoutRequest",
    "CheckoutResult",
    "CheckoutService",
    "ConfirmResult",
    "FulfillmentService",
    "LinePricer",
    "PricedCart",
    "QrEncoder",
    "WebhookOutcome",
]
