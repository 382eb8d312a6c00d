from checkout.handlers.views import (
    CartItemDetailView,
    CartItemListView,
    CartSummaryView,
    CartView,
    CheckoutConfirmView,
    CheckoutInitiateView,
    CheckoutStatusView,
    CheckoutWebhookView,
)

__all__ = [
    "CartItemDetailView",
    "CartItemListView",
    "CartSummaryView",
    "CartView",
    "CheckoutConfirmView",
    "CheckoutInitiateView",
    "CheckoutStatusView",
    "CheckoutWebhookView",
]
