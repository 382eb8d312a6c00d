from django.urls import path

from checkout.handlers import (
    CartItemDetailView,
    CartItemListView,
    CartSummaryView,
    CartView,
    CheckoutConfirmView,
    CheckoutInitiateView,
    CheckoutStatusView,
    CheckoutWebhookView,
)

urlpatterns = [
    path("cart", CartView.as_view(), name="cart"),
    path("cart/summary", CartSummaryView.as_view(), name="cart-summary"),
    path("cart/items", CartItemListView.as_view(), name="cart-item-list"),
    path("cart/items/<str:item_id>", CartItemDetailView.as_view(), name="cart-item-detail"),
    path("checkout/initiate", CheckoutInitiateView.as_view(), name="checkout-initiate"),
    path("checkout/confirm", CheckoutConfirmView.as_view(), name="checkout-confirm"),
    path("checkout/webhook", CheckoutWebhookView.as_view(), name="checkout-webhook"),
    path(
        "checkout/<str:transaction_id>/status",
        CheckoutStatusView.as_view(),
        name="checkout-status",
    ),
]
