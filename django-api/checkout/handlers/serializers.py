"""Serializers for request validation and for rendering domain models.

Wire field names are camelCase; validated data and domain attributes are
snake_case via `source`.
"""

from decimal import ROUND_HALF_UP

from rest_framework import serializers

from checkout.domain import PaymentMethod

MONEY = {"max_digits": 20, "decimal_places": 2, "rounding": ROUND_HALF_UP}


# -- requests -------------------------------------------------------------


class AddCartItemSerializer(serializers.Serializer):
    """Body of POST /api/cart/items."""

    itemType = serializers.ChoiceField(source="item_type", choices=["ticket", "menu"])
    ticketId = serializers.UUIDField(source="ticket_id", required=False)
    menuItemId = serializers.UUIDField(source="menu_item_id", required=False)
    variantId = serializers.UUIDField(source="variant_id", required=False, allow_null=True, default=None)
    date = serializers.DateField()
    quantity = serializers.IntegerField(min_value=1)

    def validate(self, attrs: dict) -> dict:
        if attrs["item_type"] == "ticket" and not attrs.get("ticket_id"):
            raise serializers.ValidationError({"ticketId": "This field is required for tickets."})
        if attrs["item_type"] == "menu" and not attrs.get("menu_item_id"):
            raise serializers.ValidationError({"menuItemId": "This field is required for menu items."})
        return attrs


class UpdateCartItemSerializer(serializers.Serializer):
    """Body of PATCH /api/cart/items/{id}."""

    quantity = serializers.IntegerField(min_value=1)


class CustomerInfoSerializer(serializers.Serializer):
    fullName = serializers.CharField(source="full_name", required=False, allow_blank=True, default="")
    phoneNumber = serializers.CharField(source="phone_number", required=False, allow_blank=True, default="")
    legalId = serializers.CharField(source="legal_id", required=False, allow_blank=True, default="")
    legalIdType = serializers.CharField(source="legal_id_type", required=False, allow_blank=True, default="")


class InitiateCheckoutSerializer(serializers.Serializer):
    """Body of POST /api/checkout/initiate."""

    email = serializers.EmailField()
    paymentMethod = serializers.ChoiceField(
        source="payment_method",
        choices=[m.value for m in PaymentMethod],
        required=False,
        allow_null=True,
        default=None,
    )
    paymentData = serializers.DictField(source="payment_data", required=False, default=dict)
    customerInfo = CustomerInfoSerializer(source="customer", required=False)
    installments = serializers.IntegerField(min_value=1, required=False, default=1)
    redirectUrl = serializers.URLField(source="redirect_url", required=False, allow_null=True, default=None)


class ConfirmCheckoutSerializer(serializers.Serializer):
    """Body of POST /api/checkout/confirm."""

    transactionId = serializers.CharField(source="transaction_id")


# -- responses ------------------------------------------------------------


class CartItemSerializer(serializers.Serializer):
    """Serializer for CartItem domain model."""

    id = serializers.CharField(source="id.value")
    itemType = serializers.CharField(source="item_type.value")
    refId = serializers.UUIDField(source="ref_id")
    variantId = serializers.UUIDField(source="variant_id", allow_null=True)
    quantity = serializers.IntegerField()
    date = serializers.DateField()
    clubId = serializers.UUIDField(source="club_id")


class PricedLineSerializer(serializers.Serializer):
    """Serializer for PricedLine domain model."""

    id = serializers.CharField(source="cart_item_id.value", allow_null=True)
    itemType = serializers.CharField(source="line.item_type.value")
    refId = serializers.UUIDField(source="line.ref_id")
    variantId = serializers.UUIDField(source="line.variant_id", allow_null=True)
    name = serializers.CharField()
    variantName = serializers.CharField(source="variant_name", allow_null=True)
    quantity = serializers.IntegerField(source="line.quantity")
    date = serializers.DateField(source="line.date")
    basePrice = serializers.DecimalField(source="base_price", **MONEY)
    unitPrice = serializers.DecimalField(source="unit_price", **MONEY)
    subtotal = serializers.DecimalField(source="line_total", **MONEY)
    dynamicPricingApplied = serializers.BooleanField(source="dynamic_pricing_applied")
    pricingReason = serializers.CharField(source="reason")
    available = serializers.BooleanField()


class CartSummarySerializer(serializers.Serializer):
    """Serializer for CartSummary."""

    items = PricedLineSerializer(source="lines", many=True)
    ticketSubtotal = serializers.DecimalField(source="ticket_subtotal", **MONEY)
    menuSubtotal = serializers.DecimalField(source="menu_subtotal", **MONEY)
    total = serializers.DecimalField(**MONEY)
    operationalCosts = serializers.DecimalField(source="operational_costs", **MONEY)
    actualTotal = serializers.DecimalField(source="actual_total", **MONEY)
    isEventCheckout = serializers.BooleanField(source="is_event_checkout")


class CheckoutResultSerializer(serializers.Serializer):
    transactionId = serializers.CharField(source="transaction_id.value")
    redirectUrl = serializers.CharField(source="redirect_url", allow_null=True)
    totalPaid = serializers.DecimalField(source="total_paid", **MONEY)
    isFreeCheckout = serializers.BooleanField(source="is_free_checkout")
    status = serializers.CharField(source="status.value")


class ConfirmResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    status = serializers.CharField(source="status.value")
    message = serializers.CharField()


class TransactionStatusSerializer(serializers.Serializer):
    """Serializer for CheckoutTransaction domain model."""

    transactionId = serializers.CharField(source="id.value")
    status = serializers.CharField(source="payment_status.value")
    isProcessed = serializers.BooleanField(source="is_processed")
    isFreeCheckout = serializers.BooleanField(source="is_free")
    reference = serializers.CharField(source="provider_reference")
    totalPaid = serializers.DecimalField(source="fees.total_paid", **MONEY)
    clubReceives = serializers.DecimalField(source="fees.club_receives", **MONEY)
    platformReceives = serializers.DecimalField(source="fees.platform_receives", **MONEY)
    gatewayFee = serializers.DecimalField(source="fees.gateway_fee", **MONEY)
    gatewayIva = serializers.DecimalField(source="fees.gateway_iva", **MONEY)
    createdAt = serializers.DateTimeField(source="created_at")
