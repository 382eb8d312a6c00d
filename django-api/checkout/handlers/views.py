"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Resolve the cart owner (authenticated user, else X-Session-Id header)
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never expose internal error details
"""

import structlog
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from checkout import container
from checkout.conf import get_checkout_settings
from checkout.domain import CartItemId, CustomerInfo, DomainError, OwnerKey, PaymentMethod, ValidationError
from checkout.handlers.errors import domain_error_response, error_body
from checkout.handlers.serializers import (
    AddCartItemSerializer,
    CartItemSerializer,
    CartSummarySerializer,
    CheckoutResultSerializer,
    ConfirmCheckoutSerializer,
    ConfirmResultSerializer,
    InitiateCheckoutSerializer,
    PricedLineSerializer,
    TransactionStatusSerializer,
    UpdateCartItemSerializer,
)
from checkout.services import CheckoutRequest, WebhookOutcome

logger = structlog.get_logger(__name__)

SESSION_HEADER = "HTTP_X_SESSION_ID"


class CheckoutAPIView(APIView):
    """Base view: owner resolution and the error envelope."""

    def owner(self, request: Request) -> OwnerKey:
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            return OwnerKey.for_user(str(user.pk))
        session_id = request.META.get(SESSION_HEADER, "").strip()
        if session_id:
            return OwnerKey.for_session(session_id)
        raise NotAuthenticated("Provide credentials or an X-Session-Id header")

    def handle_exception(self, exc: Exception) -> Response:
        if isinstance(exc, DomainError):
            logger.info("Request rejected", code=exc.code.value, path=self.request.path)
            return domain_error_response(exc)
        if isinstance(exc, DRFValidationError):
            return Response(
                error_body("VALIDATION_FAILED", "Invalid request", fields=exc.detail),
                status=status.HTTP_400_BAD_REQUEST,
            )
        if isinstance(exc, NotAuthenticated):
            return Response(
                error_body("MISSING_OWNER", str(exc.detail)),
                status=status.HTTP_401_UNAUTHORIZED,
            )
        return super().handle_exception(exc)


def parse_item_id(item_id: str) -> CartItemId:
    try:
        return CartItemId.from_string(item_id)
    except ValueError:
        raise ValidationError("Invalid cart item ID format") from None


class CartView(CheckoutAPIView):
    """Handler for GET/DELETE /api/cart"""

    def get(self, request: Request) -> Response:
        priced = container.cart_service().price_cart(self.owner(request))
        return Response({"items": PricedLineSerializer(priced.lines, many=True).data})

    def delete(self, request: Request) -> Response:
        container.cart_service().clear(self.owner(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartSummaryView(CheckoutAPIView):
    """Handler for GET /api/cart/summary"""

    def get(self, request: Request) -> Response:
        summary = container.cart_service().summary(self.owner(request))
        return Response(CartSummarySerializer(summary).data)


class CartItemListView(CheckoutAPIView):
    """Handler for POST /api/cart/items"""

    def post(self, request: Request) -> Response:
        owner = self.owner(request)
        serializer = AddCartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = container.cart_service()
        if data["item_type"] == "ticket":
            item = service.add_ticket(owner, data["ticket_id"], data["date"], data["quantity"])
        else:
            item = service.add_menu_item(
                owner, data["menu_item_id"], data["variant_id"], data["date"], data["quantity"]
            )
        return Response(CartItemSerializer(item).data, status=status.HTTP_201_CREATED)


class CartItemDetailView(CheckoutAPIView):
    """Handler for PATCH/DELETE /api/cart/items/{item_id}"""

    def patch(self, request: Request, item_id: str) -> Response:
        owner = self.owner(request)
        serializer = UpdateCartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = container.cart_service().update_quantity(
            owner, parse_item_id(item_id), serializer.validated_data["quantity"]
        )
        return Response(CartItemSerializer(item).data)

    def delete(self, request: Request, item_id: str) -> Response:
        container.cart_service().remove(self.owner(request), parse_item_id(item_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


class CheckoutInitiateView(CheckoutAPIView):
    """Handler for POST /api/checkout/initiate"""

    def post(self, request: Request) -> Response:
        owner = self.owner(request)
        serializer = InitiateCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        checkout_request = CheckoutRequest(
            email=data["email"],
            payment_method=PaymentMethod(data["payment_method"]) if data["payment_method"] else None,
            customer=CustomerInfo(**data.get("customer", {})),
            payment_data=data["payment_data"],
            installments=data["installments"],
            redirect_url=data["redirect_url"],
        )
        result = container.checkout_service().initiate(owner, checkout_request)
        return Response(CheckoutResultSerializer(result).data, status=status.HTTP_201_CREATED)


class CheckoutConfirmView(CheckoutAPIView):
    """Handler for POST /api/checkout/confirm"""

    def post(self, request: Request) -> Response:
        owner = self.owner(request)
        serializer = ConfirmCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = container.checkout_service().confirm(owner, serializer.validated_data["transaction_id"])
        return Response(ConfirmResultSerializer(result).data)


class CheckoutStatusView(CheckoutAPIView):
    """Handler for GET /api/checkout/{transaction_id}/status"""

    def get(self, request: Request, transaction_id: str) -> Response:
        transaction = container.checkout_service().get_transaction(self.owner(request), transaction_id)
        return Response(TransactionStatusSerializer(transaction).data)


class CheckoutWebhookView(CheckoutAPIView):
    """Handler for POST /api/checkout/webhook

    Called by the gateway, so it carries no user authentication; the event
    checksum authenticates the payload instead.
    """

    authentication_classes: list = []
    permission_classes: list = []

    def post(self, request: Request) -> Response:
        event = request.data if isinstance(request.data, dict) else {}
        outcome = container.checkout_service().handle_gateway_event(event)
        if outcome is WebhookOutcome.INVALID_SIGNATURE and get_checkout_settings().webhook_strict:
            return Response(
                error_body("SIGNATURE_MISMATCH", "Invalid event checksum"),
                status=status.HTTP_403_FORBIDDEN,
            )
        return Response({"outcome": outcome.value})
