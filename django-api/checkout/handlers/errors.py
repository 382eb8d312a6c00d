"""Mapping of domain errors to HTTP responses."""

from typing import Any

from rest_framework import status
from rest_framework.response import Response

from checkout.domain import DomainError, ErrorCode

STATUS_BY_CODE = {
    ErrorCode.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EMPTY_CART: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CART_EXPIRED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.BELOW_MINIMUM: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CART_INCONSISTENT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVENTORY_EXHAUSTED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PRICING_UNAVAILABLE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PAYMENT_DECLINED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.OWNERSHIP: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TRANSACTION_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.CART_LOCKED: status.HTTP_423_LOCKED,
    ErrorCode.GATEWAY_UNAVAILABLE: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.IDEMPOTENCY_VIOLATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.FEE_ALLOCATION_MISMATCH: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.SIGNATURE_MISMATCH: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# Internal failures never expose their message.
INTERNAL_CODES = frozenset(
    {
        ErrorCode.IDEMPOTENCY_VIOLATION,
        ErrorCode.FEE_ALLOCATION_MISMATCH,
        ErrorCode.SIGNATURE_MISMATCH,
    }
)

GENERIC_MESSAGE = "The order could not be processed"


def error_body(code: str, message: str, **details: Any) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, **details}}


def domain_error_response(exc: DomainError) -> Response:
    http_status = STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if exc.code in INTERNAL_CODES:
        return Response(error_body(exc.code.value, GENERIC_MESSAGE), status=http_status)
    details = dict(exc.details)
    if getattr(exc, "retryable", False):
        details["retryable"] = True
    return Response(error_body(exc.code.value, exc.message, **details), status=http_status)
