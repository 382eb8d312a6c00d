"""Domain error codes for the checkout module."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Domain error codes."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    EMPTY_CART = "EMPTY_CART"
    CART_EXPIRED = "CART_EXPIRED"
    BELOW_MINIMUM = "BELOW_MINIMUM"
    NOT_FOUND = "NOT_FOUND"
    OWNERSHIP = "OWNERSHIP"
    CART_INCONSISTENT = "CART_INCONSISTENT"
    INVENTORY_EXHAUSTED = "INVENTORY_EXHAUSTED"
    CART_LOCKED = "CART_LOCKED"
    PRICING_UNAVAILABLE = "PRICING_UNAVAILABLE"
    PAYMENT_DECLINED = "PAYMENT_DECLINED"
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
    TRANSACTION_CONFLICT = "TRANSACTION_CONFLICT"
    IDEMPOTENCY_VIOLATION = "IDEMPOTENCY_VIOLATION"
    FEE_ALLOCATION_MISMATCH = "FEE_ALLOCATION_MISMATCH"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    """Raised when input violates a business rule on its own."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.VALIDATION_FAILED) -> None:
        super().__init__(code=code, message=message)


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist or is inactive."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"{entity} not found",
        )
        self.entity = entity
        self.entity_id = entity_id


class OwnershipError(DomainError):
    """Raised when an actor touches a cart line or transaction it does not own."""

    def __init__(self, message: str = "Resource does not belong to the current owner") -> None:
        super().__init__(code=ErrorCode.OWNERSHIP, message=message)


class ConsistencyError(DomainError):
    """Raised when the resulting cart would violate a cross-item invariant."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.CART_INCONSISTENT, message=message)


class InventoryExhaustedError(DomainError):
    """Raised when a ticket does not have enough units left."""

    def __init__(self, remaining: int) -> None:
        super().__init__(
            code=ErrorCode.INVENTORY_EXHAUSTED,
            message=f"Only {remaining} tickets remaining",
            details={"remaining": remaining},
        )
        self.remaining = remaining


class LockedError(DomainError):
    """Raised when a cart is mutated while a checkout holds its lock."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.CART_LOCKED,
            message="Cart is locked while a checkout is in progress",
        )


class PricingUnavailableError(DomainError):
    """Raised when an item can no longer be priced, e.g. an event past its grace window."""

    def __init__(self, message: str = "Event already started; tickets are no longer available") -> None:
        super().__init__(code=ErrorCode.PRICING_UNAVAILABLE, message=message)


class PaymentDeclinedError(DomainError):
    """Raised when the gateway rejects a payment outright."""

    def __init__(self, reason: str = "Payment was declined") -> None:
        super().__init__(code=ErrorCode.PAYMENT_DECLINED, message=reason)


class GatewayCommunicationError(DomainError):
    """Raised when the payment gateway cannot be reached or answers unexpectedly.

    Always retryable: the transaction keeps its last known status.
    """

    retryable = True

    def __init__(self, message: str = "Payment gateway unavailable, please retry") -> None:
        super().__init__(code=ErrorCode.GATEWAY_UNAVAILABLE, message=message)


class ConflictError(DomainError):
    """Raised when a transaction is already in a terminal failed state."""

    def __init__(self, status: str) -> None:
        super().__init__(
            code=ErrorCode.TRANSACTION_CONFLICT,
            message=f"Transaction already finished with status {status}",
            details={"status": status},
        )


class IdempotencyViolation(DomainError):
    """Raised when a second writer reaches a transaction that is already processed."""

    def __init__(self, transaction_id: object) -> None:
        super().__init__(
            code=ErrorCode.IDEMPOTENCY_VIOLATION,
            message="Transaction was already processed",
        )
        self.transaction_id = transaction_id


class FeeAllocationMismatchError(DomainError):
    """Raised when a fee breakdown does not add up."""

    def __init__(self, field_name: str, expected: Decimal, actual: Decimal) -> None:
        super().__init__(
            code=ErrorCode.FEE_ALLOCATION_MISMATCH,
            message="Fee allocation is inconsistent",
        )
        self.field_name = field_name
        self.expected = expected
        self.actual = actual


class SignatureMismatchError(DomainError):
    """Raised when an integrity signature fails re-verification before sending."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.SIGNATURE_MISMATCH,
            message="Integrity signature mismatch",
        )
