"""Domain layer - pure business objects, pricing and fee math."""

from checkout.domain.errors import (
    ConflictError,
    ConsistencyError,
    DomainError,
    ErrorCode,
    FeeAllocationMismatchError,
    GatewayCommunicationError,
    IdempotencyViolation,
    InventoryExhaustedError,
    LockedError,
    NotFoundError,
    OwnershipError,
    PaymentDeclinedError,
    PricingUnavailableError,
    SignatureMismatchError,
    ValidationError,
)
from checkout.domain.fees import FeeAllocation, FeeSchedule, allocate, validate_allocation
from checkout.domain.models import (
    CartItem,
    CartLine,
    CartLockRecord,
    CheckoutTransaction,
    Club,
    CustomerInfo,
    Event,
    ItemType,
    MenuItem,
    MenuItemVariant,
    MenuPurchase,
    PaymentMethod,
    PaymentStatus,
    PricedLine,
    Ticket,
    TicketCategory,
    TicketPurchase,
)
from checkout.domain.pricing import (
    VENUE_TZ,
    Available,
    DynamicPricingEngine,
    Expired,
    PriceQuote,
    PricingRules,
    Surcharged,
)
from checkout.domain.value_objects import (
    Capacity,
    CartItemId,
    Money,
    OpenHours,
    OwnerKey,
    TransactionId,
    quantize,
)

__all__ = [
    "ConflictError",
    "ConsistencyError",
    "DomainError",
    "ErrorCode",
    "FeeAllocationMismatchError",
    "GatewayCommunicationError",
    "IdempotencyViolation",
    "InventoryExhaustedError",
    "LockedError",
    "NotFoundError",
    "OwnershipError",
    "PaymentDeclinedError",
    "PricingUnavailableError",
    "SignatureMismatchError",
    "ValidationError",
    "FeeAllocation",
    "FeeSchedule",
    "allocate",
    "validate_allocation",
    "CartItem",
    "CartLine",
    "CartLockRecord",
    "CheckoutTransaction",
    "Club",
    "CustomerInfo",
    "Event",
    "ItemType",
    "MenuItem",
    "MenuItemVariant",
    "MenuPurchase",
    "PaymentMethod",
    "PaymentStatus",
    "PricedLine",
    "Ticket",
    "TicketCategory",
    "TicketPurchase",
    "VENUE_TZ",
    "Available",
    "DynamicPricingEngine",
    "Expired",
    "PriceQuote",
    "PricingRules",
    "Surcharged",
    "Capacity",
    "CartItemId",
    "Money",
    "OpenHours",
    "OwnerKey",
    "TransactionId",
    "quantize",
]
