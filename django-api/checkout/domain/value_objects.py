"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from datetime import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Self
from uuid import UUID

CENT = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    """Round a monetary amount half-up to cents."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CartItemId:
    """Unique identifier for a CartItem."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TransactionId:
    """Unique identifier for a CheckoutTransaction."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class OwnerKey:
    """Identity that owns a cart: exactly one of a user or an anonymous session."""

    user_id: str | None = None
    session_id: str | None = None

    def __post_init__(self) -> None:
        if bool(self.user_id) == bool(self.session_id):
            raise ValueError("Exactly one of user_id or session_id is required")

    @classmethod
    def for_user(cls, user_id: str) -> Self:
        return cls(user_id=str(user_id))

    @classmethod
    def for_session(cls, session_id: str) -> Self:
        return cls(session_id=session_id)

    @classmethod
    def from_key(cls, key: str) -> Self:
        kind, _, value = key.partition(":")
        if kind == "user":
            return cls(user_id=value)
        if kind == "session":
            return cls(session_id=value)
        raise ValueError(f"Unknown owner key kind: {kind}")

    @property
    def key(self) -> str:
        if self.user_id:
            return f"user:{self.user_id}"
        return f"session:{self.session_id}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Money:
    """Price representation with validation."""

    amount: Decimal

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("Money amount cannot be negative")

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing an inventory cap."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")


@dataclass(frozen=True)
class OpenHours:
    """Opening window for one weekday; close may fall on the next day."""

    day: str
    open: time
    close: time

    @property
    def crosses_midnight(self) -> bool:
        return self.close <= self.open
