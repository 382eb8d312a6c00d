"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and WompiGateway
(production) without changing any domain or service code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class GatewayError(Exception):
    """The gateway could not be reached or answered with an unusable response."""


@dataclass(frozen=True)
class AcceptanceTokens:
    """Presigned acceptance tokens the buyer agrees to before paying."""

    acceptance_token: str
    personal_data_token: str


@dataclass(frozen=True)
class GatewayTransaction:
    """Gateway view of a transaction."""

    id: str
    status: str
    reference: str | None = None
    async_payment_url: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str = "gateway"

    @abstractmethod
    def get_acceptance_tokens(self) -> AcceptanceTokens:
        """Return the merchant's current acceptance tokens."""
        ...

    @abstractmethod
    def tokenize_card(self, card: dict[str, Any]) -> str:
        """Exchange raw card data for a single-use card token."""
        ...

    @abstractmethod
    def create_payment_source(
        self,
        card_token: str,
        customer_email: str,
        acceptance: AcceptanceTokens,
    ) -> str:
        """Create a reusable payment source from a card token and return its ID."""
        ...

    @abstractmethod
    def create_transaction(self, payload: dict[str, Any]) -> GatewayTransaction:
        """Create a transaction from a fully built, signed payload."""
        ...

    @abstractmethod
    def get_transaction_status(self, transaction_id: str) -> GatewayTransaction:
        """Return the current state of a gateway transaction."""
        ...

    @abstractmethod
    def poll_transaction_for_async_url(self, transaction_id: str, timeout: float, interval: float) -> str | None:
        """Poll until the bank redirect URL is available or `timeout` seconds pass."""
        ...
