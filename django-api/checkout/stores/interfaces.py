"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from uuid import UUID

from checkout.domain import (
    CartItem,
    CartItemId,
    CartLockRecord,
    CheckoutTransaction,
    Club,
    Event,
    MenuItem,
    MenuPurchase,
    OwnerKey,
    PaymentStatus,
    Ticket,
    TicketPurchase,
    TransactionId,
)


class CatalogStore(ABC):
    """Read-only access to clubs, events, tickets and menu items."""

    @abstractmethod
    def get_club(self, club_id: UUID) -> Club | None:
        """Return a club by ID, or None if not found."""
        ...

    @abstractmethod
    def get_event(self, event_id: UUID) -> Event | None:
        """Return an event by ID, or None if not found."""
        ...

    @abstractmethod
    def get_event_on(self, club_id: UUID, day: date) -> Event | None:
        """Return the active event a club holds on `day`, if any."""
        ...

    @abstractmethod
    def has_paid_event_on(self, club_id: UUID, day: date) -> bool:
        """Check if a club has an event with a paid ticket on `day`."""
        ...

    @abstractmethod
    def get_ticket(self, ticket_id: UUID) -> Ticket | None:
        """Return a ticket by ID, or None if not found."""
        ...

    @abstractmethod
    def get_menu_item(self, menu_item_id: UUID) -> MenuItem | None:
        """Return a menu item with its variants, or None if not found."""
        ...

    @abstractmethod
    def count_sold(self, ticket_id: UUID, day: date) -> int:
        """Return how many units of a ticket were sold for `day`."""
        ...


class CartStore(ABC):
    """Interface for cart line persistence."""

    @abstractmethod
    def list_items(self, owner: OwnerKey) -> list[CartItem]:
        """Return an owner's cart lines ordered by created_at ascending."""
        ...

    @abstractmethod
    def get_item(self, item_id: CartItemId) -> CartItem | None:
        """Return a cart line by ID regardless of owner, or None."""
        ...

    @abstractmethod
    def save_item(self, item: CartItem) -> CartItem:
        """Insert or update a cart line."""
        ...

    @abstractmethod
    def delete_item(self, item_id: CartItemId) -> None:
        """Delete a cart line."""
        ...

    @abstractmethod
    def clear(self, owner: OwnerKey) -> int:
        """Delete every cart line of an owner and return how many were removed."""
        ...

    @abstractmethod
    def stale_owners(self, cutoff: datetime) -> list[OwnerKey]:
        """Return owners whose most recent cart update is older than `cutoff`."""
        ...


class TransactionStore(ABC):
    """Interface for checkout transactions and the purchases they produce."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Return a context manager wrapping a single database transaction."""
        ...

    @abstractmethod
    def create(self, transaction: CheckoutTransaction) -> CheckoutTransaction:
        """Persist a new transaction."""
        ...

    @abstractmethod
    def get(self, transaction_id: TransactionId) -> CheckoutTransaction | None:
        """Return a transaction by ID, or None."""
        ...

    @abstractmethod
    def get_for_update(self, transaction_id: TransactionId) -> CheckoutTransaction | None:
        """Return a transaction by ID with its row locked until the enclosing atomic block ends."""
        ...

    @abstractmethod
    def get_by_reference(self, reference: str) -> CheckoutTransaction | None:
        """Return a transaction by its locally generated provider reference."""
        ...

    @abstractmethod
    def update_status(
        self,
        transaction_id: TransactionId,
        status: PaymentStatus,
        provider_transaction_id: str | None = None,
    ) -> None:
        """Persist a new payment status, and the provider ID when given."""
        ...

    @abstractmethod
    def mark_processed(self, transaction_id: TransactionId, when: datetime, qr_payload: str | None) -> None:
        """Set processed_at exactly once.

        Raises:
            IdempotencyViolation: If processed_at was already set.
        """
        ...

    @abstractmethod
    def add_ticket_purchases(self, purchases: list[TicketPurchase]) -> None:
        """Persist ticket purchase rows."""
        ...

    @abstractmethod
    def add_menu_purchases(self, purchases: list[MenuPurchase]) -> None:
        """Persist menu purchase rows."""
        ...

    @abstractmethod
    def list_ticket_purchases(self, transaction_id: TransactionId) -> list[TicketPurchase]:
        """Return ticket purchases of a transaction ordered by sequence index."""
        ...

    @abstractmethod
    def list_menu_purchases(self, transaction_id: TransactionId) -> list[MenuPurchase]:
        """Return menu purchases of a transaction."""
        ...


class CartLockStore(ABC):
    """Mutual exclusion over a cart for the duration of a checkout."""

    @abstractmethod
    def acquire(self, owner: OwnerKey, transaction_id: str) -> bool:
        """Take the lock; return False if a live lock is already held."""
        ...

    @abstractmethod
    def release(self, owner: OwnerKey) -> bool:
        """Drop the lock; return True if one was held."""
        ...

    @abstractmethod
    def is_locked(self, owner: OwnerKey) -> bool:
        """Check if a live lock is held."""
        ...

    @abstractmethod
    def get(self, owner: OwnerKey) -> CartLockRecord | None:
        """Return the live lock record, or None."""
        ...

    @abstractmethod
    def update_transaction_id(self, owner: OwnerKey, transaction_id: str) -> bool:
        """Point a live lock at another transaction ID; return False if none is held."""
        ...

    @abstractmethod
    def sweep_expired(self) -> int:
        """Remove expired locks and return how many were removed."""
        ...
