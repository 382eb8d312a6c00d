"""Configurable fake payment gateway for development and testing.

This adapter simulates the gateway without any external calls. It can be
configured to approve, decline, stay pending or fail to communicate, and it
records every call it receives.
"""

from typing import Any
from uuid import uuid4

from checkout.gateway.port import AcceptanceTokens, GatewayError, GatewayTransaction, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.initial_status: str = "PENDING"
        self.final_status: str = "APPROVED"
        self.async_url: str | None = None
        self.unreachable: bool = False
        self.calls: list[dict] = []
        self.transactions: dict[str, GatewayTransaction] = {}

    def configure(
        self,
        final_status: str = "APPROVED",
        initial_status: str = "PENDING",
        async_url: str | None = None,
        unreachable: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.final_status = final_status
        self.initial_status = initial_status
        self.async_url = async_url
        self.unreachable = unreachable

    def _record(self, method: str, **kwargs: Any) -> None:
        self.calls.append({"method": method, **kwargs})
        if self.unreachable:
            raise GatewayError("Fake gateway configured as unreachable")

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    def get_acceptance_tokens(self) -> AcceptanceTokens:
        self._record("get_acceptance_tokens")
        return AcceptanceTokens(acceptance_token="fake_acceptance", personal_data_token="fake_personal_data")

    def tokenize_card(self, card: dict[str, Any]) -> str:
        self._record("tokenize_card", last4=str(card.get("number", ""))[-4:])
        return f"tok_fake_{uuid4().hex[:12]}"

    def create_payment_source(
        self,
        card_token: str,
        customer_email: str,
        acceptance: AcceptanceTokens,
    ) -> str:
        self._record("create_payment_source", card_token=card_token, customer_email=customer_email)
        return f"src_fake_{uuid4().hex[:12]}"

    def create_transaction(self, payload: dict[str, Any]) -> GatewayTransaction:
        self._record("create_transaction", payload=payload)
        transaction = GatewayTransaction(
            id=f"fake_txn_{uuid4().hex[:12]}",
            status=self.initial_status,
            reference=payload.get("reference"),
        )
        self.transactions[transaction.id] = transaction
        return transaction

    def get_transaction_status(self, transaction_id: str) -> GatewayTransaction:
        self._record("get_transaction_status", transaction_id=transaction_id)
        known = self.transactions.get(transaction_id)
        if known is None:
            raise GatewayError(f"Unknown transaction {transaction_id}")
        return GatewayTransaction(
            id=transaction_id,
            status=self.final_status,
            reference=known.reference,
            async_payment_url=self.async_url,
        )

    def poll_transaction_for_async_url(self, transaction_id: str, timeout: float, interval: float) -> str | None:
        self._record("poll_transaction_for_async_url", transaction_id=transaction_id)
        return self.async_url
