"""Wompi payment gateway adapter (httpx)."""

import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from checkout.gateway.port import AcceptanceTokens, GatewayError, GatewayTransaction, PaymentGateway

logger = structlog.get_logger(__name__)

SANDBOX_URL = "https://sandbox.wompi.co/v1"
PRODUCTION_URL = "https://production.wompi.co/v1"


@dataclass(frozen=True)
class WompiConfig:
    """Merchant credentials and client settings."""

    public_key: str
    private_key: str
    base_url: str = SANDBOX_URL
    timeout_seconds: float = 15.0


def _to_transaction(data: dict[str, Any]) -> GatewayTransaction:
    extra = (data.get("payment_method") or {}).get("extra") or {}
    return GatewayTransaction(
        id=str(data["id"]),
        status=str(data["status"]),
        reference=data.get("reference"),
        async_payment_url=extra.get("async_payment_url"),
    )


class WompiGateway(PaymentGateway):
    """Talks to the Wompi REST API."""

    name = "wompi"

    def __init__(self, config: WompiConfig, client: httpx.Client | None = None) -> None:
        self.config = config
        self._client = client or httpx.Client(base_url=config.base_url, timeout=config.timeout_seconds)

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, *, private: bool = False, json: dict | None = None) -> dict[str, Any]:
        key = self.config.private_key if private else self.config.public_key
        try:
            response = self._client.request(
                method,
                path,
                json=json,
                headers={"Authorization": f"Bearer {key}"},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Wompi request rejected",
                path=path,
                status_code=exc.response.status_code,
            )
            raise GatewayError(f"Wompi returned {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Wompi request failed", path=path, error=str(exc))
            raise GatewayError("Wompi is unreachable") from exc

        data = body.get("data") if isinstance(body, dict) else None
        if data is None:
            raise GatewayError("Wompi response has no data")
        return data

    def get_acceptance_tokens(self) -> AcceptanceTokens:
        data = self._request("GET", f"/merchants/{self.config.public_key}")
        try:
            return AcceptanceTokens(
                acceptance_token=data["presigned_acceptance"]["acceptance_token"],
                personal_data_token=data["presigned_personal_data_auth"]["acceptance_token"],
            )
        except (KeyError, TypeError) as exc:
            raise GatewayError("Wompi merchant response is missing acceptance tokens") from exc

    def tokenize_card(self, card: dict[str, Any]) -> str:
        data = self._request("POST", "/tokens/cards", json=card)
        return str(data["id"])

    def create_payment_source(
        self,
        card_token: str,
        customer_email: str,
        acceptance: AcceptanceTokens,
    ) -> str:
        data = self._request(
            "POST",
            "/payment_sources",
            private=True,
            json={
                "type": "CARD",
                "token": card_token,
                "customer_email": customer_email,
                "acceptance_token": acceptance.acceptance_token,
                "accept_personal_auth": acceptance.personal_data_token,
            },
        )
        return str(data["id"])

    def create_transaction(self, payload: dict[str, Any]) -> GatewayTransaction:
        data = self._request("POST", "/transactions", private=True, json=payload)
        transaction = _to_transaction(data)
        logger.info(
            "Wompi transaction created",
            gateway_transaction_id=transaction.id,
            reference=transaction.reference,
            status=transaction.status,
        )
        return transaction

    def get_transaction_status(self, transaction_id: str) -> GatewayTransaction:
        return _to_transaction(self._request("GET", f"/transactions/{transaction_id}"))

    def poll_transaction_for_async_url(self, transaction_id: str, timeout: float, interval: float) -> str | None:
        deadline = time.monotonic() + timeout
        while True:
            transaction = self.get_transaction_status(transaction_id)
            if transaction.async_payment_url:
                return transaction.async_payment_url
            if time.monotonic() + interval > deadline:
                logger.warning("Async payment URL not available in time", gateway_transaction_id=transaction_id)
                return None
            time.sleep(interval)
