"""Integrity signatures and webhook checksums."""

import hashlib
import hmac
from typing import Any


def integrity_signature(reference: str, amount_in_cents: int, currency: str, secret: str) -> str:
    """SHA-256 over reference, amount in cents, currency and the integrity secret."""
    raw = f"{reference}{amount_in_cents}{currency}{secret}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def verify_integrity_signature(
    signature: str,
    reference: str,
    amount_in_cents: int,
    currency: str,
    secret: str,
) -> bool:
    expected = integrity_signature(reference, amount_in_cents, currency, secret)
    return hmac.compare_digest(expected, signature)


def value_at(source: Any, path: str) -> Any:
    """Read a nested value by dotted path, e.g. "transaction.id"."""
    current = source
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment)
    return current


def event_checksum(event: dict[str, Any], secret: str) -> str:
    """Checksum of a gateway event.

    Concatenates the values of `signature.properties` (read from `data`),
    the event timestamp and the events secret, then hashes with SHA-256.
    """
    properties = value_at(event, "signature.properties") or []
    data = event.get("data") or {}
    values = "".join(str(value_at(data, prop)) for prop in properties)
    raw = f"{values}{event.get('timestamp', '')}{secret}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def verify_event_checksum(event: dict[str, Any], secret: str) -> bool:
    received = value_at(event, "signature.checksum")
    if not isinstance(received, str) or not received:
        return False
    return hmac.compare_digest(event_checksum(event, secret).lower(), received.lower())
