"""Encrypted QR payloads.

Payloads are short JSON documents encrypted with Fernet, so a scanner can
trust the ID it reads without a database lookup for authenticity.
"""

import base64
import hashlib
import json
from datetime import datetime

from cryptography.fernet import Fernet, InvalidToken


def derive_key(secret: str) -> bytes:
    """Turn an arbitrary secret string into a Fernet key."""
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class QrEncoder:
    """Encrypts and decrypts QR payloads bound to a purchase or transaction."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("QR secret must not be empty")
        self._fernet = Fernet(derive_key(secret))

    def _encode(self, kind: str, entity_id: str, club_id: str, issued_at: datetime) -> str:
        body = {"t": kind, "i": entity_id, "c": club_id, "ts": int(issued_at.timestamp())}
        return self._fernet.encrypt(json.dumps(body, separators=(",", ":")).encode("utf-8")).decode("ascii")

    def ticket(self, purchase_id: str, club_id: str, issued_at: datetime) -> str:
        return self._encode("ticket", purchase_id, club_id, issued_at)

    def menu(self, transaction_id: str, club_id: str, issued_at: datetime) -> str:
        return self._encode("menu", transaction_id, club_id, issued_at)

    def decode(self, token: str) -> dict:
        """Return the decrypted payload.

        Raises:
            ValueError: If the token was not produced with this secret.
        """
        try:
            raw = self._fernet.decrypt(token.encode("ascii"))
        except InvalidToken as exc:
            raise ValueError("Invalid QR payload") from exc
        return json.loads(raw)
