"""HMAC-SHA256 helpers for gateway signatures.

Both the client confirmation (keyed by the API key secret) and webhooks
(keyed by the webhook secret) are hex HMAC-SHA256 digests, compared in
constant time.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional, Union


def compute_signature(secret: str, message: Union[bytes, str]) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(
    secret: Optional[str], message: Union[bytes, str], signature: Optional[str]
) -> bool:
    """``False`` for a missing secret or signature, never an exception."""
    if not secret or not signature:
        return False
    expected = compute_signature(secret, message)
    return hmac.compare_digest(
        expected.encode("utf-8"), str(signature).strip().encode("utf-8")
    )


def confirmation_message(gateway_order_id: str, payment_id: str) -> str:
    """Canonical ``<gateway order id>|<payment id>`` string the gateway signs."""
    return f"{gateway_order_id}|{payment_id}"
