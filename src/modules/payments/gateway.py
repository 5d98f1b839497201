"""Razorpay gateway adapter.

Thin wrapper over the official ``razorpay`` SDK.  Every call carries a
bounded timeout and is attempted once; any SDK or transport failure is
re-raised as ``GatewayError`` with the original chained for the logs.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional

import razorpay
import requests
import structlog
from django.conf import settings
from razorpay import errors as razorpay_errors

from modules.payments.exceptions import GatewayError, PaymentValidationError

logger = structlog.get_logger(__name__)

_SDK_ERRORS = (
    razorpay_errors.BadRequestError,
    razorpay_errors.GatewayError,
    razorpay_errors.ServerError,
    requests.RequestException,
)


def to_minor_units(amount: Any) -> int:
    """Major to minor currency units (paise, cents), rounding half up."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise PaymentValidationError(f"Invalid amount {amount!r}.") from exc
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: Any) -> Optional[Decimal]:
    if amount is None:
        return None
    return (Decimal(str(amount)) / 100).quantize(Decimal("0.01"))


class RazorpayGateway:
    """Payment gateway client used by ``PaymentService``.

    ``client`` can be injected (tests pass a mock); by default one is
    built from the key pair.
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        timeout: float = 10,
        client: Optional[Any] = None,
    ) -> None:
        self.key_id = key_id
        self._timeout = timeout
        self._client = client or razorpay.Client(auth=(key_id, key_secret))

    @classmethod
    def from_settings(cls) -> RazorpayGateway:
        config = settings.PAYMENTS["RAZORPAY"]
        return cls(
            key_id=config["KEY_ID"],
            key_secret=config["KEY_SECRET"],
            timeout=config["TIMEOUT_SECONDS"],
        )

    def _call(self, operation: str, func, *args, **kwargs) -> Dict[str, Any]:
        try:
            return func(*args, timeout=self._timeout, **kwargs)
        except _SDK_ERRORS as exc:
            logger.error(
                "gateway.call_failed",
                operation=operation,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise GatewayError(f"Gateway {operation} failed.") from exc

    def create_order(
        self, amount: int, currency: str, receipt: str, notes: Dict[str, str]
    ) -> Dict[str, Any]:
        """Open a gateway order for *amount* minor units."""
        data = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        result = self._call("order.create", self._client.order.create, data=data)
        logger.info(
            "gateway.order_created",
            gateway_order_id=result.get("id"),
            amount=amount,
            currency=currency,
        )
        return result

    def refund(
        self, payment_id: str, amount: int, notes: Dict[str, str]
    ) -> Dict[str, Any]:
        data = {"amount": amount, "speed": "normal", "notes": notes}
        result = self._call(
            "payment.refund", self._client.payment.refund, payment_id, data
        )
        logger.info(
            "gateway.refund_created",
            payment_id=payment_id,
            refund_id=result.get("id"),
            amount=amount,
        )
        return result

    def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        return self._call("payment.fetch", self._client.payment.fetch, payment_id)

    def fetch_order(self, gateway_order_id: str) -> Dict[str, Any]:
        return self._call("order.fetch", self._client.order.fetch, gateway_order_id)
