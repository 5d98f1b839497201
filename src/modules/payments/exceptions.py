"""Payment domain exceptions.

Raised by the reconciliation service; the payment views translate them
into HTTP responses.  Gateway and signature failures are reported to the
client with a generic message, the detail only goes to the logs.
"""

from __future__ import annotations


class PaymentValidationError(Exception):
    """A payment request carries an unusable amount or identifier."""


class PaymentConflict(Exception):
    """The order's payment state does not allow the operation."""


class OrderAlreadyPaid(PaymentConflict):
    """A payment intent was requested for an order that is already paid."""


class RefundNotAllowed(PaymentConflict):
    """The order is not paid, or has already been refunded."""


class InvalidSignature(Exception):
    """An HMAC signature (client confirmation or webhook) did not match."""


class GatewayError(Exception):
    """The payment gateway could not be reached or rejected the call."""


class ConfirmationMismatch(InvalidSignature):
    """A correctly signed confirmation belongs to a different order."""
