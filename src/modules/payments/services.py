"""Payment reconciliation service.

Keeps an order's payment state consistent with what the gateway reports,
whether it arrives through the client (signed confirmation), an operator
(refund) or the gateway itself (webhooks).

Business rules enforced:
- An order is never marked paid on client assertion alone: the
  confirmation signature must verify, and the signed gateway order must
  have been opened for that same order.
- An unverified webhook is rejected before any other work.
- Applying the same payment outcome twice is a no-op (gateways redeliver,
  and the client confirmation races the webhook).
- ``Paid`` is never downgraded by a failure, and a refunded order is
  never marked paid again.
- A refund needs a paid order without a refund; when the gateway refuses
  it the order is left untouched.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.notifications.messages import (
    PAYMENT_FAILED_MESSAGE,
    PAYMENT_REFUNDED_MESSAGE,
    PAYMENT_SUCCESS_MESSAGE,
    status_update_event,
)
from modules.orders.constants import PaymentStatus
from modules.orders.events import PaymentCaptured, PaymentFailed, PaymentRefunded
from modules.orders.exceptions import OrderAccessDenied, OrderNotFound
from modules.orders.side_effects import dispatch_on_commit
from modules.payments.dtos import (
    PaymentIntentDTO,
    PaymentStatusDTO,
    RefundDTO,
    RefundResult,
    VerificationDTO,
)
from modules.payments.exceptions import (
    ConfirmationMismatch,
    InvalidSignature,
    OrderAlreadyPaid,
    PaymentValidationError,
    RefundNotAllowed,
)
from modules.payments.gateway import from_minor_units, to_minor_units
from modules.payments.signatures import confirmation_message, verify_signature

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.gateway import RazorpayGateway
    from shared.domain.bus import IEventBus, INotificationBus

logger = structlog.get_logger(__name__)

PAYMENT_METHOD = "razorpay"


def _order_id_from_notes(entity: Dict[str, Any]) -> Optional[str]:
    notes = entity.get("notes") or {}
    if not isinstance(notes, dict):
        return None
    return notes.get("order_id") or notes.get("orderId")


class PaymentService:
    """Application service for payment use-cases.

    Receives the order repository, gateway and buses via constructor
    injection.  The two secrets default to ``settings.PAYMENTS``.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        gateway: RazorpayGateway,
        notification_bus: Optional[INotificationBus] = None,
        key_secret: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        event_bus: Optional[IEventBus] = None,
    ) -> None:
        razorpay_config = getattr(settings, "PAYMENTS", {}).get("RAZORPAY", {})
        self._order_repo = order_repository
        self._gateway = gateway
        self._bus = notification_bus
        self._event_bus = event_bus
        self._key_secret = key_secret or razorpay_config.get("KEY_SECRET", "")
        self._webhook_secret = webhook_secret or razorpay_config.get(
            "WEBHOOK_SECRET", ""
        )

    # ------------------------------------------------------------------
    # Intents & client confirmation
    # ------------------------------------------------------------------

    def create_payment_intent(
        self,
        order_id: Any,
        amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
        requester_id: Optional[int] = None,
        is_operator: bool = True,
    ) -> PaymentIntentDTO:
        """Open a gateway order for *order_id*.

        *amount* and *currency* default to the order's own.  The order
        itself is not modified.

        Raises:
            OrderNotFound: the order does not exist.
            OrderAccessDenied: the requester is neither owner nor operator.
            OrderAlreadyPaid: the order is paid or refunded.
            PaymentValidationError: non-positive amount.
            GatewayError: the gateway call failed.
        """
        order = self._get_for_requester(order_id, requester_id, is_operator)
        if order.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            raise OrderAlreadyPaid(f"Order {order.order_number} is already paid.")

        amount = order.total_amount if amount is None else Decimal(str(amount))
        if amount <= 0:
            raise PaymentValidationError("Amount must be greater than zero.")
        currency = (currency or order.currency).upper()
        minor_amount = to_minor_units(amount)

        gateway_order = self._gateway.create_order(
            amount=minor_amount,
            currency=currency,
            receipt=order.order_number,
            notes={
                "order_id": str(order.id),
                "description": f"Payment for order {order.order_number}",
            },
        )
        logger.info(
            "payment.intent_created",
            order_id=str(order.id),
            gateway_order_id=gateway_order.get("id"),
            amount=minor_amount,
            currency=currency,
        )
        return PaymentIntentDTO(
            gateway_order_id=gateway_order["id"],
            amount=minor_amount,
            currency=currency,
            receipt=gateway_order.get("receipt") or order.order_number,
            key_id=getattr(self._gateway, "key_id", ""),
        )

    def verify_client_confirmation(
        self, payment_id: str, gateway_order_id: str, client_signature: str
    ) -> VerificationDTO:
        """Check the signature the gateway handed to the client."""
        verified = verify_signature(
            self._key_secret,
            confirmation_message(gateway_order_id, payment_id),
            client_signature,
        )
        if not verified:
            logger.warning(
                "payment.confirmation_rejected",
                payment_id=payment_id,
                gateway_order_id=gateway_order_id,
            )
        return VerificationDTO(verified=verified)

    def confirm_client_payment(
        self,
        payment_id: str,
        order_id: Any,
        gateway_order_id: str,
        client_signature: str,
        requester_id: Optional[int] = None,
        is_operator: bool = False,
    ) -> Order:
        """Apply a checkout confirmation the client relays.

        The signature only proves the gateway order and payment belong
        together, so the gateway order is fetched and its ``order_id``
        note must name *order_id* before the order is marked paid.

        Raises:
            OrderNotFound: the order does not exist.
            OrderAccessDenied: the requester is neither owner nor operator.
            InvalidSignature: the signature does not verify.
            ConfirmationMismatch: the gateway order belongs to another order.
            GatewayError: the gateway order could not be fetched.
        """
        order = self._get_for_requester(order_id, requester_id, is_operator)
        if not self.verify_client_confirmation(
            payment_id, gateway_order_id, client_signature
        ).verified:
            raise InvalidSignature("Payment confirmation signature mismatch.")

        gateway_order = self._gateway.fetch_order(gateway_order_id)
        linked_order_id = _order_id_from_notes(gateway_order)
        if linked_order_id != str(order.id):
            logger.warning(
                "payment.confirmation_order_mismatch",
                order_id=str(order.id),
                gateway_order_id=gateway_order_id,
                linked_order_id=linked_order_id,
            )
            raise ConfirmationMismatch("Gateway order does not belong to this order.")

        return self.apply_payment_success(
            payment_id, order.id, gateway_order_id=gateway_order_id
        )

    # ------------------------------------------------------------------
    # Applying outcomes
    # ------------------------------------------------------------------

    @transaction.atomic
    def apply_payment_success(
        self,
        payment_id: str,
        order_id: Any,
        amount: Optional[Decimal] = None,
        gateway_order_id: Optional[str] = None,
    ) -> Order:
        """Mark the order paid by *payment_id*.

        Idempotent per payment id.  An order already paid by another
        payment, or refunded, is logged as an anomaly and left alone.

        Raises:
            OrderNotFound: the order does not exist.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        details = order.payment_details
        log = logger.bind(
            order_id=str(order.id),
            payment_id=payment_id,
            payment_status=order.payment_status,
        )

        if order.payment_status == PaymentStatus.PAID:
            if details.gateway_payment_id == payment_id:
                log.info("payment.success_already_applied")
            else:
                log.warning(
                    "payment.anomaly_paid_by_other",
                    existing_payment_id=details.gateway_payment_id,
                )
            return order
        if order.payment_status == PaymentStatus.REFUNDED:
            log.warning("payment.anomaly_success_after_refund")
            return order

        if amount is not None and Decimal(str(amount)) != order.total_amount:
            log.warning(
                "payment.amount_mismatch",
                paid=str(amount),
                total=str(order.total_amount),
            )

        order.payment_status = PaymentStatus.PAID
        order.payment_method = order.payment_method or PAYMENT_METHOD
        details.gateway_payment_id = payment_id
        if gateway_order_id:
            details.gateway_order_id = gateway_order_id
        details.amount = order.total_amount if amount is None else Decimal(str(amount))
        details.paid_at = timezone.now()
        details.failed_at = None
        details.error_code = ""
        details.error_description = ""
        self._order_repo.save(order)

        order.add_domain_event(
            PaymentCaptured(aggregate_id=order.id, payment_id=payment_id)
        )
        self._dispatch(order, PAYMENT_SUCCESS_MESSAGE)
        log.info("payment.captured")
        return order

    @transaction.atomic
    def apply_payment_failure(
        self,
        payment_id: str,
        order_id: Any,
        error_code: str = "",
        error_description: str = "",
    ) -> Order:
        """Record a failed payment attempt.

        Never downgrades a paid or refunded order; idempotent per
        payment id.

        Raises:
            OrderNotFound: the order does not exist.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        details = order.payment_details
        log = logger.bind(
            order_id=str(order.id),
            payment_id=payment_id,
            payment_status=order.payment_status,
        )

        if order.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            log.warning("payment.anomaly_failure_after_success")
            return order
        if (
            order.payment_status == PaymentStatus.FAILED
            and details.gateway_payment_id == payment_id
        ):
            log.info("payment.failure_already_applied")
            return order

        order.payment_status = PaymentStatus.FAILED
        details.gateway_payment_id = payment_id
        details.failed_at = timezone.now()
        details.error_code = error_code or ""
        details.error_description = error_description or ""
        self._order_repo.save(order)

        order.add_domain_event(PaymentFailed(aggregate_id=order.id, payment_id=payment_id))
        self._dispatch(order, PAYMENT_FAILED_MESSAGE)
        log.info("payment.failed", error_code=error_code)
        return order

    # ------------------------------------------------------------------
    # Refunds
    # ------------------------------------------------------------------

    @transaction.atomic
    def process_refund(
        self,
        payment_id: Optional[str],
        order_id: Any,
        amount: Optional[Decimal] = None,
        reason: str = "",
    ) -> RefundResult:
        """Refund a paid order through the gateway.

        *payment_id* defaults to the order's captured payment and
        *amount* to the paid amount.  The gateway is called before
        anything is written, so a gateway failure leaves the order as
        it was.

        Raises:
            OrderNotFound: the order does not exist.
            RefundNotAllowed: the order is not paid or already refunded.
            PaymentValidationError: bad amount or mismatching payment id.
            GatewayError: the gateway refused or could not be reached.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        details = order.payment_details
        log = logger.bind(order_id=str(order.id), payment_status=order.payment_status)

        if details.refund_id or order.payment_status == PaymentStatus.REFUNDED:
            log.warning("payment.refund_duplicate", refund_id=details.refund_id)
            raise RefundNotAllowed("Order is already refunded.")
        if order.payment_status != PaymentStatus.PAID:
            log.warning("payment.refund_not_paid")
            raise RefundNotAllowed("Only paid orders can be refunded.")

        payment_id = payment_id or details.gateway_payment_id
        if payment_id != details.gateway_payment_id:
            raise PaymentValidationError("Payment id does not match the order.")

        paid_amount = details.amount if details.amount is not None else order.total_amount
        amount = paid_amount if amount is None else Decimal(str(amount))
        if amount <= 0 or amount > paid_amount:
            raise PaymentValidationError(
                f"Refund amount must be between 0 and {paid_amount}."
            )
        reason = reason or "Operator initiated refund"

        refund = self._gateway.refund(
            payment_id,
            amount=to_minor_units(amount),
            notes={"order_id": str(order.id), "reason": reason},
        )

        order.payment_status = PaymentStatus.REFUNDED
        details.refund_id = refund["id"]
        details.refunded_at = timezone.now()
        details.refund_amount = amount
        details.refund_reason = reason
        self._order_repo.save(order)

        order.add_domain_event(
            PaymentRefunded(aggregate_id=order.id, refund_id=details.refund_id)
        )
        self._dispatch(order, PAYMENT_REFUNDED_MESSAGE)
        log.info("payment.refunded", refund_id=details.refund_id, amount=str(amount))

        return RefundResult(
            refund=RefundDTO(
                refund_id=refund["id"],
                payment_id=payment_id,
                amount=amount,
                status=refund.get("status", ""),
            ),
            order=order,
        )

    @transaction.atomic
    def apply_gateway_refund(
        self,
        refund_id: str,
        order_id: Any,
        amount: Optional[Decimal] = None,
        reason: str = "",
    ) -> Order:
        """Record a refund the gateway reports on its own.

        Idempotent per refund id; no outbound call is made.

        Raises:
            OrderNotFound: the order does not exist.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        details = order.payment_details
        log = logger.bind(order_id=str(order.id), refund_id=refund_id)

        if details.refund_id == refund_id:
            log.info("payment.refund_already_applied")
            return order
        if details.refund_id or order.payment_status != PaymentStatus.PAID:
            log.warning(
                "payment.anomaly_refund",
                payment_status=order.payment_status,
                existing_refund_id=details.refund_id,
            )
            return order

        order.payment_status = PaymentStatus.REFUNDED
        details.refund_id = refund_id
        details.refunded_at = timezone.now()
        details.refund_amount = details.amount if amount is None else amount
        details.refund_reason = reason or "Gateway refund"
        self._order_repo.save(order)

        order.add_domain_event(PaymentRefunded(aggregate_id=order.id, refund_id=refund_id))
        self._dispatch(order, PAYMENT_REFUNDED_MESSAGE)
        log.info("payment.refund_recorded")
        return order

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def handle_webhook_event(
        self,
        raw_body: bytes,
        signature_header: Optional[str],
        parsed_event: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Verify and dispatch one gateway webhook.

        Unknown event types, events without an order reference and
        events for unknown orders are logged and acknowledged.

        Raises:
            InvalidSignature: missing or mismatching signature.
            PaymentValidationError: the verified body is not a JSON object.
        """
        if not verify_signature(self._webhook_secret, raw_body, signature_header):
            logger.warning("payment.webhook_rejected", header_present=bool(signature_header))
            raise InvalidSignature("Webhook signature verification failed.")

        if parsed_event is None:
            try:
                parsed_event = json.loads(raw_body)
            except ValueError as exc:
                raise PaymentValidationError("Webhook body is not valid JSON.") from exc
        if not isinstance(parsed_event, dict):
            raise PaymentValidationError("Webhook body must be a JSON object.")

        event_type = parsed_event.get("event")
        handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            "payment.captured": self._on_payment_captured,
            "payment.failed": self._on_payment_failed,
            "refund.processed": self._on_refund_processed,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info("payment.webhook_ignored", event_type=event_type)
            return

        logger.info("payment.webhook_received", event_type=event_type)
        handler(parsed_event.get("payload") or {})

    def _on_payment_captured(self, payload: Dict[str, Any]) -> None:
        entity = (payload.get("payment") or {}).get("entity") or {}
        order_id = _order_id_from_notes(entity)
        if not order_id:
            logger.warning("payment.webhook_unlinked", payment_id=entity.get("id"))
            return
        try:
            self.apply_payment_success(
                entity.get("id", ""),
                order_id,
                from_minor_units(entity.get("amount")),
                gateway_order_id=entity.get("order_id"),
            )
        except OrderNotFound:
            logger.warning("payment.webhook_unknown_order", order_id=order_id)

    def _on_payment_failed(self, payload: Dict[str, Any]) -> None:
        entity = (payload.get("payment") or {}).get("entity") or {}
        order_id = _order_id_from_notes(entity)
        if not order_id:
            logger.warning("payment.webhook_unlinked", payment_id=entity.get("id"))
            return
        try:
            self.apply_payment_failure(
                entity.get("id", ""),
                order_id,
                entity.get("error_code") or "",
                entity.get("error_description") or "",
            )
        except OrderNotFound:
            logger.warning("payment.webhook_unknown_order", order_id=order_id)

    def _on_refund_processed(self, payload: Dict[str, Any]) -> None:
        entity = (payload.get("refund") or {}).get("entity") or {}
        order_id = _order_id_from_notes(entity)
        if not order_id:
            order = self._order_repo.get_by_gateway_payment_id(
                entity.get("payment_id", "")
            )
            order_id = str(order.id) if order else None
        if not order_id:
            logger.warning("payment.webhook_unlinked", refund_id=entity.get("id"))
            return
        try:
            self.apply_gateway_refund(
                entity.get("id", ""),
                order_id,
                from_minor_units(entity.get("amount")),
                reason=(entity.get("notes") or {}).get("reason", "")
                if isinstance(entity.get("notes"), dict)
                else "",
            )
        except OrderNotFound:
            logger.warning("payment.webhook_unknown_order", order_id=order_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_payment_status(
        self,
        order_id: Any,
        requester_id: Optional[int] = None,
        is_operator: bool = False,
    ) -> PaymentStatusDTO:
        """Raises ``OrderNotFound`` / ``OrderAccessDenied``."""
        order = self._get_for_requester(order_id, requester_id, is_operator)
        details = order.payment_details
        return PaymentStatusDTO(
            order_id=str(order.id),
            order_number=order.order_number,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            total_amount=order.total_amount,
            currency=order.currency,
            details={
                "gateway_payment_id": details.gateway_payment_id,
                "gateway_order_id": details.gateway_order_id,
                "amount": details.amount,
                "paid_at": details.paid_at,
                "failed_at": details.failed_at,
                "error_code": details.error_code,
                "error_description": details.error_description,
                "refund_id": details.refund_id,
                "refunded_at": details.refunded_at,
                "refund_amount": details.refund_amount,
            },
        )

    def fetch_gateway_payment(self, payment_id: str) -> Dict[str, Any]:
        """Raises ``GatewayError``."""
        return self._gateway.fetch_payment(payment_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_for_requester(
        self, order_id: Any, requester_id: Optional[int], is_operator: bool
    ) -> Order:
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        if not is_operator and (
            requester_id is None or order.customer_id != requester_id
        ):
            raise OrderAccessDenied("You do not have access to this order.")
        return order

    def _dispatch(self, order: Order, message: str) -> None:
        notifications = []
        if order.customer_id is not None:
            notifications.append(
                status_update_event(
                    order.customer_id,
                    order.id,
                    order.status,
                    message=message,
                    payment_status=order.payment_status,
                )
            )
        dispatch_on_commit(
            self._bus, notifications, self._event_bus, order.pull_domain_events()
        )
