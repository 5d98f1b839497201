"""Order aggregate models.

Business rules implemented:
- Order number auto-generated as a human-readable identifier, reused as
  the payment gateway receipt.
- Items snapshot the name and unit price at order time; ``line_total`` is
  always ``quantity * unit_price`` and ``total_amount`` is set once.
- Status history is append-only: rows are inserted, never updated or
  deleted on their own, and are ordered by a per-order ``sequence``.
- ``version`` is bumped by the repository on every aggregate write
  (compare-and-swap, see ``OrderDjangoRepository.save``).
- Payment invariants: ``paid_at`` and ``failed_at`` are exclusive,
  ``Paid`` requires ``paid_at``, ``Refunded`` requires ``refund_id`` and a
  refund requires a captured payment.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    PERMISSIVE_TRANSITIONS,
    OrderStatus,
    OrderType,
    PaymentStatus,
)
from modules.orders.exceptions import ImmutableHistoryError
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``customer`` is nullable so guest orders can be placed; the contact
    fields are a snapshot taken at order time, not a live reference to
    the user's profile.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    customer: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    customer_name: models.CharField = models.CharField(max_length=150)
    customer_email: models.EmailField = models.EmailField(blank=True, default="")
    customer_phone: models.CharField = models.CharField(
        max_length=20, blank=True, default=""
    )
    order_type: models.CharField = models.CharField(
        max_length=10,
        choices=OrderType.choices,
        default=OrderType.DELIVERY,
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status: models.CharField = models.CharField(
        max_length=10,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_method: models.CharField = models.CharField(
        max_length=30, blank=True, default=""
    )
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    currency: models.CharField = models.CharField(max_length=3, default="INR")
    special_instructions: models.TextField = models.TextField(blank=True, default="")
    idempotency_key: models.CharField = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )
    version: models.PositiveIntegerField = models.PositiveIntegerField(
        default=0, editable=False
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["payment_status"], name="orders_pay_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]

    # ------------------------------------------------------------------
    # State machine helpers
    # ------------------------------------------------------------------

    def can_transition_to(
        self, new_status: str, transitions: dict[str, set[str]] | None = None
    ) -> bool:
        table = PERMISSIVE_TRANSITIONS if transitions is None else transitions
        return new_status in table.get(self.status, set())

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def clean(self) -> None:
        super().clean()
        details = getattr(self, "payment_details", None)
        if self.payment_status == PaymentStatus.PAID and (
            details is None or details.paid_at is None
        ):
            raise ValidationError({"payment_status": "Paid requires paid_at."})
        if self.payment_status == PaymentStatus.REFUNDED and (
            details is None or not details.refund_id
        ):
            raise ValidationError({"payment_status": "Refunded requires refund_id."})
        if details is not None:
            details.clean()

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item with a name and price snapshot.

    ``menu_item`` is optional enrichment only; the snapshot fields are
    what the order is billed on.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    menu_item: models.ForeignKey = models.ForeignKey(
        "menu.MenuItem",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )
    item_name: models.CharField = models.CharField(max_length=200)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    line_total: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.line_total = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.item_name} x{self.quantity} ({self.line_total})"


class OrderStatusHistoryQuerySet(models.QuerySet):
    def update(self, **kwargs: Any) -> int:
        raise ImmutableHistoryError("Status history entries cannot be updated.")

    def delete(self) -> tuple[int, dict[str, int]]:
        raise ImmutableHistoryError("Status history entries cannot be deleted.")


class OrderStatusHistory(BaseModel):
    """Append-only audit trail of every status an order has held.

    ``actor`` is nullable: ``None`` means the change was made by the
    system (order placement, a customer checkout).  Removing the parent
    order removes its history through the database cascade.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    sequence: models.PositiveIntegerField = models.PositiveIntegerField()
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    previous_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    actor: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    objects = OrderStatusHistoryQuerySet.as_manager()

    class Meta:
        db_table = "order_status_history"
        ordering = ["sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "sequence"],
                name="osh_order_sequence_uniq",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ImmutableHistoryError("Status history entries cannot be updated.")
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise ImmutableHistoryError("Status history entries cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.order_id} #{self.sequence}: {self.previous_status} -> {self.status}"


class OrderDeliveryDetails(BaseModel):
    order: models.OneToOneField = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="delivery_details",
    )
    address: models.TextField = models.TextField(blank=True, default="")
    city: models.CharField = models.CharField(max_length=100, blank=True, default="")
    pincode: models.CharField = models.CharField(max_length=12, blank=True, default="")
    phone: models.CharField = models.CharField(max_length=20, blank=True, default="")
    estimated_time: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    actual_delivery_time: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )
    courier_note: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_delivery_details"


class OrderPaymentDetails(BaseModel):
    """Gateway-side payment state of an order.

    Written only by the payment reconciliation service.
    """

    order: models.OneToOneField = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="payment_details",
    )
    gateway_payment_id: models.CharField = models.CharField(
        max_length=64, blank=True, default="", db_index=True
    )
    gateway_order_id: models.CharField = models.CharField(
        max_length=64, blank=True, default=""
    )
    amount: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    paid_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    failed_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    error_code: models.CharField = models.CharField(
        max_length=64, blank=True, default=""
    )
    error_description: models.TextField = models.TextField(blank=True, default="")
    refund_id: models.CharField = models.CharField(
        max_length=64, blank=True, default=""
    )
    refunded_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    refund_amount: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    refund_reason: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_payment_details"

    def clean(self) -> None:
        super().clean()
        if self.paid_at is not None and self.failed_at is not None:
            raise ValidationError("paid_at and failed_at cannot both be set.")
        if self.refund_id and (not self.gateway_payment_id or self.paid_at is None):
            raise ValidationError(
                {"refund_id": "A refund requires a captured payment."}
            )
