"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` so the
Order aggregate (order, items, details, history) is persisted atomically.

Concurrency control combines two mechanisms: ``get_for_update`` takes a
row lock (``SELECT ... FOR UPDATE`` on backends that support it) and
``save`` writes with a compare-and-swap on ``version``.  A writer that
loses the race gets ``ConcurrentOrderUpdate`` rather than silently
overwriting the winner's status and history.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, F, Max, Sum
from django.utils import timezone

from modules.orders.exceptions import ConcurrentOrderUpdate
from modules.orders.models import (
    Order,
    OrderDeliveryDetails,
    OrderItem,
    OrderPaymentDetails,
    OrderStatusHistory,
)
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_DETAIL_RELATIONS = ("customer", "delivery_details", "payment_details")
_PREFETCH = ("items", "status_history")
_CAS_EXCLUDED = {"id", "created_at", "updated_at", "version"}


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        data = dict(data)
        items = data.pop("items", [])
        delivery = data.pop("delivery", None) or {}

        order = Order(**data)
        order.save()

        for item_data in items:
            OrderItem(order=order, **item_data).save()

        OrderDeliveryDetails.objects.create(order=order, **delivery)
        OrderPaymentDetails.objects.create(order=order)

        logger.info("order.created", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _queryset(self):
        return Order.objects.select_related(*_DETAIL_RELATIONS).prefetch_related(
            *_PREFETCH
        )

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Returns ``None`` for non-existent or malformed IDs.
        """
        try:
            return self._queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        ``of=("self",)`` keeps the nullable customer join out of the
        lock; items and history are fetched in separate queries.
        Returns ``None`` for non-existent or malformed IDs.
        """
        try:
            return (
                Order.objects.select_for_update(of=("self",))
                .select_related(*_DETAIL_RELATIONS)
                .prefetch_related(*_PREFETCH)
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        return self._queryset().filter(idempotency_key=key).first()

    def get_by_gateway_payment_id(self, payment_id: str) -> Optional[Order]:
        if not payment_id:
            return None
        return (
            self._queryset()
            .filter(payment_details__gateway_payment_id=payment_id)
            .first()
        )

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders, newest first.

        Supported filter keys are any ORM look-ups on ``Order``, e.g.
        ``status``, ``customer_id`` or ``created_at__date``.
        """
        queryset = self._queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def queryset(self, filters: Optional[Dict[str, Any]] = None):
        """Lazy variant of ``list`` for views that filter and paginate."""
        queryset = Order.objects.select_related("customer")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and its detail rows.

        New orders are inserted; existing orders are written only if
        nobody bumped ``version`` since ``entity`` was loaded.

        Raises:
            ConcurrentOrderUpdate: the stored version moved on.
        """
        entity.clean()

        if entity._state.adding:
            entity.save()
        else:
            now = timezone.now()
            values = {
                field.attname: getattr(entity, field.attname)
                for field in Order._meta.concrete_fields
                if field.name not in _CAS_EXCLUDED
            }
            updated = Order.objects.filter(pk=entity.pk, version=entity.version).update(
                **values, version=F("version") + 1, updated_at=now
            )
            if updated == 0:
                logger.warning(
                    "order.concurrent_update",
                    order_id=str(entity.pk),
                    expected_version=entity.version,
                )
                raise ConcurrentOrderUpdate(
                    f"Order {entity.pk} was modified by another request."
                )
            entity.version += 1
            entity.updated_at = now

        for relation in ("delivery_details", "payment_details"):
            details = getattr(entity, relation, None)
            if details is not None:
                details.save()

        logger.info("order.saved", order_id=str(entity.id), version=entity.version)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Hard-delete an order; children go with it by cascade."""
        try:
            deleted, _ = Order.objects.filter(id=id).delete()
        except (ValueError, ValidationError):
            return False
        if not deleted:
            return False
        logger.info("order.deleted", order_id=str(id))
        return True

    # ------------------------------------------------------------------
    # Order-specific queries
    # ------------------------------------------------------------------

    @transaction.atomic
    def add_history(
        self,
        order: Order,
        status: str,
        previous_status: Optional[str] = None,
        actor_id: Optional[int] = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Append a status change to the order's audit trail.

        The sequence is one past the highest stored for the order; the
        ``(order, sequence)`` unique constraint rejects a duplicate.
        """
        last = OrderStatusHistory.objects.filter(order_id=order.id).aggregate(
            last=Max("sequence")
        )["last"]
        history = OrderStatusHistory(
            order_id=order.id,
            sequence=(last or 0) + 1,
            status=status,
            previous_status=previous_status,
            actor_id=actor_id,
            notes=notes,
        )
        history.save()

        logger.info(
            "order.history_added",
            order_id=str(order.id),
            sequence=history.sequence,
            previous_status=previous_status,
            status=status,
        )
        return history

    def status_summary(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        rows = (
            Order.objects.filter(created_at__gte=start, created_at__lt=end)
            .order_by()
            .values("status")
            .annotate(count=Count("id"), amount=Sum("total_amount"))
        )
        return list(rows)
