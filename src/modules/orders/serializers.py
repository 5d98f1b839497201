"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.orders.constants import OrderType
from modules.orders.models import (
    Order,
    OrderDeliveryDetails,
    OrderItem,
    OrderPaymentDetails,
    OrderStatusHistory,
)

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class PlaceOrderItemSerializer(serializers.Serializer):
    """One line: a catalog reference, or a name and unit price."""

    menu_item_id = serializers.UUIDField(required=False, allow_null=True)
    name = serializers.CharField(required=False, max_length=200)
    unit_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, min_value=Decimal("0.01")
    )
    quantity = serializers.IntegerField(min_value=1)

    def validate(self, attrs):
        if attrs.get("menu_item_id") is None and (
            not attrs.get("name") or attrs.get("unit_price") is None
        ):
            raise serializers.ValidationError(
                "Each item needs a menu_item_id or both a name and a unit_price."
            )
        return attrs


class DeliveryDetailsInputSerializer(serializers.Serializer):
    address = serializers.CharField(required=False, allow_blank=True, default="")
    city = serializers.CharField(required=False, allow_blank=True, default="")
    pincode = serializers.CharField(required=False, allow_blank=True, default="")
    phone = serializers.CharField(required=False, allow_blank=True, default="")


class PlaceOrderSerializer(serializers.Serializer):
    """Validates the order placement payload.

    Contact fields default to the authenticated user's profile in the
    view when omitted.
    """

    customer_name = serializers.CharField(required=False, max_length=150)
    customer_email = serializers.EmailField(required=False, allow_blank=True)
    customer_phone = serializers.CharField(
        required=False, allow_blank=True, max_length=20
    )
    order_type = serializers.ChoiceField(
        choices=OrderType.choices, default=OrderType.DELIVERY
    )
    items = PlaceOrderItemSerializer(many=True, allow_empty=False)
    delivery = DeliveryDetailsInputSerializer(required=False)
    total_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False
    )
    currency = serializers.CharField(required=False, min_length=3, max_length=3)
    payment_method = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=30
    )
    special_instructions = serializers.CharField(
        required=False, allow_blank=True, default=""
    )


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    estimated_delivery_time = serializers.DateTimeField(required=False)
    courier_note = serializers.CharField(required=False, allow_blank=True)


class DeliveredSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "menu_item_id",
            "item_name",
            "quantity",
            "unit_price",
            "line_total",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = [
            "sequence",
            "status",
            "previous_status",
            "actor_id",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class DeliveryDetailsSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderDeliveryDetails
        fields = [
            "address",
            "city",
            "pincode",
            "phone",
            "estimated_time",
            "actual_delivery_time",
            "courier_note",
        ]
        read_only_fields = fields


class PaymentDetailsSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderPaymentDetails
        fields = [
            "gateway_payment_id",
            "gateway_order_id",
            "amount",
            "paid_at",
            "failed_at",
            "error_code",
            "error_description",
            "refund_id",
            "refunded_at",
            "refund_amount",
            "refund_reason",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items, history and details."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)
    delivery_details = DeliveryDetailsSerializer(read_only=True)
    payment_details = PaymentDetailsSerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_name",
            "customer_email",
            "customer_phone",
            "order_type",
            "status",
            "payment_status",
            "payment_method",
            "total_amount",
            "currency",
            "special_instructions",
            "version",
            "created_at",
            "updated_at",
            "items",
            "status_history",
            "delivery_details",
            "payment_details",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_name",
            "order_type",
            "status",
            "payment_status",
            "total_amount",
            "currency",
            "created_at",
        ]
        read_only_fields = fields


class TrackingSerializer(serializers.Serializer):
    order = OrderSerializer()
    total_duration_minutes = serializers.IntegerField()
    current_status_duration_minutes = serializers.IntegerField()
    progress_percentage = serializers.IntegerField()
    estimated_delivery = serializers.DateTimeField(allow_null=True)
    is_delivered = serializers.BooleanField()
    is_cancelled = serializers.BooleanField()


class StatusCountSerializer(serializers.Serializer):
    status = serializers.CharField()
    count = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class DailyAnalyticsSerializer(serializers.Serializer):
    day = serializers.DateField()
    total_orders = serializers.IntegerField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    revenue = serializers.DecimalField(max_digits=12, decimal_places=2)
    by_status = StatusCountSerializer(many=True)
