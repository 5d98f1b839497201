"""Payment DRF serializers for API input/output."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class InitializePaymentSerializer(serializers.Serializer):
    currency = serializers.CharField(required=False, min_length=3, max_length=3)


class VerifyPaymentSerializer(serializers.Serializer):
    """Fields the gateway checkout hands back to the client."""

    payment_id = serializers.CharField(max_length=64)
    order_id = serializers.UUIDField()
    gateway_order_id = serializers.CharField(max_length=64)
    signature = serializers.CharField(max_length=128)


class RefundSerializer(serializers.Serializer):
    payment_id = serializers.CharField(required=False, max_length=64)
    amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, min_value=Decimal("0.01")
    )
    reason = serializers.CharField(
        required=False, allow_blank=True, default="", max_length=255
    )


# ---------------------------------------------------------------------------
# Output Serializers
# ---------------------------------------------------------------------------


class PaymentIntentSerializer(serializers.Serializer):
    gateway_order_id = serializers.CharField()
    amount = serializers.IntegerField()
    currency = serializers.CharField()
    receipt = serializers.CharField()
    key_id = serializers.CharField()


class RefundOutputSerializer(serializers.Serializer):
    refund_id = serializers.CharField()
    payment_id = serializers.CharField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    status = serializers.CharField()


class PaymentStatusSerializer(serializers.Serializer):
    order_id = serializers.CharField()
    order_number = serializers.CharField()
    payment_status = serializers.CharField()
    payment_method = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    currency = serializers.CharField()
    details = serializers.DictField()
