"""Unit tests for order DRF serializers.

Covers:
- PlaceOrderItemSerializer: catalog reference or name/price snapshot.
- PlaceOrderSerializer: nested items and defaults.
- StatusUpdateSerializer: optional delivery fields.
- OrderSerializer / OrderListSerializer: read output.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.orders.serializers import (
    OrderListSerializer,
    OrderSerializer,
    PlaceOrderItemSerializer,
    PlaceOrderSerializer,
    StatusUpdateSerializer,
)

pytestmark = pytest.mark.unit


class TestPlaceOrderItemSerializer:
    def test_catalog_reference(self):
        serializer = PlaceOrderItemSerializer(
            data={"menu_item_id": str(uuid4()), "quantity": 2}
        )
        assert serializer.is_valid(), serializer.errors

    def test_name_and_price_snapshot(self):
        serializer = PlaceOrderItemSerializer(
            data={"name": "Vada", "unit_price": "35.00", "quantity": 1}
        )
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data["unit_price"] == Decimal("35.00")

    def test_name_without_price_invalid(self):
        serializer = PlaceOrderItemSerializer(data={"name": "Vada", "quantity": 1})
        assert not serializer.is_valid()
        assert "non_field_errors" in serializer.errors

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_must_be_positive(self, quantity):
        serializer = PlaceOrderItemSerializer(
            data={"name": "Vada", "unit_price": "35.00", "quantity": quantity}
        )
        assert not serializer.is_valid()
        assert "quantity" in serializer.errors

    def test_zero_price_invalid(self):
        serializer = PlaceOrderItemSerializer(
            data={"name": "Vada", "unit_price": "0.00", "quantity": 1}
        )
        assert not serializer.is_valid()
        assert "unit_price" in serializer.errors


class TestPlaceOrderSerializer:
    def _data(self, **overrides):
        data = {
            "customer_name": "Asha Rao",
            "items": [{"name": "Vada", "unit_price": "35.00", "quantity": 2}],
            "delivery": {"address": "12 MG Road"},
        }
        data.update(overrides)
        return data

    def test_defaults(self):
        serializer = PlaceOrderSerializer(data=self._data())
        assert serializer.is_valid(), serializer.errors
        data = serializer.validated_data
        assert data["order_type"] == "Delivery"
        assert data["payment_method"] == ""
        assert data["special_instructions"] == ""
        assert data["delivery"]["city"] == ""

    def test_empty_items_invalid(self):
        serializer = PlaceOrderSerializer(data=self._data(items=[]))
        assert not serializer.is_valid()
        assert "items" in serializer.errors

    def test_missing_items_invalid(self):
        data = self._data()
        del data["items"]
        serializer = PlaceOrderSerializer(data=data)
        assert not serializer.is_valid()
        assert "items" in serializer.errors

    def test_unknown_order_type_invalid(self):
        serializer = PlaceOrderSerializer(data=self._data(order_type="Drone"))
        assert not serializer.is_valid()
        assert "order_type" in serializer.errors

    def test_currency_must_be_three_letters(self):
        serializer = PlaceOrderSerializer(data=self._data(currency="RUPEE"))
        assert not serializer.is_valid()
        assert "currency" in serializer.errors


class TestStatusUpdateSerializer:
    def test_status_only(self):
        serializer = StatusUpdateSerializer(data={"status": "Accepted"})
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data == {"status": "Accepted", "notes": ""}

    def test_delivery_fields(self):
        serializer = StatusUpdateSerializer(
            data={
                "status": "OnTheWay",
                "estimated_delivery_time": "2026-03-01T13:00:00Z",
                "courier_note": "Ring twice",
            }
        )
        assert serializer.is_valid(), serializer.errors
        assert serializer.validated_data["courier_note"] == "Ring twice"


class TestOrderOutput:
    def test_full_serializer_nests_children(self, place_order):
        data = OrderSerializer(place_order(special_instructions="No onions")).data

        assert data["status"] == "Pending"
        assert data["special_instructions"] == "No onions"
        assert data["items"][0]["item_name"] == "Masala Dosa"
        assert data["items"][0]["line_total"] == "240.00"
        assert data["status_history"][0]["sequence"] == 1
        assert data["delivery_details"]["address"] == "12 MG Road"
        assert data["payment_details"]["paid_at"] is None

    def test_list_serializer_is_lightweight(self, place_order):
        data = OrderListSerializer(place_order()).data

        assert data["total_amount"] == "240.00"
        for nested in ("items", "status_history", "delivery_details", "payment_details"):
            assert nested not in data
