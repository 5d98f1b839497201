"""Integration tests for order placement idempotency.

Covers:
- Replaying the same Idempotency-Key returns the same order.
- Different keys create distinct orders.
- A replay with a different payload still returns the first order.
"""

from __future__ import annotations

import pytest

from modules.orders.models import Order

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


@pytest.fixture()
def order_payload():
    return {
        "customer_name": "Asha Rao",
        "order_type": "Pickup",
        "items": [
            {"name": "Masala Dosa", "unit_price": "120.00", "quantity": 2},
            {"name": "Filter Coffee", "unit_price": "40.00", "quantity": 1},
        ],
    }


class TestOrderIdempotencyReplay:
    def test_replay_same_key_returns_same_order(self, customer_client, order_payload):
        key = "replay-key-abc"
        responses = [
            customer_client.post(URL, order_payload, format="json", HTTP_IDEMPOTENCY_KEY=key)
            for _ in range(3)
        ]
        for response in responses:
            assert response.status_code == 201

        assert Order.objects.count() == 1
        first = responses[0].data
        for response in responses[1:]:
            assert response.data["id"] == first["id"]
            assert response.data["order_number"] == first["order_number"]
            assert response.data["items"] == first["items"]

    def test_replay_does_not_notify_twice(
        self, customer_client, order_payload, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks() as callbacks:
            customer_client.post(URL, order_payload, format="json", HTTP_IDEMPOTENCY_KEY="k1")
            customer_client.post(URL, order_payload, format="json", HTTP_IDEMPOTENCY_KEY="k1")

        assert len(callbacks) == 1


class TestOrderIdempotencyDifferentKeys:
    def test_different_keys_create_two_orders(self, customer_client, order_payload):
        r1 = customer_client.post(
            URL, order_payload, format="json", HTTP_IDEMPOTENCY_KEY="key-alpha"
        )
        r2 = customer_client.post(
            URL, order_payload, format="json", HTTP_IDEMPOTENCY_KEY="key-beta"
        )

        assert r1.data["id"] != r2.data["id"]
        assert Order.objects.count() == 2

    def test_no_key_creates_a_new_order_each_time(self, customer_client, order_payload):
        customer_client.post(URL, order_payload, format="json")
        customer_client.post(URL, order_payload, format="json")

        assert Order.objects.count() == 2


class TestOrderIdempotencyPayloadMismatch:
    def test_same_key_with_different_payload_returns_first_order(
        self, customer_client, order_payload
    ):
        key = "payload-key-xyz"
        r1 = customer_client.post(URL, order_payload, format="json", HTTP_IDEMPOTENCY_KEY=key)
        alt = {**order_payload, "items": [{"name": "Idli", "unit_price": "30.00", "quantity": 4}]}
        r2 = customer_client.post(URL, alt, format="json", HTTP_IDEMPOTENCY_KEY=key)

        assert r2.status_code == 201
        assert r2.data["id"] == r1.data["id"]
        assert len(r2.data["items"]) == 2
        assert Order.objects.count() == 1
