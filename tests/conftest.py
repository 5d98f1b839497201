from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.menu.models import MenuItem
from modules.menu.repositories.django_repository import MenuItemDjangoRepository
from modules.orders.dtos import DeliveryDetailsDTO, PlaceOrderDTO, PlaceOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.fixture()
def operator_user():
    return get_user_model().objects.create_user(
        "kitchen", password="kitchen123", email="kitchen@example.com", is_staff=True
    )


@pytest.fixture()
def customer_user():
    return get_user_model().objects.create_user(
        "asha",
        password="asha123",
        email="asha@example.com",
        first_name="Asha",
        last_name="Rao",
    )


@pytest.fixture()
def other_customer():
    return get_user_model().objects.create_user("ravi", password="ravi123")


@pytest.fixture()
def operator_client(operator_user):
    client = APIClient()
    client.force_authenticate(user=operator_user)
    return client


@pytest.fixture()
def customer_client(customer_user):
    client = APIClient()
    client.force_authenticate(user=customer_user)
    return client


# ---------------------------------------------------------------------------
# Catalog & orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def menu_item():
    return MenuItem.objects.create(
        name="Masala Dosa", category="Breakfast", price=Decimal("120.00")
    )


@pytest.fixture()
def unavailable_item():
    return MenuItem.objects.create(
        name="Mango Kulfi", category="Desserts", price=Decimal("80.00"), is_available=False
    )


class RecordingBus:
    """Notification bus double that remembers every broadcast."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.broadcasts = []

    def connect(self, observer, membership):
        pass

    def disconnect(self, observer):
        pass

    def broadcast(self, channel, event):
        if self.fail:
            raise RuntimeError("bus exploded")
        self.broadcasts.append((channel, event))
        return 1

    def types(self):
        return [event.type for _, event in self.broadcasts]


@pytest.fixture()
def recording_bus():
    return RecordingBus()


@pytest.fixture()
def failing_bus():
    return RecordingBus(fail=True)


@pytest.fixture()
def order_service(recording_bus):
    return OrderService(
        order_repository=OrderDjangoRepository(),
        menu_repository=MenuItemDjangoRepository(),
        notification_bus=recording_bus,
    )


@pytest.fixture()
def place_order(order_service, customer_user):
    """Place a delivery order for ``customer_user`` (two dosas by default)."""

    def _place(**overrides):
        data = {
            "customer_id": customer_user.pk,
            "customer_name": "Asha Rao",
            "customer_email": "asha@example.com",
            "order_type": "Delivery",
            "items": [
                PlaceOrderItemDTO(
                    name="Masala Dosa", unit_price=Decimal("120.00"), quantity=2
                )
            ],
            "delivery": DeliveryDetailsDTO(address="12 MG Road", city="Bengaluru"),
        }
        data.update(overrides)
        return order_service.place_order(PlaceOrderDTO(**data))

    return _place
