"""Integration tests for the Celery configuration and order tasks."""

from uuid import uuid4

import pytest
from django.core import mail

pytestmark = pytest.mark.integration


class TestCeleryConfig:
    def test_celery_app_is_importable(self):
        from config.celery import app

        assert app.main == "orders_core"

    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "orders_core"

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_RESULT_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_celery_timezone_matches_django(self, settings):
        assert settings.CELERY_TIMEZONE == settings.TIME_ZONE

    def test_order_tasks_are_registered(self):
        import modules.orders.tasks  # noqa: F401
        from config.celery import app

        assert "orders.send_order_placed_email" in app.tasks


class TestOrderPlacedEmailTask:
    def test_delay_runs_eagerly(self, place_order):
        from modules.orders.tasks import send_order_placed_email

        order = place_order()
        result = send_order_placed_email.delay(str(order.id))

        assert result.successful()
        assert result.result == {"sent": 1}
        assert len(mail.outbox) == 1

    def test_unknown_order(self):
        from modules.orders.tasks import send_order_placed_email

        assert send_order_placed_email.delay(str(uuid4())).result == {"sent": 0}
