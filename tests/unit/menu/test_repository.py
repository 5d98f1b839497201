"""Unit tests for MenuItemDjangoRepository."""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from modules.menu.models import MenuItem
from modules.menu.repositories.django_repository import MenuItemDjangoRepository

pytestmark = pytest.mark.unit


@pytest.fixture()
def repo():
    return MenuItemDjangoRepository()


class TestMenuItemRepository:
    def test_get_by_id(self, repo, menu_item):
        assert repo.get_by_id(str(menu_item.id)) == menu_item

    def test_malformed_id_returns_none(self, repo):
        assert repo.get_by_id("not-a-uuid") is None

    def test_soft_deleted_item_is_hidden(self, repo, menu_item):
        assert repo.delete(str(menu_item.id)) is True

        assert repo.get_by_id(str(menu_item.id)) is None
        assert MenuItem.objects.filter(pk=menu_item.pk).exists()

    def test_delete_unknown_item(self, repo):
        assert repo.delete("0190f3e2-7c1a-7b3e-9a41-5d2c8e6f1a20") is False

    def test_list_available(self, repo, menu_item, unavailable_item):
        assert repo.list_available() == [menu_item]
        assert set(repo.list()) == {menu_item, unavailable_item}

    def test_save(self, repo, menu_item):
        menu_item.price = Decimal("130.00")
        repo.save(menu_item)

        assert MenuItem.objects.get(pk=menu_item.pk).price == Decimal("130.00")


class TestMenuItemModel:
    def test_non_positive_price_rejected(self):
        item = MenuItem(name="Free Lunch", price=Decimal("0.00"))
        with pytest.raises(ValidationError):
            item.clean()

    def test_str(self, menu_item):
        assert str(menu_item) == "Masala Dosa (120.00)"
