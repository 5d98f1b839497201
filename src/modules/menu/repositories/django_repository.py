"""Django ORM implementation of the menu item repository.

Methods return ``None`` / ``False`` for missing rows; the order service
decides how a missing catalog entry is reported.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.menu.models import MenuItem
from modules.menu.repositories.interfaces import IMenuItemRepository

logger = structlog.get_logger(__name__)


class MenuItemDjangoRepository(IMenuItemRepository):
    def get_by_id(self, id: str) -> Optional[MenuItem]:
        try:
            return MenuItem.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[MenuItem]:
        queryset = MenuItem.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_available(self) -> List[MenuItem]:
        return self.list({"is_available": True})

    @transaction.atomic
    def save(self, entity: MenuItem) -> MenuItem:
        entity.save()
        logger.info("menu_item.saved", menu_item_id=str(entity.id))
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        """Soft-delete a menu item by ID."""
        item = self.get_by_id(id)
        if not item:
            return False
        item.delete()
        logger.info("menu_item.soft_deleted", menu_item_id=str(id))
        return True
