"""Menu catalog model.

The catalog only enriches order placement (name and price snapshot);
an existing order never reads it again.  Items are soft-deleted so order
lines keep pointing at the row they were priced from.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class MenuItem(SoftDeleteModel):
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=100, blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    is_available = models.BooleanField(default=True)

    class Meta:
        db_table = "menu_items"
        ordering = ["category", "name"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="menu_items_price_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new:
            logger.info("menu_item.created", menu_item_id=str(self.id), name=self.name)

    def __str__(self) -> str:
        return f"{self.name} ({self.price})"
