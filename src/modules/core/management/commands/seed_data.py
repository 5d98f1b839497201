from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from modules.menu.models import MenuItem
from modules.menu.repositories.django_repository import MenuItemDjangoRepository
from modules.orders.constants import PROGRESS_ORDER, OrderStatus, OrderType
from modules.orders.dtos import DeliveryDetailsDTO, PlaceOrderDTO, PlaceOrderItemDTO
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

MENU = [
    ("Paneer Butter Masala", "Mains", Decimal("249.00")),
    ("Chicken Biryani", "Mains", Decimal("299.00")),
    ("Dal Makhani", "Mains", Decimal("199.00")),
    ("Masala Dosa", "Breakfast", Decimal("129.00")),
    ("Idli Sambar", "Breakfast", Decimal("89.00")),
    ("Garlic Naan", "Breads", Decimal("59.00")),
    ("Butter Roti", "Breads", Decimal("35.00")),
    ("Gulab Jamun", "Desserts", Decimal("79.00")),
    ("Mango Lassi", "Drinks", Decimal("99.00")),
    ("Masala Chai", "Drinks", Decimal("39.00")),
]


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=15)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        menu = self._seed_menu()
        orders_created = self._seed_orders(menu, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"menu_items={len(menu)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="kitchen").exists():
            User.objects.create_user("kitchen", password="kitchen123", is_staff=True)
            created += 1
        if not User.objects.filter(username="customer").exists():
            User.objects.create_user(
                "customer",
                password="customer123",
                email="customer@example.com",
                first_name="Asha",
                last_name="Rao",
            )
            created += 1
        return created

    def _seed_menu(self) -> list[MenuItem]:
        self.stdout.write("Creating menu items...")
        items = []
        for name, category, price in MENU:
            item, _ = MenuItem.objects.get_or_create(
                name=name, defaults={"category": category, "price": price}
            )
            items.append(item)
        return items

    def _seed_orders(self, menu: list[MenuItem], count: int) -> int:
        if Order.objects.exists():
            self.stdout.write("Orders already present, skipping.")
            return 0

        self.stdout.write("Creating orders...")
        User = get_user_model()
        customer = User.objects.get(username="customer")
        operator = User.objects.get(username="kitchen")
        service = OrderService(
            order_repository=OrderDjangoRepository(),
            menu_repository=MenuItemDjangoRepository(),
        )

        for index in range(count):
            order_type = random.choice([OrderType.DELIVERY, OrderType.PICKUP])
            lines = random.sample(menu, k=random.randint(1, 4))
            order = service.place_order(
                PlaceOrderDTO(
                    customer_id=customer.pk,
                    customer_name=customer.get_full_name(),
                    customer_email=customer.email,
                    customer_phone="9876543210",
                    order_type=order_type,
                    items=[
                        PlaceOrderItemDTO(
                            menu_item_id=item.id, quantity=random.randint(1, 3)
                        )
                        for item in lines
                    ],
                    delivery=(
                        DeliveryDetailsDTO(
                            address=f"{index + 1} MG Road",
                            city="Bengaluru",
                            pincode="560001",
                        )
                        if order_type == OrderType.DELIVERY
                        else None
                    ),
                    idempotency_key=f"seed-{index}",
                )
            )

            steps = random.randint(0, len(PROGRESS_ORDER) - 1)
            for status in PROGRESS_ORDER[1 : steps + 1]:
                if order_type == OrderType.PICKUP and status == OrderStatus.ON_THE_WAY:
                    continue
                service.set_status(order.id, status, actor_id=operator.pk)
            if steps == 0 and random.random() < 0.2:
                service.set_status(order.id, OrderStatus.CANCELLED, actor_id=operator.pk)

        return count
