from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal
from typing import Iterable

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from modules.accounts.models import Address, Customer
from modules.marketing.constants import DiscountType, RuleType, TemplateCategory
from modules.marketing.models import AutomationRule, DiscountCode, EmailTemplate
from modules.orders.constants import OrderStatus, PaymentMethod, PaymentStatus
from modules.orders.models import Order, OrderItem
from modules.products.constants import ProductStatus
from modules.products.models import Product

SEED_PASSWORD = "Collect1bles!"


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        with transaction.atomic():
            admin_created = self._seed_admin()
            customers = self._seed_customers()
            products = self._seed_products()
            orders_created = self._seed_orders(customers, products)
            marketing_created = self._seed_marketing()

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"admins={admin_created}, "
                f"customers={len(customers)}, "
                f"products={len(products)}, "
                f"orders={orders_created}, "
                f"marketing={marketing_created}"
            )
        )

    def _seed_admin(self) -> int:
        User = get_user_model()
        email = "admin@example.com"
        if User.objects.filter(username=email).exists():
            return 0
        user = User.objects.create_superuser(email, email=email, password=SEED_PASSWORD)
        Customer.objects.create(
            user=user, email=email, first_name="Store", last_name="Admin", email_verified=True
        )
        return 1

    def _seed_customers(self) -> list[Customer]:
        self.stdout.write("Creating customers...")
        User = get_user_model()
        customers: list[Customer] = []
        seed_customers = [
            ("Ana", "Souza", "ana@example.com", "Portland", "OR"),
            ("Bruno", "Lima", "bruno@example.com", "Austin", "TX"),
            ("Carla", "Mendes", "carla@example.com", "Denver", "CO"),
            ("Daniel", "Costa", "daniel@example.com", "Seattle", "WA"),
            ("Helena", "Ferreira", "helena@example.com", "Boston", "MA"),
            ("Julia", "Oliveira", "julia@example.com", "Chicago", "IL"),
        ]
        for first_name, last_name, email, city, state in seed_customers:
            customer = Customer.objects.filter(email=email).first()
            if customer is None:
                user = User.objects.create_user(
                    email,
                    email=email,
                    password=SEED_PASSWORD,
                    first_name=first_name,
                    last_name=last_name,
                )
                customer = Customer.objects.create(
                    user=user,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    email_verified=True,
                )
                Address.objects.create(
                    customer=customer,
                    label="Home",
                    name=f"{first_name} {last_name}",
                    line1=f"{random.randint(100, 999)} Main St",
                    city=city,
                    state=state,
                    zip_code=f"{random.randint(10000, 99999)}",
                    is_default=True,
                )
            customers.append(customer)
        self.stdout.write(self.style.SUCCESS("Creating customers... Done!"))
        return customers

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        catalog = [
            ("MON-001", "Zimomo Exciting Macaron", "The Monsters", Decimal("29.99")),
            ("MON-002", "Tasty Macarons Blind Box", "The Monsters", Decimal("19.99")),
            ("MON-003", "Have a Seat Vinyl Plush", "The Monsters", Decimal("24.99")),
            ("MON-004", "Big Into Energy Pendant", "The Monsters", Decimal("22.99")),
            ("SKY-001", "Skullpanda Sound Series", "Skullpanda", Decimal("15.99")),
            ("SKY-002", "Skullpanda Warmth Figure", "Skullpanda", Decimal("16.99")),
            ("HIR-001", "Hirono Mime Series", "Hirono", Decimal("14.99")),
            ("HIR-002", "Hirono City of Mercy", "Hirono", Decimal("14.99")),
            ("CRY-001", "Crybaby Sad Club", "Crybaby", Decimal("17.99")),
            ("CRY-002", "Crybaby Monster Tears", "Crybaby", Decimal("18.99")),
            ("DIM-001", "Dimoo Dating Series", "Dimoo", Decimal("13.99")),
            ("DIM-002", "Dimoo Animal Kingdom", "Dimoo", Decimal("13.99")),
        ]
        for sku, name, collection, price in catalog:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "description": f"Official {collection} collectible.",
                    "collection": collection,
                    "price": price,
                    "stock_quantity": random.randint(0, 60),
                    "status": ProductStatus.ACTIVE,
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(self, customers: Iterable[Customer], products: list[Product]) -> int:
        self.stdout.write("Creating orders...")
        orders_created = 0
        customers_list = list(customers)
        if not customers_list or not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no customers/products)."))
            return 0

        status_weights = [
            (OrderStatus.CONFIRMED, 0.30),
            (OrderStatus.SHIPPED, 0.20),
            (OrderStatus.DELIVERED, 0.30),
            (OrderStatus.CANCELLED, 0.10),
            (OrderStatus.RETURN_REQUESTED, 0.10),
        ]
        statuses = [s for s, _ in status_weights]
        weights = [w for _, w in status_weights]

        for i in range(40):
            customer = random.choice(customers_list)
            status = random.choices(statuses, weights=weights, k=1)[0]

            order, created = Order.objects.get_or_create(
                customer=customer,
                notes=f"Seed order {i + 1}",
                defaults={
                    "status": status,
                    "total_amount": Decimal("0.00"),
                    "payment_method": PaymentMethod.STRIPE,
                    "payment_status": PaymentStatus.SUCCEEDED,
                    "payment_intent_id": f"pi_seed_{i + 1:04d}",
                    "shipping_info": {
                        "name": customer.full_name,
                        "address": "123 Main St",
                        "city": "Portland",
                        "zip": "97201",
                        "country": "US",
                    },
                },
            )
            if not created:
                continue

            created_at = timezone.now() - timedelta(days=random.randint(0, 120))
            Order.objects.filter(id=order.id).update(created_at=created_at)

            total = Decimal("0.00")
            for product in random.sample(products, k=random.randint(1, 3)):
                item = OrderItem.objects.create(
                    order=order,
                    product=product,
                    quantity=random.randint(1, 3),
                    unit_price=product.price,
                )
                total += item.subtotal

            Order.objects.filter(id=order.id).update(total_amount=total)
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created

    def _seed_marketing(self) -> int:
        self.stdout.write("Creating marketing data...")
        created = 0
        welcome, was_created = EmailTemplate.objects.get_or_create(
            name="Welcome",
            defaults={
                "subject": "Welcome to {store_name}, {first_name}!",
                "content": "Hi {first_name},\n\nThanks for joining {store_name}.",
                "category": TemplateCategory.WELCOME,
            },
        )
        created += was_created
        low_stock, was_created = EmailTemplate.objects.get_or_create(
            name="Low stock alert",
            defaults={
                "subject": "Low stock: {product_name}",
                "content": "{product_name} ({sku}) is down to {stock_quantity} units.",
                "category": TemplateCategory.TRANSACTIONAL,
            },
        )
        created += was_created
        for name, rule_type, template in (
            ("Welcome new customers", RuleType.WELCOME, welcome),
            ("Low stock alert", RuleType.LOW_STOCK, low_stock),
        ):
            _, was_created = AutomationRule.objects.get_or_create(
                name=name, defaults={"rule_type": rule_type, "email_template": template}
            )
            created += was_created
        for code, discount_type, value in (
            ("WELCOME10", DiscountType.PERCENTAGE, Decimal("10")),
            ("SAVE5", DiscountType.FIXED, Decimal("5.00")),
        ):
            _, was_created = DiscountCode.objects.get_or_create(
                code=code, defaults={"discount_type": discount_type, "value": value}
            )
            created += was_created
        self.stdout.write(self.style.SUCCESS("Creating marketing data... Done!"))
        return created
