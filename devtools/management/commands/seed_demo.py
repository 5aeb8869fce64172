# devtools/management/commands/seed_demo.py
import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management import call_command
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from brands.models import Brand, BrandUser, ShippingMethod
from catalog import variants as engine
from catalog.models import Category, Option, OptionValue, Product, ProductStatistics
from catalog.services import create_variants
from common.roles import UserRole
from customers.models import Customer
from orders.models import Order, OrderItem, OrderShipping

DEMO_OPTIONS = {
    "size": ("Size", ["XS", "S", "M", "L", "XL"]),
    "color": ("Color", ["Black", "White", "Sand", "Olive"]),
}

DEMO_CATEGORIES = {
    "T-shirts": ["size", "color"],
    "Hoodies": ["size", "color"],
    "Caps": ["color"],
}

DEMO_PRODUCT_NAMES = [
    "Basic Tee",
    "Oversized Tee",
    "Zip Hoodie",
    "Heavy Hoodie",
    "Dad Cap",
    "Trucker Cap",
    "Long Sleeve",
    "Pocket Tee",
]

DEMO_CUSTOMERS = [
    ("Alice Novik", "alice@demo.local", "+375291000001"),
    ("Boris Lenski", "boris@demo.local", "+375291000002"),
    ("Vera Kuzma", "vera@demo.local", "+375291000003"),
    ("Gleb Orlov", "gleb@demo.local", "+375291000004"),
]


class Command(BaseCommand):
    help = "Seed demo data for the back office: groups, users, brands, catalog, orders and interest events."

    def add_arguments(self, parser):
        parser.add_argument("--brands", type=int, default=2)
        parser.add_argument("--products", type=int, default=6, help="products per brand")
        parser.add_argument("--variants-per-product", type=int, default=4)
        parser.add_argument("--days", type=int, default=30)
        parser.add_argument("--max-orders-per-day", type=int, default=5)
        parser.add_argument("--admin-username", default="admin")
        parser.add_argument("--admin-password", default="admin123")
        parser.add_argument("--manager-password", default="manager123")
        parser.add_argument("--seed", type=int, default=None, help="random seed for repeatable data")

    def _user(self, username, password, group):
        User = get_user_model()
        user, created = User.objects.get_or_create(
            username=username, defaults={"email": f"{username}@demo.local"}
        )
        if created:
            user.set_password(password)
            user.save(update_fields=["password"])
            self.stdout.write(self.style.SUCCESS(f"Created user: {username} / {password}"))
        else:
            self.stdout.write(self.style.WARNING(f"User exists: {username} (password unchanged)"))
        user.groups.add(group)
        return user

    def _options(self):
        options = {}
        for name, (title, values) in DEMO_OPTIONS.items():
            option, _ = Option.objects.get_or_create(name=name, defaults={"title": title})
            for value in values:
                OptionValue.objects.get_or_create(option=option, value=value)
            options[name] = option
        return options

    def _categories(self, options, brands):
        categories = []
        for name, option_names in DEMO_CATEGORIES.items():
            category, _ = Category.objects.get_or_create(name=name)
            category.options.set([options[o] for o in option_names])
            category.brands.add(*brands)
            categories.append(category)
        return categories

    def _product(self, brand, category, title, variants_per_product):
        product = Product.objects.create(brand=brand, category=category, title=title, enabled=True)
        options = list(category.options.prefetch_related("values"))
        generated = []
        base = Decimal(random.choice([29, 39, 49, 59, 79]))
        for _ in range(variants_per_product):
            variant = engine.generate_variant(options, generated)
            if variant is None:
                break
            discount = Decimal(random.choice([0, 0, 10, 20]))
            variant.update({
                "price": base,
                "final_price": (base * (100 - discount) / 100).quantize(Decimal("0.01")),
                "enabled": True,
            })
            generated.append(variant)
        create_variants(product, generated)
        return product

    def _orders(self, brand, products, customers, days, max_orders_per_day, counter):
        now = timezone.now()
        created = 0
        for day in range(days):
            for _ in range(random.randint(0, max_orders_per_day)):
                counter += 1
                created_at = now - timedelta(days=day, minutes=random.randint(0, 600))
                order = Order.objects.create(
                    brand=brand,
                    customer=random.choice(customers),
                    name=f"#{counter}",
                    status=random.choice(Order.Status.values),
                    delivery_status=random.choice(Order.DeliveryStatus.values),
                    financial_status=random.choice(Order.FinancialStatus.values),
                    created_at=created_at,
                )
                for product in random.sample(products, k=min(len(products), random.randint(1, 3))):
                    variant = random.choice(list(product.variants.all()))
                    OrderItem.objects.create(
                        order=order,
                        product=product,
                        variant=variant,
                        title=product.title,
                        variant_title=variant.title,
                        quantity=random.randint(1, 3),
                        price=variant.price,
                        final_price=variant.final_price,
                        created_at=created_at,
                    )
                OrderShipping.objects.create(
                    order=order,
                    name=random.choice(list(ShippingMethod.DEFAULTS.values()))[0],
                    phone=order.customer.phone,
                    created_at=created_at,
                )
                created += 1
        return created, counter

    def _interest(self, products, days):
        now = timezone.now()
        events = []
        for product in products:
            for day in range(days):
                ts = now - timedelta(days=day, minutes=random.randint(0, 600))
                views = random.randint(0, 25)
                events += [
                    ProductStatistics(product=product, type=ProductStatistics.Type.VIEW, created_at=ts)
                    for _ in range(views)
                ]
                events += [
                    ProductStatistics(product=product, type=ProductStatistics.Type.CLICK, created_at=ts)
                    for _ in range(random.randint(0, views))
                ]
                events += [
                    ProductStatistics(product=product, type=ProductStatistics.Type.ADD_TO_CART, created_at=ts)
                    for _ in range(random.randint(0, max(1, views // 4)))
                ]
        ProductStatistics.objects.bulk_create(events, batch_size=1000)
        return len(events)

    @transaction.atomic
    def handle(self, *args, **opts):
        if opts["seed"] is not None:
            random.seed(opts["seed"])

        call_command("create_user_groups", stdout=self.stdout)
        ShippingMethod.ensure_defaults()
        admin_group = Group.objects.get(name=UserRole.ADMIN.value)
        manager_group = Group.objects.get(name=UserRole.MANAGER.value)

        self._user(opts["admin_username"], opts["admin_password"], admin_group)

        brands = []
        for i in range(1, opts["brands"] + 1):
            brand, _ = Brand.objects.get_or_create(
                name=f"Demo Brand {i}", defaults={"description": "Seeded for local demos"}
            )
            brand.shipping_methods.set(ShippingMethod.objects.all())
            manager = self._user(f"manager{i}", opts["manager_password"], manager_group)
            BrandUser.objects.get_or_create(brand=brand, user=manager)
            brands.append(brand)
        self.stdout.write(self.style.SUCCESS(f"Brands: {[b.name for b in brands]}"))

        options = self._options()
        categories = self._categories(options, brands)

        customers = [
            Customer.objects.get_or_create(email=email, defaults={"name": name, "phone": phone})[0]
            for name, email, phone in DEMO_CUSTOMERS
        ]

        counter = 1000 + Order.objects.count()
        for brand in brands:
            products = []
            for j in range(opts["products"]):
                title = f"{DEMO_PRODUCT_NAMES[j % len(DEMO_PRODUCT_NAMES)]} {brand.id}-{j + 1}"
                category = categories[j % len(categories)]
                products.append(self._product(brand, category, title, opts["variants_per_product"]))
            products = [p for p in products if p.variants.exists()]
            if not products:
                self.stdout.write(self.style.WARNING(f"{brand.name}: no products with variants, skipping orders"))
                continue

            orders, counter = self._orders(
                brand, products, customers, opts["days"], opts["max_orders_per_day"], counter
            )
            events = self._interest(products, opts["days"])
            self.stdout.write(self.style.SUCCESS(
                f"{brand.name}: {len(products)} products, {orders} orders, {events} interest events"
            ))

        self.stdout.write(self.style.SUCCESS("Demo data ready."))
