"""
Dashboard tests: window maths, sales and interest totals, the order status
widget, top products and the conversion gap table.
"""
from datetime import datetime, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from analytics import dashboard
from analytics.views import DashboardView
from brands.models import Brand, BrandUser
from catalog.models import Product, ProductStatistics
from orders.models import Order, OrderItem

User = get_user_model()


class DashboardWindowTests(TestCase):
    def test_normalize_range(self):
        self.assertEqual(dashboard.normalize_range("7"), 7)
        self.assertEqual(dashboard.normalize_range(90), 90)
        self.assertEqual(dashboard.normalize_range("14"), 30)
        self.assertEqual(dashboard.normalize_range("abc"), 30)
        self.assertEqual(dashboard.normalize_range(None), 30)

    def test_window_covers_whole_days(self):
        now = timezone.make_aware(datetime(2026, 3, 10, 15, 30))
        start, end = dashboard.date_window(7, now)
        self.assertEqual(start.date().isoformat(), "2026-03-04")
        self.assertEqual((start.hour, start.minute, start.second), (0, 0, 0))
        self.assertEqual(end.date().isoformat(), "2026-03-10")
        self.assertEqual((end.hour, end.minute, end.second), (23, 59, 59))

        dates = dashboard.window_dates(start, end)
        self.assertEqual(len(dates), 7)
        self.assertEqual(dates[0].isoformat(), "2026-03-04")
        self.assertEqual(dates[-1].isoformat(), "2026-03-10")

    def test_conversion_sort_normalization(self):
        self.assertEqual(dashboard.normalize_conversion_sort("bogus", "up"), ("view_to_order", "desc"))
        self.assertEqual(dashboard.normalize_conversion_sort("cart_to_order", "asc"), ("cart_to_order", "asc"))


class DashboardTestBase(TestCase):
    def setUp(self):
        cache.clear()
        self.factory = APIRequestFactory()
        manager_group, _ = Group.objects.get_or_create(name="manager")
        admin_group, _ = Group.objects.get_or_create(name="admin")

        self.brand = Brand.objects.create(name="Dash Brand")
        self.other = Brand.objects.create(name="Other Brand")

        self.manager = User.objects.create_user(username="dash-manager", password="pass")
        self.manager.groups.add(manager_group)
        BrandUser.objects.create(brand=self.brand, user=self.manager)

        self.admin = User.objects.create_user(username="dash-admin", password="pass")
        self.admin.groups.add(admin_group)

        self.orphan = User.objects.create_user(username="dash-orphan", password="pass")
        self.orphan.groups.add(manager_group)

        self.p1 = Product.objects.create(brand=self.brand, title="Hoodie")
        self.p2 = Product.objects.create(brand=self.brand, title="Cap")
        self.p3 = Product.objects.create(brand=self.brand, title="Socks")

        now = timezone.now()
        self.o1 = self._order(now - timedelta(days=3), Order.Status.PENDING, Order.FinancialStatus.UNPAID)
        self._item(self.o1, self.p1, 2, "10")
        self.o2 = self._order(now - timedelta(days=1), Order.Status.PROCESSING, Order.FinancialStatus.PAID)
        self._item(self.o2, self.p2, 1, "30")
        self.o3 = self._order(now - timedelta(hours=1), Order.Status.COMPLETED, Order.FinancialStatus.PAID)
        self._item(self.o3, self.p1, 1, "50")
        # not counted as sales
        cancelled = self._order(now - timedelta(hours=2), Order.Status.CANCELLED, Order.FinancialStatus.PAID)
        self._item(cancelled, self.p1, 1, "100")
        refunded = self._order(
            now - timedelta(hours=2), Order.Status.COMPLETED, Order.FinancialStatus.REFUNDED, name="#refund"
        )
        self._item(refunded, self.p2, 1, "70")
        # another brand, and an order outside the window
        foreign = self._order(now - timedelta(hours=1), Order.Status.COMPLETED, Order.FinancialStatus.PAID,
                              brand=self.other, name="#foreign")
        self._item(foreign, None, 1, "500")
        old = self._order(now - timedelta(days=120), Order.Status.COMPLETED, Order.FinancialStatus.PAID, name="#old")
        self._item(old, self.p1, 1, "999")

        for _ in range(4):
            ProductStatistics.objects.create(product=self.p1, type=ProductStatistics.Type.VIEW)
        for _ in range(2):
            ProductStatistics.objects.create(product=self.p1, type=ProductStatistics.Type.ADD_TO_CART)
        ProductStatistics.objects.create(product=self.p1, type=ProductStatistics.Type.CLICK)
        for _ in range(2):
            ProductStatistics.objects.create(product=self.p3, type=ProductStatistics.Type.VIEW)

    def _order(self, created_at, status, financial_status, brand=None, name=None):
        return Order.objects.create(
            brand=brand or self.brand,
            name=name or f"#{Order.objects.count() + 1001}",
            status=status,
            financial_status=financial_status,
            created_at=created_at,
        )

    def _item(self, order, product, quantity, price):
        return OrderItem.objects.create(
            order=order, product=product, title=product.title if product else "Gone",
            quantity=quantity, price=Decimal(price), final_price=Decimal(price),
        )

    def _get(self, user, brand=None, **params):
        request = self.factory.get("/api/v1/analytics/dashboard", params)
        force_authenticate(request, user=user)
        request.brand = brand
        return DashboardView.as_view()(request)


class DashboardMetricsTests(DashboardTestBase):
    def test_metrics_for_brand(self):
        resp = self._get(self.manager, self.brand)
        self.assertEqual(resp.status_code, 200)
        metrics = resp.data["metrics"]
        self.assertEqual(metrics["revenue"], 100.0)
        self.assertEqual(metrics["orders"], 3)
        self.assertEqual(metrics["units"], 4)
        self.assertAlmostEqual(metrics["aov"], 100 / 3)
        self.assertEqual(metrics["views"], 6)
        self.assertEqual(metrics["add_to_cart"], 2)
        self.assertAlmostEqual(metrics["conversion_view_to_atc"], 2 / 6 * 100)
        self.assertAlmostEqual(metrics["conversion_view_to_order"], 3 / 6 * 100)
        self.assertEqual(resp.data["range"], 30)
        self.assertEqual(resp.data["meta"]["currency"], "BYN")

    def test_series_are_dense(self):
        resp = self._get(self.manager, self.brand, range="7")
        sales = resp.data["series"]["sales"]
        interest = resp.data["series"]["interest"]
        self.assertEqual(len(sales), 7)
        self.assertEqual(len(interest), 7)
        self.assertEqual(sum(day["revenue"] for day in sales), 100.0)
        self.assertEqual(sum(day["orders"] for day in sales), 3)
        self.assertEqual(sum(day["views"] for day in interest), 6)
        self.assertEqual(sum(day["clicks"] for day in interest), 1)

        o3_day = timezone.localtime(self.o3.created_at).date().isoformat()
        row = next(day for day in sales if day["date"] == o3_day)
        self.assertGreaterEqual(row["revenue"], 50.0)

    def test_top_products(self):
        resp = self._get(self.manager, self.brand)
        top = resp.data["top_products"]
        self.assertEqual([row["product_id"] for row in top], [self.p1.id, self.p2.id])
        hoodie = top[0]
        self.assertEqual(hoodie["revenue"], 70.0)
        self.assertEqual(hoodie["orders"], 2)
        self.assertEqual(hoodie["units"], 3)
        self.assertEqual(hoodie["views"], 4)
        self.assertEqual(hoodie["add_to_cart"], 2)
        self.assertAlmostEqual(hoodie["conversion"], 50.0)
        self.assertEqual(top[1]["conversion"], 0)

    def test_admin_without_brand_sees_all(self):
        resp = self._get(self.admin)
        self.assertEqual(resp.data["metrics"]["revenue"], 600.0)
        self.assertNotIn("error", resp.data)

    def test_non_admin_without_brand_gets_empty_payload(self):
        resp = self._get(self.orphan)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["error"], dashboard.NO_BRAND_ERROR)
        self.assertEqual(resp.data["metrics"]["revenue"], 0)
        self.assertEqual(len(resp.data["series"]["sales"]), 30)
        self.assertIsNone(resp.data["order_status"]["health"])
        self.assertEqual(resp.data["top_products"], [])


class OrderStatusWidgetTests(DashboardTestBase):
    def test_counts_and_health(self):
        widget = self._get(self.manager, self.brand).data["order_status"]
        counts = widget["status_counts"]
        self.assertEqual(counts["pending"], 1)
        self.assertEqual(counts["processing"], 1)
        self.assertEqual(counts["completed"], 2)
        self.assertEqual(counts["cancelled"], 1)
        self.assertEqual(widget["status_total"], 5)
        # o1 is pending and unpaid for three days
        self.assertEqual(widget["active_total"], 4)
        self.assertEqual(widget["needs_attention"], 1)
        self.assertAlmostEqual(widget["health"], 75.0)
        attention = {row["key"]: row for row in widget["attention"]}
        self.assertEqual(attention["pending"]["count"], 1)
        self.assertEqual(attention["pending"]["days"], 2)
        self.assertEqual(attention["processing"]["count"], 0)
        self.assertEqual(attention["unpaid"]["count"], 1)

    def test_widget_is_cached(self):
        first = self._get(self.manager, self.brand).data["order_status"]
        Order.objects.create(brand=self.brand, name="#late", status=Order.Status.PENDING)
        second = self._get(self.manager, self.brand).data["order_status"]
        self.assertEqual(first["status_total"], second["status_total"])
        cache.clear()
        third = self._get(self.manager, self.brand).data["order_status"]
        self.assertEqual(third["status_total"], first["status_total"] + 1)

    def test_no_active_orders_means_no_health(self):
        widget = dashboard.compute_order_status(*dashboard.date_window(7), brand_id=self.other.id + 100)
        self.assertIsNone(widget["health"])
        self.assertEqual(widget["active_total"], 0)


class ConversionTableTests(DashboardTestBase):
    def test_top_mode_leaves_table_empty(self):
        table = self._get(self.manager, self.brand).data["top_conversion"]
        self.assertEqual(table["data"], [])
        self.assertEqual(table["pagination"]["sort"], "view_to_order")

    def test_gap_mode_lists_products_with_conversion(self):
        resp = self._get(self.manager, self.brand, table="gap")
        self.assertEqual(resp.data["table_mode"], "gap")
        table = resp.data["top_conversion"]
        # p3 has views only, p2 has orders but no views
        self.assertEqual([row["product_id"] for row in table["data"]], [self.p1.id])
        row = table["data"][0]
        self.assertEqual(row["title"], "Hoodie")
        self.assertAlmostEqual(row["view_to_cart"], 50.0)
        self.assertAlmostEqual(row["view_to_order"], 50.0)
        self.assertAlmostEqual(row["cart_to_order"], 100.0)
        self.assertEqual(table["pagination"]["total"], 1)

    def test_page_is_clamped(self):
        table = self._get(self.manager, self.brand, table="gap", conv_page="9", conv_dir="asc").data["top_conversion"]
        self.assertEqual(table["pagination"]["page"], 1)
        self.assertEqual(table["pagination"]["last_page"], 1)
        self.assertEqual(table["pagination"]["direction"], "asc")

    def test_sorting_and_paging_happen_in_the_query(self):
        scarf = Product.objects.create(brand=self.brand, title="Scarf")
        for _ in range(2):
            ProductStatistics.objects.create(product=scarf, type=ProductStatistics.Type.VIEW)
            ProductStatistics.objects.create(product=scarf, type=ProductStatistics.Type.ADD_TO_CART)
        start, end = dashboard.date_window(30)

        first = dashboard.compute_conversion_page(start, end, self.brand.id, "view_to_cart", "desc", 1, per_page=1)
        self.assertEqual([row["product_id"] for row in first["data"]], [scarf.id])
        self.assertEqual(first["pagination"]["total"], 2)
        self.assertEqual(first["pagination"]["last_page"], 2)
        self.assertAlmostEqual(first["data"][0]["view_to_cart"], 100.0)
        self.assertEqual(first["data"][0]["orders"], 0)

        second = dashboard.compute_conversion_page(start, end, self.brand.id, "view_to_cart", "desc", 2, per_page=1)
        hoodie = second["data"][0]
        self.assertEqual(hoodie["product_id"], self.p1.id)
        self.assertEqual(hoodie["orders"], 2)
        self.assertAlmostEqual(hoodie["revenue"], 70.0)

        by_order = dashboard.compute_conversion_page(start, end, self.brand.id, "view_to_order", "desc", 1, per_page=2)
        self.assertEqual([row["product_id"] for row in by_order["data"]], [self.p1.id, scarf.id])
