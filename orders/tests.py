from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase, override_settings
from rest_framework.test import APIRequestFactory, force_authenticate

from brands.models import Brand, BrandUser
from catalog.models import Product, Variant
from customers.models import Customer
from orders.audit import SYSTEM_FIELDS_MESSAGE, build_update_message, headline
from orders.models import AuditLog, Order, OrderItem, OrderShipping
from orders.views import OrderViewSet


User = get_user_model()


class AuditMessageTests(TestCase):
    def test_headline(self):
        self.assertEqual(headline("financial_status"), "Financial Status")
        self.assertEqual(headline("note"), "Note")

    def test_added_removed_updated(self):
        old = {"note": "", "name": "#1", "status": "pending"}
        changes = {"note": "call first", "name": "", "status": "confirmed"}
        self.assertEqual(
            build_update_message(old, changes),
            "Added Note: call first, Removed Name, Updated Status from pending to confirmed",
        )

    def test_only_timestamps(self):
        self.assertEqual(build_update_message({"updated_at": 1}, {"updated_at": 2}), SYSTEM_FIELDS_MESSAGE)


class OrderAuditSignalTests(TestCase):
    def setUp(self):
        self.brand = Brand.objects.create(name="Audit Brand")
        self.user = User.objects.create_user(username="auditor", password="pass")

    def test_create_update_delete_are_logged(self):
        order = Order.objects.create(brand=self.brand, name="#1001")
        created = AuditLog.objects.get(object_id=order.pk, event=AuditLog.Event.CREATED)
        self.assertEqual(created.message, "Created a new record.")
        self.assertEqual(created.order, order)

        order.status = Order.Status.CONFIRMED
        order._audit_user = self.user
        order.save()
        updated = AuditLog.objects.get(object_id=order.pk, event=AuditLog.Event.UPDATED)
        self.assertEqual(updated.message, "Updated Status from pending to confirmed")
        self.assertEqual(updated.user, self.user)
        self.assertEqual(updated.old_values["status"], "pending")
        self.assertEqual(updated.new_values["status"], "confirmed")

        order_id = order.pk
        order.delete()
        deleted = AuditLog.objects.get(object_id=order_id, event=AuditLog.Event.DELETED)
        self.assertIsNone(deleted.order)
        self.assertEqual(deleted.message, "Record has been deleted.")
        # earlier entries survive with the order link cleared
        self.assertEqual(AuditLog.objects.filter(object_id=order_id).count(), 3)

    def test_resave_without_changes_logs_system_fields(self):
        order = Order.objects.create(brand=self.brand, name="#1002")
        order.save()
        entry = AuditLog.objects.filter(object_id=order.pk, event=AuditLog.Event.UPDATED).get()
        self.assertEqual(entry.message, SYSTEM_FIELDS_MESSAGE)

    @override_settings(BACKOFFICE={"STORE_URL": "https://shop.example/", "CURRENCY": "BYN"})
    def test_status_url(self):
        order = Order(brand=self.brand, name="#1003")
        self.assertEqual(order.status_url, "https://shop.example/purchases/1003")


class OrderApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        manager_group, _ = Group.objects.get_or_create(name="manager")
        admin_group, _ = Group.objects.get_or_create(name="admin")

        self.brand = Brand.objects.create(name="Brand A")
        self.other = Brand.objects.create(name="Brand B")

        self.manager = User.objects.create_user(username="manager", password="pass")
        self.manager.groups.add(manager_group)
        BrandUser.objects.create(brand=self.brand, user=self.manager)

        self.admin = User.objects.create_user(username="admin", password="pass")
        self.admin.groups.add(admin_group)

        self.orphan = User.objects.create_user(username="orphan", password="pass")
        self.orphan.groups.add(manager_group)

        self.customer = Customer.objects.create(email="buyer@example.com", name="Buyer")
        product = Product.objects.create(brand=self.brand, title="Shirt")
        variant = Variant.objects.create(product=product, title="S", price=Decimal("30"), final_price=Decimal("25"))

        self.order = Order.objects.create(brand=self.brand, customer=self.customer, name="#1001")
        OrderItem.objects.create(
            order=self.order, product=product, variant=variant, title="Shirt",
            quantity=2, price=Decimal("30"), final_price=Decimal("25"),
        )
        OrderItem.objects.create(
            order=self.order, product=product, title="Shirt", quantity=1,
            price=Decimal("10"), final_price=Decimal("10"),
        )
        OrderShipping.objects.create(order=self.order, name="Courier", phone="+375291112233")
        for i in range(11):
            Order.objects.create(brand=self.brand, name=f"#2{i:03d}", status=Order.Status.COMPLETED)
        self.foreign = Order.objects.create(brand=self.other, name="#9001")

    def _list(self, user, brand=None, **params):
        view = OrderViewSet.as_view({"get": "list"})
        request = self.factory.get("/api/v1/orders/", params)
        force_authenticate(request, user=user)
        request.brand = brand
        return view(request)

    def test_list_is_scoped_and_paginated(self):
        resp = self._list(self.manager, self.brand)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total"], 12)
        self.assertEqual(resp.data["per_page"], 10)
        self.assertEqual(resp.data["last_page"], 2)
        names = {row["name"] for row in resp.data["data"]}
        self.assertNotIn("#9001", names)

    def test_per_page_whitelist(self):
        self.assertEqual(self._list(self.manager, self.brand, per_page=20).data["per_page"], 20)
        self.assertEqual(self._list(self.manager, self.brand, per_page=15).data["per_page"], 10)

    def test_totals_and_filters(self):
        resp = self._list(self.manager, self.brand, search="1001")
        self.assertEqual(resp.data["total"], 1)
        row = resp.data["data"][0]
        self.assertEqual(row["items_count"], 2)
        self.assertEqual(Decimal(row["total"]), Decimal("60.00"))
        self.assertEqual(row["customer"]["email"], "buyer@example.com")

        resp = self._list(self.manager, self.brand, status="completed")
        self.assertEqual(resp.data["total"], 11)

    def test_manager_without_brand_sees_nothing(self):
        resp = self._list(self.orphan)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total"], 0)

    def test_admin_sees_all_brands(self):
        resp = self._list(self.admin)
        self.assertEqual(resp.data["total"], 13)

    def test_retrieve_includes_details(self):
        view = OrderViewSet.as_view({"get": "retrieve"})
        request = self.factory.get(f"/api/v1/orders/{self.order.pk}/")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        resp = view(request, pk=self.order.pk)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data["items"]), 2)
        self.assertEqual(resp.data["shippings"][0]["name"], "Courier")
        self.assertEqual(resp.data["audits"][0]["event"], "created")
        self.assertTrue(resp.data["status_url"].endswith("/purchases/1001"))

    def test_retrieve_other_brand_forbidden(self):
        view = OrderViewSet.as_view({"get": "retrieve"})
        request = self.factory.get(f"/api/v1/orders/{self.foreign.pk}/")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        resp = view(request, pk=self.foreign.pk)
        self.assertEqual(resp.status_code, 403)

    def _update_status(self, payload):
        view = OrderViewSet.as_view({"patch": "update_status"})
        request = self.factory.patch(f"/api/v1/orders/{self.order.pk}/status/", payload, format="json")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        return view(request, pk=self.order.pk)

    def test_update_status_writes_audit(self):
        resp = self._update_status({"status": "processing", "financial_status": "paid"})
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PROCESSING)
        self.assertEqual(self.order.financial_status, Order.FinancialStatus.PAID)
        entry = AuditLog.objects.filter(order=self.order, event=AuditLog.Event.UPDATED).get()
        self.assertEqual(entry.user, self.manager)
        self.assertIn("Updated Status from pending to processing", entry.message)
        self.assertIn("Updated Financial Status from unpaid to paid", entry.message)
        self.assertEqual(resp.data["audits"][0]["event"], "updated")

    def test_update_status_rejects_unknown_values(self):
        resp = self._update_status({"delivery_status": "lost"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("delivery_status", resp.data)
        self.order.refresh_from_db()
        self.assertEqual(self.order.delivery_status, Order.DeliveryStatus.PENDING)

    def test_update_status_requires_a_field(self):
        self.assertEqual(self._update_status({}).status_code, 400)
