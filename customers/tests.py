from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from brands.models import Brand, BrandUser
from customers.models import Customer
from customers.views import CustomerDetailView, CustomerListView
from orders.models import Order

User = get_user_model()


class CustomerApiTests(TestCase):
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

        self.loyal = Customer.objects.create(email="loyal@example.com", name="Loyal Buyer")
        self.shared = Customer.objects.create(email="shared@example.com", name="Shared Buyer", phone="+375290000000")
        self.stranger = Customer.objects.create(email="stranger@example.com", name="Stranger")

        for name in ("#1", "#2", "#3"):
            Order.objects.create(brand=self.brand, customer=self.loyal, name=name)
        Order.objects.create(brand=self.brand, customer=self.shared, name="#4")
        Order.objects.create(brand=self.other, customer=self.shared, name="#5")
        Order.objects.create(brand=self.other, customer=self.stranger, name="#6")

    def _list(self, user, brand=None, **params):
        request = self.factory.get("/api/v1/customers/", params)
        force_authenticate(request, user=user)
        request.brand = brand
        return CustomerListView.as_view()(request)

    def test_admin_sees_everyone(self):
        resp = self._list(self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total"], 3)
        counts = {row["email"]: row["orders_count"] for row in resp.data["data"]}
        self.assertEqual(counts["shared@example.com"], 2)

    def test_manager_sees_own_buyers_with_brand_counts(self):
        resp = self._list(self.manager, self.brand)
        self.assertEqual(resp.data["total"], 2)
        counts = {row["email"]: row["orders_count"] for row in resp.data["data"]}
        self.assertEqual(counts, {"loyal@example.com": 3, "shared@example.com": 1})

    def test_search(self):
        resp = self._list(self.manager, self.brand, search="+37529")
        self.assertEqual([row["email"] for row in resp.data["data"]], ["shared@example.com"])

    def test_orphan_sees_nothing(self):
        resp = self._list(self.orphan)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total"], 0)

    def test_detail_outside_brand_is_not_found(self):
        request = self.factory.get(f"/api/v1/customers/{self.stranger.pk}")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        resp = CustomerDetailView.as_view()(request, pk=self.stranger.pk)
        self.assertEqual(resp.status_code, 404)

        request = self.factory.get(f"/api/v1/customers/{self.loyal.pk}")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        resp = CustomerDetailView.as_view()(request, pk=self.loyal.pk)
        self.assertEqual(resp.data["orders_count"], 3)
