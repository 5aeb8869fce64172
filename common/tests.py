from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase
from rest_framework.test import APIRequestFactory
from rest_framework_simplejwt.tokens import AccessToken

from brands.models import Brand, BrandUser
from common.api_mixins import apply_sorting, resolve_request_brand
from common.auth_views import BrandAwareTokenObtainPairView
from common.pagination import WhitelistPagination
from common.roles import (
    READ_BRAND_REQUESTS,
    READ_ORDERS,
    WRITE_CATEGORIES,
    WRITE_PRODUCTS,
    has_permission,
    is_admin,
    is_manager,
    primary_role,
)

User = get_user_model()


class RoleTests(TestCase):
    def setUp(self):
        self.admin_group, _ = Group.objects.get_or_create(name="admin")
        self.manager_group, _ = Group.objects.get_or_create(name="manager")

    def test_manager_permissions(self):
        user = User.objects.create_user(username="m", password="pass")
        user.groups.add(self.manager_group)
        self.assertTrue(is_manager(user))
        self.assertFalse(is_admin(user))
        self.assertEqual(primary_role(user), "manager")
        self.assertTrue(has_permission(user, WRITE_PRODUCTS))
        self.assertTrue(has_permission(user, READ_ORDERS))
        self.assertFalse(has_permission(user, WRITE_CATEGORIES))
        self.assertFalse(has_permission(user, READ_BRAND_REQUESTS))

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(username="root", email="root@example.com", password="pass")
        self.assertTrue(is_admin(user))
        self.assertEqual(primary_role(user), "admin")
        self.assertTrue(has_permission(user, WRITE_CATEGORIES))

    def test_user_without_role(self):
        user = User.objects.create_user(username="nobody", password="pass")
        self.assertIsNone(primary_role(user))
        self.assertFalse(has_permission(user, READ_ORDERS))


class SortingTests(TestCase):
    def test_whitelisted_field(self):
        qs = apply_sorting(Brand.objects.all(), "name", "asc", {"id", "name"})
        self.assertEqual(list(qs.query.order_by), ["name", "id"])

    def test_unknown_field_falls_back(self):
        qs = apply_sorting(Brand.objects.all(), "password", "asc", {"id", "name"})
        self.assertEqual(list(qs.query.order_by), ["id"])

    def test_default_direction_is_desc(self):
        qs = apply_sorting(Brand.objects.all(), "name", None, {"id", "name"})
        self.assertEqual(list(qs.query.order_by), ["-name", "-id"])
        qs = apply_sorting(Brand.objects.all(), "name", "sideways", {"id", "name"})
        self.assertEqual(list(qs.query.order_by), ["-name", "-id"])


class WhitelistPaginationTests(TestCase):
    def _size(self, value):
        factory = APIRequestFactory()
        request = factory.get("/", {"per_page": value} if value is not None else {})
        request.query_params = request.GET
        return WhitelistPagination().get_page_size(request)

    def test_page_sizes(self):
        self.assertEqual(self._size(None), 10)
        self.assertEqual(self._size("30"), 30)
        self.assertEqual(self._size("25"), 10)
        self.assertEqual(self._size("abc"), 10)
        self.assertEqual(self._size("500"), 10)


class BrandResolutionTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.manager_group, _ = Group.objects.get_or_create(name="manager")
        self.first = Brand.objects.create(name="First")
        self.second = Brand.objects.create(name="Second")
        self.inactive = Brand.objects.create(name="Dormant", is_active=False)
        self.user = User.objects.create_user(username="member", password="pass")
        self.user.groups.add(self.manager_group)
        BrandUser.objects.create(brand=self.first, user=self.user)
        BrandUser.objects.create(brand=self.second, user=self.user)
        BrandUser.objects.create(brand=self.inactive, user=self.user)

    def test_resolve_for(self):
        self.assertEqual(Brand.objects.resolve_for(self.user), self.first)
        self.assertEqual(Brand.objects.resolve_for(self.user, str(self.second.id)), self.second)
        self.assertIsNone(Brand.objects.resolve_for(self.user, self.inactive.id))
        self.assertIsNone(Brand.objects.resolve_for(self.user, "not-a-number"))

    def test_request_brand_wins(self):
        request = self.factory.get("/")
        request.user = self.user
        request.brand = self.second
        self.assertEqual(resolve_request_brand(request), self.second)

    def test_token_carries_brand_and_role(self):
        view = BrandAwareTokenObtainPairView.as_view()
        request = self.factory.post(
            "/api/v1/auth/token/",
            {"username": "member", "password": "pass", "brand_id": self.second.id},
            format="json",
        )
        resp = view(request)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["brand"], {"id": self.second.id, "name": "Second"})
        self.assertEqual(resp.data["role"], "manager")
        token = AccessToken(resp.data["access"])
        self.assertEqual(token["brand_id"], self.second.id)
        self.assertEqual(token["role"], "manager")

    def test_token_rejects_foreign_brand(self):
        outsider = Brand.objects.create(name="Outsider")
        view = BrandAwareTokenObtainPairView.as_view()
        request = self.factory.post(
            "/api/v1/auth/token/",
            {"username": "member", "password": "pass", "brand_id": outsider.id},
            format="json",
        )
        resp = view(request)
        self.assertEqual(resp.status_code, 401)
