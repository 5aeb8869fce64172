from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate
from rest_framework_simplejwt.tokens import AccessToken

from brands.models import Brand, BrandUser
from common.roles import primary_role
from users.views import StopImpersonatingView, UserViewSet

User = get_user_model()


def make_user(username, role=None, **extra):
    user = User.objects.create_user(
        username=username, email=f"{username}@example.com", password="pass", **extra
    )
    if role:
        user.groups.add(Group.objects.get_or_create(name=role)[0])
    return user


class UserApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.admin = make_user("alice", "admin", first_name="Alice", last_name="Admin")
        self.manager = make_user("mark", "manager", first_name="Mark", last_name="Manager")
        self.shopper = make_user("sam", first_name="Sam", last_name="Shopper")
        self.brand = Brand.objects.create(name="North")
        self.other = Brand.objects.create(name="South")

    def _call(self, actions, method, user, path="/api/v1/users/", data=None, **kwargs):
        view = UserViewSet.as_view(actions)
        request = getattr(self.factory, method)(path, data or {}, format="json")
        force_authenticate(request, user=user)
        return view(request, **kwargs)

    def test_managers_cannot_read_users(self):
        res = self._call({"get": "list"}, "get", self.manager)
        self.assertEqual(res.status_code, 403)

    def test_list_filters_by_role_and_search(self):
        root = User.objects.create_superuser(username="root", email="root@example.com", password="pass")
        res = self._call({"get": "list"}, "get", self.admin, path="/api/v1/users/?role=admin")
        self.assertEqual(res.status_code, 200)
        ids = {row["id"] for row in res.data["data"]}
        self.assertEqual(ids, {self.admin.id, root.id})

        res = self._call({"get": "list"}, "get", self.admin, path="/api/v1/users/?search=shopper")
        self.assertEqual([row["id"] for row in res.data["data"]], [self.shopper.id])
        self.assertIsNone(res.data["data"][0]["role"])

    def test_update_syncs_role(self):
        res = self._call(
            {"patch": "partial_update"}, "patch", self.admin, path=f"/api/v1/users/{self.shopper.id}/",
            data={"role": "manager"}, pk=self.shopper.id,
        )
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["role"], "manager")
        self.shopper.refresh_from_db()
        self.assertEqual(primary_role(self.shopper), "manager")

    def test_full_update_without_role_clears_it(self):
        res = self._call(
            {"put": "update"}, "put", self.admin, path=f"/api/v1/users/{self.manager.id}/",
            data={"first_name": "Mark", "last_name": "Moved", "email": "mark@example.com"}, pk=self.manager.id,
        )
        self.assertEqual(res.status_code, 200, res.data)
        self.assertIsNone(res.data["role"])
        self.assertFalse(self.manager.groups.filter(name="manager").exists())

    def test_email_must_be_unique(self):
        res = self._call(
            {"patch": "partial_update"}, "patch", self.admin, path=f"/api/v1/users/{self.shopper.id}/",
            data={"email": "MARK@example.com"}, pk=self.shopper.id,
        )
        self.assertEqual(res.status_code, 400)
        self.assertIn("email", res.data)

    def test_cannot_delete_yourself(self):
        res = self._call(
            {"delete": "destroy"}, "delete", self.admin, path=f"/api/v1/users/{self.admin.id}/", pk=self.admin.id
        )
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.data["message"], "Cannot delete yourself")

        res = self._call(
            {"delete": "destroy"}, "delete", self.admin, path=f"/api/v1/users/{self.shopper.id}/", pk=self.shopper.id
        )
        self.assertEqual(res.status_code, 204)
        self.assertFalse(User.objects.filter(pk=self.shopper.id).exists())

    def test_bulk_delete_skips_the_acting_user(self):
        res = self._call(
            {"post": "bulk_destroy"}, "post", self.admin, path="/api/v1/users/bulk-delete/",
            data={"user_ids": [self.admin.id, self.shopper.id]},
        )
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["deleted"], 1)
        self.assertTrue(User.objects.filter(pk=self.admin.id).exists())
        self.assertFalse(User.objects.filter(pk=self.shopper.id).exists())

    def test_bulk_role(self):
        res = self._call(
            {"post": "bulk_update_role"}, "post", self.admin, path="/api/v1/users/bulk-role/",
            data={"user_ids": [self.manager.id, self.shopper.id], "role": "admin"},
        )
        self.assertEqual(res.status_code, 200, res.data)
        for user in (self.manager, self.shopper):
            self.assertEqual(set(user.groups.values_list("name", flat=True)), {"admin"})

        res = self._call(
            {"post": "bulk_update_role"}, "post", self.admin, path="/api/v1/users/bulk-role/",
            data={"user_ids": [self.shopper.id], "role": "owner"},
        )
        self.assertEqual(res.status_code, 400)

    def test_brand_memberships_are_synced(self):
        BrandUser.objects.create(brand=self.other, user=self.manager)
        res = self._call(
            {"put": "brands"}, "put", self.admin, path=f"/api/v1/users/{self.manager.id}/brands/",
            data={"brand_ids": [self.brand.id]}, pk=self.manager.id,
        )
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["brands"], [{"id": self.brand.id, "name": "North"}])
        self.assertEqual(
            list(BrandUser.objects.filter(user=self.manager).values_list("brand_id", flat=True)), [self.brand.id]
        )


class ImpersonationTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        self.admin = make_user("alice", "admin")
        self.manager = make_user("mark", "manager")
        self.brand = Brand.objects.create(name="North")
        BrandUser.objects.create(brand=self.brand, user=self.manager)

    def _impersonate(self, user, target):
        view = UserViewSet.as_view({"post": "impersonate"})
        request = self.factory.post(f"/api/v1/users/{target.id}/impersonate/", {}, format="json")
        force_authenticate(request, user=user)
        return view(request, pk=target.id)

    def test_refuses_self_and_other_admins(self):
        res = self._impersonate(self.admin, self.admin)
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.data["message"], "You cannot impersonate yourself.")

        other_admin = make_user("ada", "admin")
        res = self._impersonate(self.admin, other_admin)
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.data["message"], "You cannot impersonate another administrator.")

    def test_managers_cannot_impersonate(self):
        shopper = make_user("sam")
        res = self._impersonate(self.manager, shopper)
        self.assertEqual(res.status_code, 403)

    def test_impersonate_and_stop(self):
        res = self._impersonate(self.admin, self.manager)
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["role"], "manager")
        self.assertEqual(res.data["brand"], {"id": self.brand.id, "name": "North"})

        access = AccessToken(res.data["access"])
        self.assertEqual(int(access["user_id"]), self.manager.id)
        self.assertEqual(access["impersonator_id"], self.admin.id)

        request = self.factory.post("/api/v1/auth/stop-impersonating/", {}, format="json")
        force_authenticate(request, user=self.manager, token=access)
        res = StopImpersonatingView.as_view()(request)
        self.assertEqual(res.status_code, 200, res.data)
        self.assertEqual(res.data["role"], "admin")
        self.assertEqual(int(AccessToken(res.data["access"])["user_id"]), self.admin.id)

    def test_stop_without_impersonation(self):
        request = self.factory.post("/api/v1/auth/stop-impersonating/", {}, format="json")
        force_authenticate(request, user=self.manager, token=AccessToken.for_user(self.manager))
        res = StopImpersonatingView.as_view()(request)
        self.assertEqual(res.status_code, 422)
        self.assertEqual(res.data["message"], "You are not impersonating anyone.")
