from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from brands.models import Brand, BrandRequest, BrandUser, Contact, ShippingMethod
from brands.services import BrandRequestError, approve_brand_request, reject_brand_request, sync_contacts
from brands.views import BrandRequestCreateView, BrandRequestViewSet, BrandViewSet, ContactsView, ShippingMethodsView
from catalog.models import Product

User = get_user_model()


class BrandRequestServiceTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_superuser(username="root", email="root@example.com", password="pass")
        self.request = BrandRequest.objects.create(
            email="seller@example.com", name="Sam Seller", phone="+375291234567", brand_name="Linen Lab"
        )

    def test_approve_creates_user_brand_and_membership(self):
        approved = approve_brand_request(self.request, self.admin)
        self.assertEqual(approved.status, BrandRequest.Status.APPROVED)
        self.assertIsNotNone(approved.approved_at)
        self.assertEqual(approved.reviewed_by, self.admin)

        brand = Brand.objects.get(name="Linen Lab")
        self.assertEqual(approved.brand, brand)
        user = User.objects.get(email="seller@example.com")
        self.assertEqual(approved.user, user)
        self.assertTrue(user.groups.filter(name="manager").exists())
        self.assertTrue(BrandUser.objects.filter(brand=brand, user=user, is_active=True).exists())

    def test_approve_reuses_existing_user(self):
        existing = User.objects.create_user(username="sam", email="Seller@Example.com", password="pass")
        approved = approve_brand_request(self.request, self.admin)
        self.assertEqual(approved.user, existing)
        self.assertEqual(User.objects.filter(email__iexact="seller@example.com").count(), 1)

    def test_processed_request_is_refused(self):
        reject_brand_request(self.request, self.admin, "Incomplete")
        with self.assertRaisesMessage(BrandRequestError, "This request has already been processed."):
            approve_brand_request(self.request, self.admin)
        with self.assertRaises(BrandRequestError):
            reject_brand_request(self.request, self.admin)

    def test_duplicate_brand_name_is_refused(self):
        Brand.objects.create(name="linen lab")
        with self.assertRaises(BrandRequestError):
            approve_brand_request(self.request, self.admin)
        self.request.refresh_from_db()
        self.assertTrue(self.request.is_pending)

    def test_reject_records_reason(self):
        rejected = reject_brand_request(self.request, self.admin, "Duplicate shop")
        self.assertEqual(rejected.status, BrandRequest.Status.REJECTED)
        self.assertEqual(rejected.rejection_reason, "Duplicate shop")
        self.assertIsNotNone(rejected.rejected_at)
        self.assertFalse(Brand.objects.filter(name="Linen Lab").exists())


class ContactSyncTests(TestCase):
    def setUp(self):
        self.brand = Brand.objects.create(name="Contacts")

    def test_create_update_and_delete(self):
        sync_contacts(self.brand, {"email": "hi@brand.by", "phone": "+375290000000"})
        self.assertEqual(self.brand.contacts.count(), 2)

        contacts = sync_contacts(self.brand, {"email": "sales@brand.by", "phone": ""})
        self.assertEqual([(c.type, c.value) for c in contacts], [("email", "sales@brand.by")])

    def test_missing_types_are_left_alone(self):
        sync_contacts(self.brand, {"telegram": "@brand"})
        sync_contacts(self.brand, {"email": "hi@brand.by"})
        self.assertEqual(
            set(self.brand.contacts.values_list("type", flat=True)),
            {Contact.Type.TELEGRAM.value, Contact.Type.EMAIL.value},
        )


class BrandApiTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        manager_group, _ = Group.objects.get_or_create(name="manager")
        admin_group, _ = Group.objects.get_or_create(name="admin")

        self.brand = Brand.objects.create(name="Mine")
        self.other = Brand.objects.create(name="Theirs")

        self.manager = User.objects.create_user(username="manager", password="pass")
        self.manager.groups.add(manager_group)
        BrandUser.objects.create(brand=self.brand, user=self.manager)

        self.admin = User.objects.create_user(username="admin", password="pass")
        self.admin.groups.add(admin_group)

    def _call(self, view, method, user, path="/", data=None, brand=None, **kwargs):
        request = getattr(self.factory, method)(path, data, format="json")
        force_authenticate(request, user=user)
        request.brand = brand
        return view(request, **kwargs)

    def test_manager_lists_own_brands(self):
        view = BrandViewSet.as_view({"get": "list"})
        resp = self._call(view, "get", self.manager, brand=self.brand)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([row["name"] for row in resp.data["data"]], ["Mine"])
        self.assertEqual(resp.data["per_page"], 10)

        resp = self._call(view, "get", self.admin)
        self.assertEqual(resp.data["total"], 2)

    def test_manager_cannot_open_foreign_brand(self):
        view = BrandViewSet.as_view({"get": "retrieve"})
        resp = self._call(view, "get", self.manager, brand=self.brand, pk=self.other.pk)
        self.assertEqual(resp.status_code, 403)
        resp = self._call(view, "get", self.manager, brand=self.brand, pk=999999)
        self.assertEqual(resp.status_code, 404)

    def test_only_admins_toggle_is_active(self):
        view = BrandViewSet.as_view({"patch": "partial_update"})
        resp = self._call(view, "patch", self.manager, data={"is_active": False}, brand=self.brand, pk=self.brand.pk)
        self.assertEqual(resp.status_code, 200)
        self.brand.refresh_from_db()
        self.assertTrue(self.brand.is_active)
        self.assertEqual(Brand.objects.resolve_for(self.manager), self.brand)

        resp = self._call(view, "patch", self.admin, data={"is_active": False}, pk=self.brand.pk)
        self.assertEqual(resp.status_code, 200)
        self.brand.refresh_from_db()
        self.assertFalse(self.brand.is_active)

    def test_create_adds_creator_as_member(self):
        view = BrandViewSet.as_view({"post": "create"})
        resp = self._call(view, "post", self.manager, data={"name": "Fresh", "description": None})
        self.assertEqual(resp.status_code, 201)
        brand = Brand.objects.get(name="Fresh")
        self.assertEqual(brand.description, "")
        self.assertTrue(BrandUser.objects.filter(brand=brand, user=self.manager).exists())

    def test_delete_is_admin_only_and_refused_with_products(self):
        view = BrandViewSet.as_view({"delete": "destroy"})
        resp = self._call(view, "delete", self.manager, brand=self.brand, pk=self.brand.pk)
        self.assertEqual(resp.status_code, 403)

        Product.objects.create(brand=self.other, title="Shirt")
        resp = self._call(view, "delete", self.admin, pk=self.other.pk)
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.data["message"], "Cannot delete brand with existing products.")

        resp = self._call(view, "delete", self.admin, pk=self.brand.pk)
        self.assertEqual(resp.status_code, 204)
        self.assertFalse(Brand.objects.filter(pk=self.brand.pk).exists())

    def test_contacts_endpoint(self):
        resp = self._call(
            ContactsView.as_view(), "put", self.manager, brand=self.brand,
            data={"email": "hi@mine.by", "instagram": "@mine"},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual({row["type"] for row in resp.data}, {"email", "instagram"})

        resp = self._call(ContactsView.as_view(), "put", self.manager, brand=self.brand, data={"email": "nope"})
        self.assertEqual(resp.status_code, 400)

    def test_shipping_methods_endpoint(self):
        ShippingMethod.ensure_defaults()
        pickup = ShippingMethod.objects.get(key="pickup")
        resp = self._call(
            ShippingMethodsView.as_view(), "put", self.manager, brand=self.brand,
            data={"shipping_method_ids": [pickup.id]},
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([row["key"] for row in resp.data], ["pickup"])
        self.assertEqual(list(self.brand.shipping_methods.all()), [pickup])

    def test_brand_request_flow(self):
        resp = self.factory.post(
            "/api/v1/brand/requests",
            {"email": "new@seller.by", "name": "New Seller", "brand_name": "New Wave"},
            format="json",
        )
        resp = BrandRequestCreateView.as_view()(resp)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["status"], "pending")
        request_id = resp.data["id"]

        approve = BrandRequestViewSet.as_view({"post": "approve"})
        resp = self._call(approve, "post", self.manager, pk=request_id)
        self.assertEqual(resp.status_code, 403)

        resp = self._call(approve, "post", self.admin, pk=request_id)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["status"], "approved")
        self.assertEqual(resp.data["brand"]["name"], "New Wave")

        resp = self._call(approve, "post", self.admin, pk=request_id)
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.data["message"], "This request has already been processed.")

    def test_shipping_defaults_are_seeded(self):
        self.assertEqual(
            set(ShippingMethod.objects.values_list("key", flat=True)),
            {"euro_post_rb", "courier_minsk", "pickup"},
        )
