import io
import os
import shutil
import tempfile
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from PIL import Image as PILImage
from rest_framework.test import APIRequestFactory, force_authenticate

from brands.models import Brand, BrandUser
from catalog import media
from catalog.api_images import ImageLibraryViewSet, ProductImagesView
from catalog.media import FileUploadError, UploadRules, validate_upload
from catalog.models import Category, Image, Option, OptionValue, Product, ProductImage, Variant, VariantValue
from catalog.services import create_variants, sync_variants
from catalog.views import CategoryViewSet, ProductViewSet
from orders.models import Order, OrderItem

User = get_user_model()


def png_bytes(size=(4, 3), fmt="PNG"):
    buf = io.BytesIO()
    PILImage.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


class CatalogTestBase(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()
        manager_group, _ = Group.objects.get_or_create(name="manager")
        admin_group, _ = Group.objects.get_or_create(name="admin")

        self.brand = Brand.objects.create(name="Catalog Brand")
        self.other = Brand.objects.create(name="Other Brand")

        self.manager = User.objects.create_user(username="cat-manager", password="pass")
        self.manager.groups.add(manager_group)
        BrandUser.objects.create(brand=self.brand, user=self.manager)

        self.admin = User.objects.create_user(username="cat-admin", password="pass")
        self.admin.groups.add(admin_group)

        self.size = Option.objects.create(name="size", title="Size")
        self.s = OptionValue.objects.create(option=self.size, value="S")
        self.m = OptionValue.objects.create(option=self.size, value="M")
        self.color = Option.objects.create(name="color", title="Color")
        self.red = OptionValue.objects.create(option=self.color, value="Red")
        self.blue = OptionValue.objects.create(option=self.color, value="Blue")
        self.material = Option.objects.create(name="material")
        self.cotton = OptionValue.objects.create(option=self.material, value="Cotton")

        self.category = Category.objects.create(name="T-shirts")
        self.category.options.set([self.size, self.color])
        self.category.brands.add(self.brand)

    def values(self, *option_values):
        return [{"option_id": ov.option_id, "option_value_id": ov.id} for ov in option_values]

    def variant_payload(self, *option_values, price="20.00", final_price="18.00", **extra):
        payload = {
            "title": " / ".join(ov.value for ov in option_values),
            "price": price,
            "final_price": final_price,
            "enabled": True,
            "values": self.values(*option_values),
        }
        payload.update(extra)
        return payload

    def call(self, actions, method, user, path="/", data=None, brand=None, fmt="json", **kwargs):
        view = ProductViewSet.as_view(actions)
        request = getattr(self.factory, method)(path, data, format=fmt)
        force_authenticate(request, user=user)
        request.brand = brand
        return view(request, **kwargs)

    def make_product(self, brand=None, *combos):
        product = Product.objects.create(brand=brand or self.brand, category=self.category, title="Tee")
        create_variants(product, [
            {"title": "", "price": Decimal("10"), "final_price": Decimal("10"), "enabled": True,
             "values": self.values(*combo)}
            for combo in combos
        ])
        return product


class VariantServiceTests(CatalogTestBase):
    def test_sync_updates_creates_and_deletes(self):
        product = self.make_product(None, (self.s, self.red), (self.m, self.red))
        keep, drop = list(product.variants.order_by("id"))

        result = sync_variants(product, [
            {"id": keep.id, "title": "S / Blue", "price": Decimal("12"), "final_price": Decimal("11"),
             "enabled": False, "values": self.values(self.s, self.blue)},
            {"title": "M / Blue", "price": Decimal("12"), "final_price": Decimal("12"),
             "enabled": True, "values": self.values(self.m, self.blue)},
        ])

        self.assertEqual(result.updated, [keep.id])
        self.assertEqual(result.deleted, [drop.id])
        self.assertEqual(len(result.created), 1)
        self.assertEqual(result.values_synced, [keep.id])
        self.assertFalse(Variant.objects.filter(pk=drop.pk).exists())

        keep.refresh_from_db()
        self.assertFalse(keep.enabled)
        self.assertEqual(
            set(keep.values.values_list("option_value_id", flat=True)), {self.s.id, self.blue.id}
        )

    def test_unchanged_values_are_not_rewritten(self):
        product = self.make_product(None, (self.s, self.red))
        variant = product.variants.get()
        value_ids = set(variant.values.values_list("id", flat=True))
        result = sync_variants(product, [
            {"id": variant.id, "title": "x", "price": Decimal("1"), "final_price": Decimal("1"),
             "enabled": True, "values": self.values(self.red, self.s)},
        ])
        self.assertEqual(result.values_synced, [])
        self.assertEqual(set(variant.values.values_list("id", flat=True)), value_ids)

    def test_empty_values_clear_the_combination(self):
        product = self.make_product(None, (self.s, self.red))
        variant = product.variants.get()
        sync_variants(product, [
            {"id": variant.id, "title": "", "price": Decimal("1"), "final_price": Decimal("1"),
             "enabled": True, "values": []},
        ])
        self.assertFalse(VariantValue.objects.filter(variant=variant).exists())

    def test_foreign_variant_id_is_created_not_stolen(self):
        mine = self.make_product(None, (self.s, self.red))
        theirs = self.make_product(self.other, (self.m, self.blue))
        foreign = theirs.variants.get()
        sync_variants(mine, [
            {"id": foreign.id, "title": "", "price": Decimal("1"), "final_price": Decimal("1"),
             "enabled": True, "values": self.values(self.m, self.blue)},
        ])
        self.assertEqual(Variant.objects.get(pk=foreign.pk).product, theirs)
        self.assertEqual(mine.variants.count(), 1)
        self.assertNotEqual(mine.variants.get().pk, foreign.pk)

    def test_discount(self):
        self.assertEqual(Variant(price=Decimal("200"), final_price=Decimal("150")).discount, 25)
        self.assertEqual(Variant(price=Decimal("3"), final_price=Decimal("2")).discount, 33)
        self.assertEqual(Variant(price=Decimal("0"), final_price=Decimal("0")).discount, 0)


class ProductApiTests(CatalogTestBase):
    def test_create_with_variants(self):
        resp = self.call({"post": "create"}, "post", self.manager, brand=self.brand, data={
            "title": "Basic Tee",
            "description": None,
            "enabled": True,
            "category_id": self.category.id,
            "variants": [
                self.variant_payload(self.s, self.red),
                self.variant_payload(self.m, self.red, price="30.00", final_price="24.00"),
            ],
        })
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["brand_id"], self.brand.id)
        self.assertEqual(resp.data["description"], "")
        self.assertEqual(len(resp.data["variants"]), 2)
        self.assertEqual(resp.data["variants"][1]["discount"], 20)
        self.assertEqual(Decimal(resp.data["min_price"]), Decimal("18.00"))
        self.assertEqual(Decimal(resp.data["max_price"]), Decimal("24.00"))

    def test_duplicate_combinations_are_rejected(self):
        resp = self.call({"post": "create"}, "post", self.manager, brand=self.brand, data={
            "title": "Dupes",
            "enabled": True,
            "category_id": self.category.id,
            "variants": [
                self.variant_payload(self.s, self.red),
                self.variant_payload(self.red, self.s),
            ],
        })
        self.assertEqual(resp.status_code, 400)
        self.assertIn("1", resp.data)
        self.assertFalse(Product.objects.filter(title="Dupes").exists())

    def test_option_outside_category_is_rejected(self):
        resp = self.call({"post": "create"}, "post", self.manager, brand=self.brand, data={
            "title": "Cotton Tee",
            "enabled": True,
            "category_id": self.category.id,
            "variants": [self.variant_payload(self.s, self.cotton)],
        })
        self.assertEqual(resp.status_code, 400)

    def test_at_least_one_variant(self):
        resp = self.call({"post": "create"}, "post", self.manager, brand=self.brand, data={
            "title": "Empty", "enabled": True, "category_id": self.category.id, "variants": [],
        })
        self.assertEqual(resp.status_code, 400)
        self.assertIn("variants", resp.data)

    def test_update_syncs_variants(self):
        product = self.make_product(None, (self.s, self.red), (self.m, self.red))
        first = product.variants.order_by("id").first()
        resp = self.call({"put": "update"}, "put", self.manager, brand=self.brand, pk=product.pk, data={
            "title": "Renamed",
            "enabled": False,
            "category_id": self.category.id,
            "variants": [self.variant_payload(self.s, self.red, id=first.id)],
        })
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["title"], "Renamed")
        self.assertEqual([v["id"] for v in resp.data["variants"]], [first.id])

    def test_partial_update_uses_stored_category(self):
        product = self.make_product(None, (self.s, self.red))
        variant = product.variants.get()
        resp = self.call({"patch": "partial_update"}, "patch", self.manager, brand=self.brand, pk=product.pk, data={
            "variants": [self.variant_payload(self.s, self.red, id=variant.id, price="30.00")],
        })
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(Decimal(resp.data["variants"][0]["price"]), Decimal("30.00"))
        self.assertEqual(resp.data["category_id"], self.category.id)

    def test_category_change_revalidates_stored_variants(self):
        product = self.make_product(None, (self.s, self.red))
        sizes_only = Category.objects.create(name="Socks")
        sizes_only.options.set([self.size])
        resp = self.call({"patch": "partial_update"}, "patch", self.manager, brand=self.brand, pk=product.pk,
                         data={"category_id": sizes_only.id})
        self.assertEqual(resp.status_code, 400)
        product.refresh_from_db()
        self.assertEqual(product.category, self.category)

        wider = Category.objects.create(name="Hoodies")
        wider.options.set([self.size, self.color, self.material])
        resp = self.call({"patch": "partial_update"}, "patch", self.manager, brand=self.brand, pk=product.pk,
                         data={"category_id": wider.id})
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["category_id"], wider.id)

    def _product_image(self, product):
        image = Image.objects.create(src=f"https://cdn.example/{product.pk}.png")
        image.brands.add(product.brand)
        return ProductImage.objects.create(product=product, image=image)

    def test_variant_image_must_belong_to_the_product(self):
        foreign_image = self._product_image(self.make_product(self.other, (self.s, self.red)))
        resp = self.call({"post": "create"}, "post", self.manager, brand=self.brand, data={
            "title": "Borrowed",
            "enabled": True,
            "category_id": self.category.id,
            "variants": [self.variant_payload(self.s, self.red, image_id=foreign_image.id)],
        })
        self.assertEqual(resp.status_code, 400)
        self.assertIn("0", resp.data)
        self.assertFalse(Product.objects.filter(title="Borrowed").exists())

        resp = self.call({"post": "create"}, "post", self.manager, brand=self.brand, data={
            "title": "Missing",
            "enabled": True,
            "category_id": self.category.id,
            "variants": [self.variant_payload(self.s, self.red, image_id=999999)],
        })
        self.assertEqual(resp.status_code, 400)

        product = self.make_product(None, (self.s, self.red))
        own_image = self._product_image(product)
        variant = product.variants.get()
        resp = self.call({"patch": "partial_update"}, "patch", self.manager, brand=self.brand, pk=product.pk, data={
            "variants": [self.variant_payload(self.s, self.red, id=variant.id, image_id=foreign_image.id)],
        })
        self.assertEqual(resp.status_code, 400)

        resp = self.call({"patch": "partial_update"}, "patch", self.manager, brand=self.brand, pk=product.pk, data={
            "variants": [self.variant_payload(self.s, self.red, id=variant.id, image_id=own_image.id)],
        })
        self.assertEqual(resp.status_code, 200, resp.data)
        self.assertEqual(resp.data["variants"][0]["image_id"], own_image.id)

    def test_list_is_scoped_with_prices(self):
        self.make_product(None, (self.s, self.red))
        self.make_product(self.other, (self.s, self.red))
        resp = self.call({"get": "list"}, "get", self.manager, brand=self.brand)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["total"], 1)
        row = resp.data["data"][0]
        self.assertEqual(row["variants_count"], 1)
        self.assertEqual(Decimal(row["min_price"]), Decimal("10.00"))

        resp = self.call({"get": "list"}, "get", self.manager, brand=self.brand, data={"enabled": "false"})
        self.assertEqual(resp.data["total"], 0)

    def test_foreign_product_is_forbidden(self):
        foreign = self.make_product(self.other, (self.s, self.red))
        resp = self.call({"get": "retrieve"}, "get", self.manager, brand=self.brand, pk=foreign.pk)
        self.assertEqual(resp.status_code, 403)

    def test_delete_refused_with_orders(self):
        product = self.make_product(None, (self.s, self.red))
        order = Order.objects.create(brand=self.brand, name="#1")
        OrderItem.objects.create(order=order, product=product, title="Tee", quantity=1)
        resp = self.call({"delete": "destroy"}, "delete", self.manager, brand=self.brand, pk=product.pk)
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.data["message"], "Cannot delete product with existing orders.")

        OrderItem.objects.all().delete()
        resp = self.call({"delete": "destroy"}, "delete", self.manager, brand=self.brand, pk=product.pk)
        self.assertEqual(resp.status_code, 204)

    def test_generate_variant(self):
        product = self.make_product(None, (self.s, self.red))
        resp = self.call({"post": "generate_variant"}, "post", self.manager, brand=self.brand, pk=product.pk)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["title"], "S / Blue")

        # the editor's unsaved list takes precedence over stored variants
        resp = self.call({"post": "generate_variant"}, "post", self.manager, brand=self.brand, pk=product.pk,
                         data={"variants": [
                             self.variant_payload(self.s, self.red),
                             self.variant_payload(self.s, self.blue),
                         ]})
        self.assertEqual(resp.data["title"], "M / Red")

    def test_generate_variant_conflict_when_exhausted(self):
        product = self.make_product(
            None, (self.s, self.red), (self.s, self.blue), (self.m, self.red), (self.m, self.blue)
        )
        resp = self.call({"post": "generate_variant"}, "post", self.manager, brand=self.brand, pk=product.pk)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.data["message"], "All variant combinations are already used.")

    def test_variant_options(self):
        product = self.make_product(None, (self.s, self.red))
        resp = self.call({"get": "variant_options"}, "get", self.manager, brand=self.brand, pk=product.pk)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["stats"], {"total": 4, "used": 1, "available": 3})
        self.assertTrue(resp.data["has_available_combinations"])
        self.assertEqual({o["name"] for o in resp.data["options"]}, {"size", "color"})


class CategoryApiTests(CatalogTestBase):
    def _list(self, user, brand=None, **params):
        request = self.factory.get("/", params)
        force_authenticate(request, user=user)
        request.brand = brand
        return CategoryViewSet.as_view({"get": "list"})(request)

    def test_manager_sees_brand_categories(self):
        Category.objects.create(name="Hidden")
        resp = self._list(self.manager, self.brand)
        self.assertEqual([row["name"] for row in resp.data], ["T-shirts"])

    def test_admin_sees_all_and_can_filter(self):
        Category.objects.create(name="Hidden")
        self.assertEqual(len(self._list(self.admin).data), 2)
        self.assertEqual(len(self._list(self.admin, brand_id=str(self.brand.id)).data), 1)

    def test_manager_cannot_create(self):
        request = self.factory.post("/", {"name": "Socks"}, format="json")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        resp = CategoryViewSet.as_view({"post": "create"})(request)
        self.assertEqual(resp.status_code, 403)


class ProductImagePositionTests(CatalogTestBase):
    def setUp(self):
        super().setUp()
        self.product = Product.objects.create(brand=self.brand, category=self.category, title="Pics")
        self.images = [Image.objects.create(src=f"https://cdn.example/{i}.png") for i in range(3)]
        for image in self.images:
            image.brands.add(self.brand)

    def test_new_images_are_appended_and_gaps_closed(self):
        rows = [ProductImage.objects.create(product=self.product, image=image) for image in self.images]
        self.assertEqual(
            list(self.product.images.values_list("position", flat=True)), [1, 2, 3]
        )
        rows[0].delete()
        self.assertEqual(
            list(self.product.images.order_by("position").values_list("id", "position")),
            [(rows[1].id, 1), (rows[2].id, 2)],
        )
        self.assertEqual(self.product.image_url, "https://cdn.example/1.png")

    def _images_view(self, method, data=None, image_id=None):
        request = getattr(self.factory, method)("/", data, format="json")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        kwargs = {"product_id": self.product.pk}
        if image_id is not None:
            kwargs["image_id"] = image_id
        return ProductImagesView.as_view()(request, **kwargs)

    def test_attach_reorder_and_detach(self):
        for image in self.images:
            self.assertEqual(self._images_view("post", {"image_id": image.id}).status_code, 201)
        rows = list(self.product.images.order_by("position"))

        resp = self._images_view("put", {"order": [rows[2].id, rows[0].id, rows[1].id]})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([row["id"] for row in resp.data], [rows[2].id, rows[0].id, rows[1].id])
        self.assertEqual([row["position"] for row in resp.data], [1, 2, 3])

        resp = self._images_view("put", {"order": [rows[0].id]})
        self.assertEqual(resp.status_code, 400)

        resp = self._images_view("delete", image_id=rows[2].id)
        self.assertEqual(resp.status_code, 204)
        self.assertEqual(list(self.product.images.values_list("position", flat=True)), [1, 2])

    def test_foreign_image_cannot_be_attached(self):
        foreign = Image.objects.create(src="https://cdn.example/x.png")
        foreign.brands.add(self.other)
        self.assertEqual(self._images_view("post", {"image_id": foreign.id}).status_code, 403)


class MediaTests(CatalogTestBase):
    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)
        super().tearDown()

    def test_rules(self):
        rules = UploadRules(max_size=50, allowed_mime_types=("image/png",), allowed_extensions=("png",))
        too_big = SimpleUploadedFile("big.png", b"x" * 51, content_type="image/png")
        with self.assertRaises(FileUploadError) as ctx:
            validate_upload(too_big, rules)
        self.assertEqual(ctx.exception.detail[0].code, "invalid_size")

        rules = UploadRules(max_size=10_000, allowed_mime_types=("image/png",), allowed_extensions=("png",))
        not_image = SimpleUploadedFile("notes.png", b"plain text", content_type="image/png")
        with self.assertRaises(FileUploadError) as ctx:
            validate_upload(not_image, rules)
        self.assertEqual(ctx.exception.detail[0].code, "invalid_mime_type")

        wrong_ext = SimpleUploadedFile("photo.txt", png_bytes(), content_type="image/png")
        with self.assertRaises(FileUploadError) as ctx:
            validate_upload(wrong_ext, rules)
        self.assertEqual(ctx.exception.detail[0].code, "invalid_extension")

        good = SimpleUploadedFile("photo.png", png_bytes(), content_type="image/png")
        self.assertEqual(validate_upload(good, rules), ("image/png", 4, 3))

    def _upload(self, *files):
        request = self.factory.post("/", {"images": list(files), "alt": "Front"}, format="multipart")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        return ImageLibraryViewSet.as_view({"post": "create"})(request)

    def test_upload_stores_files_for_the_brand(self):
        resp = self._upload(
            SimpleUploadedFile("front.png", png_bytes(), content_type="image/png"),
            SimpleUploadedFile("back.jpg", png_bytes(fmt="JPEG"), content_type="image/jpeg"),
        )
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["message"], "2 images uploaded successfully")
        images = list(Image.objects.filter(brands=self.brand).order_by("id"))
        self.assertEqual(len(images), 2)
        self.assertTrue(images[0].src.startswith(f"brands/{self.brand.id}/"))
        self.assertEqual(images[0].alt, "Front")
        self.assertEqual(images[1].meta["mime"], "image/jpeg")
        self.assertTrue(default_storage.exists(images[0].src))

    def test_invalid_upload_is_rejected(self):
        resp = self._upload(SimpleUploadedFile("virus.exe", b"MZ....", content_type="application/octet-stream"))
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Image.objects.exists())

    def _stored_files(self):
        return [name for _, _, files in os.walk(self.media_root) for name in files]

    def test_batch_with_a_bad_file_stores_nothing(self):
        resp = self._upload(
            SimpleUploadedFile("front.png", png_bytes(), content_type="image/png"),
            SimpleUploadedFile("virus.exe", b"MZ....", content_type="application/octet-stream"),
        )
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Image.objects.exists())
        self.assertEqual(self._stored_files(), [])

    def test_failed_save_removes_written_files(self):
        real_save = media._save_file
        written = []

        def save_once(upload, brand, rules):
            if written:
                raise OSError("disk full")
            written.append(upload.name)
            return real_save(upload, brand, rules)

        uploads = [
            SimpleUploadedFile("front.png", png_bytes(), content_type="image/png"),
            SimpleUploadedFile("back.png", png_bytes(), content_type="image/png"),
        ]
        with patch("catalog.media._save_file", side_effect=save_once):
            with self.assertRaises(OSError):
                media.store_images(uploads, brand=self.brand)
        self.assertEqual(written, ["front.png"])
        self.assertFalse(Image.objects.exists())
        self.assertEqual(self._stored_files(), [])

    def test_deleting_image_removes_file(self):
        self._upload(SimpleUploadedFile("front.png", png_bytes(), content_type="image/png"))
        image = Image.objects.get()
        path = image.src
        with self.captureOnCommitCallbacks(execute=True):
            image.delete()
        self.assertFalse(default_storage.exists(path))

    def test_foreign_image_is_forbidden(self):
        foreign = Image.objects.create(src="https://cdn.example/x.png")
        foreign.brands.add(self.other)
        request = self.factory.get("/")
        force_authenticate(request, user=self.manager)
        request.brand = self.brand
        resp = ImageLibraryViewSet.as_view({"get": "retrieve"})(request, pk=foreign.pk)
        self.assertEqual(resp.status_code, 403)
