# catalog/models.py

from decimal import Decimal, ROUND_HALF_UP

from django.core.files.storage import default_storage
from django.db import models
from django.utils import timezone
from django.utils.text import slugify

from common.models import TimeStampedModel


def resolve_image_url(src):
    """Absolute URLs are kept; storage paths go through the default storage."""
    if not src:
        return None
    if src.startswith(("http://", "https://", "//")):
        return src
    return default_storage.url(src)


class Option(TimeStampedModel):
    """A variant axis such as size or colour."""
    name = models.CharField(max_length=120)
    title = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.title or self.name


class OptionValue(TimeStampedModel):
    option = models.ForeignKey(Option, on_delete=models.CASCADE, related_name="values")
    value = models.CharField(max_length=255)

    class Meta:
        unique_together = ("option", "value")
        ordering = ["id"]

    def __str__(self):
        return self.value


class Collection(TimeStampedModel):
    handle = models.SlugField(max_length=255, unique=True, blank=True)
    name = models.CharField(max_length=255)
    title = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["name"]

    def save(self, *args, **kwargs):
        if not self.handle:
            self.handle = slugify(self.name)
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class Category(TimeStampedModel):
    name = models.CharField(max_length=255)
    handle = models.SlugField(max_length=255, blank=True)
    title = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")
    options = models.ManyToManyField(Option, blank=True, related_name="categories")
    collections = models.ManyToManyField(Collection, blank=True, related_name="categories")
    brands = models.ManyToManyField("brands.Brand", blank=True, related_name="categories")

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def save(self, *args, **kwargs):
        if not self.handle:
            self.handle = slugify(self.name)
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class Image(TimeStampedModel):
    """
    An entry of the media library. `src` is a storage path (or an absolute
    URL for imported images); the stored file is removed with the row.
    """
    name = models.CharField(max_length=255, blank=True, default="")
    src = models.CharField(max_length=500)
    alt = models.CharField(max_length=255, blank=True, default="")
    meta = models.JSONField(default=dict, blank=True)
    brands = models.ManyToManyField("brands.Brand", blank=True, related_name="images")

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.name or self.src

    @property
    def url(self):
        return resolve_image_url(self.src)


class Product(TimeStampedModel):
    brand = models.ForeignKey("brands.Brand", on_delete=models.CASCADE, related_name="products")
    category = models.ForeignKey(
        Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="products"
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    enabled = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["brand", "enabled"], name="catalog_pro_brand_i_6a1f0e_idx"),
        ]

    def __str__(self):
        return self.title

    def _priced_variants(self):
        return [v.final_price for v in self.variants.all() if v.final_price and v.final_price > 0]

    @property
    def min_price(self):
        prices = self._priced_variants()
        return min(prices) if prices else None

    @property
    def max_price(self):
        prices = self._priced_variants()
        return max(prices) if prices else None

    @property
    def main_image(self):
        return self.images.select_related("image").order_by("position", "id").first()

    @property
    def image_url(self):
        main = self.main_image
        return main.image.url if main else None

    def reorder_images(self):
        reorder_product_images(self.pk)


class ProductImage(TimeStampedModel):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="images")
    image = models.ForeignKey(Image, on_delete=models.CASCADE, related_name="product_images")
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]

    def __str__(self):
        return f"{self.product} #{self.position}"


class Variant(TimeStampedModel):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="variants")
    title = models.CharField(max_length=255, blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    final_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    enabled = models.BooleanField(default=True)
    image = models.ForeignKey(
        ProductImage, on_delete=models.SET_NULL, null=True, blank=True, related_name="variants"
    )

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.title or f"{self.product} #{self.pk}"

    @property
    def discount(self) -> int:
        """Percent off price, rounded half up; 0 for free variants."""
        price = Decimal(self.price or 0)
        if price <= 0:
            return 0
        pct = (price - Decimal(self.final_price or 0)) / price * 100
        return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class VariantValue(TimeStampedModel):
    """One (option, value) pair of a variant's combination."""
    variant = models.ForeignKey(Variant, on_delete=models.CASCADE, related_name="values")
    option = models.ForeignKey(Option, on_delete=models.CASCADE, related_name="variant_values")
    option_value = models.ForeignKey(OptionValue, on_delete=models.CASCADE, related_name="variant_values")

    class Meta:
        unique_together = ("variant", "option")
        ordering = ["id"]

    def __str__(self):
        return f"{self.option_id}:{self.option_value_id}"


class ProductStatistics(models.Model):
    """Storefront interest events (views, clicks, add to cart)."""

    class Type(models.TextChoices):
        VIEW        = "view",        "View"
        CLICK       = "click",       "Click"
        ADD_TO_CART = "add_to_cart", "Add to cart"

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="statistics")
    type = models.CharField(max_length=16, choices=Type.choices, db_index=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "product statistics"
        indexes = [
            models.Index(fields=["product", "type", "created_at"], name="catalog_pro_product_3c9d2b_idx"),
        ]

    def __str__(self):
        return f"{self.product_id} {self.type}"


def reorder_product_images(product_id):
    """Compact a product's image positions to 1..n keeping the current order."""
    rows = ProductImage.objects.filter(product_id=product_id).order_by("position", "id").values_list("id", "position")
    for position, (image_id, current) in enumerate(rows, start=1):
        if current != position:
            ProductImage.objects.filter(pk=image_id).update(position=position)
