from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel
from common.roles import is_admin


class BrandQuerySet(models.QuerySet):
    def for_user(self, user):
        """Brands the user is an active member of."""
        if not (user and user.is_authenticated):
            return self.none()
        return self.filter(memberships__user=user, memberships__is_active=True).distinct()

    def resolve_for(self, user, brand_id=None):
        """
        The brand a request should act as. An explicit brand_id must be one
        of the user's brands (admins may pick any active brand); otherwise the
        user's first brand is used.
        """
        qs = self.filter(is_active=True)
        if brand_id not in (None, ""):
            try:
                brand_id = int(brand_id)
            except (TypeError, ValueError):
                return None
            if is_admin(user):
                return qs.filter(id=brand_id).first()
            return qs.for_user(user).filter(id=brand_id).first()
        return qs.for_user(user).order_by("id").first()


class Brand(TimeStampedModel):
    """
    A seller on the marketplace. Products, orders, settings and media are
    scoped to it; managers only ever see their own brand.
    """
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    objects = BrandQuerySet.as_manager()

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @staticmethod
    def to_money(amount) -> str:
        """1234.5 -> '1 234.50 BYN'"""
        value = Decimal(amount or 0)
        return f"{value:,.2f}".replace(",", " ") + f" {settings.BACKOFFICE['CURRENCY']}"


class BrandUser(models.Model):
    brand = models.ForeignKey(Brand, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="brand_memberships")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = ("brand", "user")
        ordering = ["id"]

    def __str__(self):
        return f"{self.user} @ {self.brand}"


class BrandSettings(TimeStampedModel):
    class Type(models.TextChoices):
        REFUND    = "refund",    "Refund"
        ADDRESSES = "addresses", "Addresses"
        DELIVERY  = "delivery",  "Delivery"
        PHONES    = "phones",    "Phones"
        EMAILS    = "emails",    "Emails"
        SOCIALS   = "socials",   "Socials"

    brand = models.ForeignKey(Brand, on_delete=models.CASCADE, related_name="settings")
    type = models.CharField(max_length=32, choices=Type.choices)
    data = models.JSONField(default=dict, blank=True)

    class Meta:
        unique_together = ("brand", "type")
        verbose_name_plural = "brand settings"

    def __str__(self):
        return f"{self.brand} {self.type}"


class Address(TimeStampedModel):
    brand = models.ForeignKey(Brand, on_delete=models.CASCADE, related_name="addresses")
    name = models.CharField(max_length=255, blank=True, default="")
    country = models.CharField(max_length=255)
    province = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=255)
    zip_code = models.CharField(max_length=20, blank=True, default="")
    address1 = models.CharField(max_length=255, blank=True, default="")
    address2 = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "addresses"

    def __str__(self):
        return ", ".join(p for p in (self.address1, self.city, self.country) if p)


class Contact(TimeStampedModel):
    class Type(models.TextChoices):
        EMAIL     = "email",     "Email"
        PHONE     = "phone",     "Phone"
        WHATSAPP  = "whatsapp",  "WhatsApp"
        TELEGRAM  = "telegram",  "Telegram"
        INSTAGRAM = "instagram", "Instagram"
        FACEBOOK  = "facebook",  "Facebook"

    brand = models.ForeignKey(Brand, on_delete=models.CASCADE, related_name="contacts")
    type = models.CharField(max_length=16, choices=Type.choices)
    value = models.CharField(max_length=255)

    class Meta:
        unique_together = ("brand", "type")
        ordering = ["id"]

    def __str__(self):
        return f"{self.type}: {self.value}"


class ShippingMethod(TimeStampedModel):
    DEFAULTS = {
        "euro_post_rb": ("EuroPost (Belarus)", "Delivery to a EuroPost branch anywhere in Belarus"),
        "courier_minsk": ("Courier (Minsk)", "Courier delivery within Minsk"),
        "pickup": ("Pickup", "Pickup from the brand's address"),
    }

    key = models.SlugField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    brands = models.ManyToManyField(Brand, blank=True, related_name="shipping_methods")

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.name

    @classmethod
    def ensure_defaults(cls):
        for key, (name, description) in cls.DEFAULTS.items():
            cls.objects.get_or_create(key=key, defaults={"name": name, "description": description})


class BrandRequestQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(status=BrandRequest.Status.PENDING)


class BrandRequest(TimeStampedModel):
    """A sign-up request from a prospective seller, reviewed by an admin."""

    class Status(models.TextChoices):
        PENDING  = "pending",  "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True, default="")
    name = models.CharField(max_length=255, blank=True, default="")
    brand_name = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    brand = models.ForeignKey(Brand, on_delete=models.SET_NULL, null=True, blank=True, related_name="requests")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="brand_requests"
    )
    rejection_reason = models.TextField(blank=True, default="")
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_brand_requests",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)

    objects = BrandRequestQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.brand_name or self.email} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == self.Status.PENDING
