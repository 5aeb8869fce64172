# orders/models.py
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING    = "pending",    "Pending"
        CONFIRMED  = "confirmed",  "Confirmed"
        PROCESSING = "processing", "Processing"
        COMPLETED  = "completed",  "Completed"
        CANCELLED  = "cancelled",  "Cancelled"
        ARCHIVED   = "archived",   "Archived"

    class DeliveryStatus(models.TextChoices):
        PENDING   = "pending",   "Pending"
        PACKING   = "packing",   "Packing"
        SHIPPED   = "shipped",   "Shipped"
        TRANSIT   = "transit",   "In transit"
        DELIVERED = "delivered", "Delivered"

    class FinancialStatus(models.TextChoices):
        UNPAID       = "unpaid",       "Unpaid"
        PAID         = "paid",         "Paid"
        PARTIAL_PAID = "partial_paid", "Partially paid"
        REFUNDED     = "refunded",     "Refunded"

    brand = models.ForeignKey("brands.Brand", on_delete=models.CASCADE, related_name="orders")
    customer = models.ForeignKey(
        "customers.Customer", on_delete=models.SET_NULL, null=True, blank=True, related_name="orders"
    )
    name = models.CharField(max_length=64, db_index=True)  # storefront number, e.g. "#1001"
    note = models.TextField(blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING, db_index=True)
    delivery_status = models.CharField(
        max_length=16, choices=DeliveryStatus.choices, default=DeliveryStatus.PENDING
    )
    financial_status = models.CharField(
        max_length=16, choices=FinancialStatus.choices, default=FinancialStatus.UNPAID, db_index=True
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["brand", "created_at"], name="orders_orde_brand_i_52c0a1_idx"),
            models.Index(fields=["brand", "status"], name="orders_orde_brand_i_7e4b9d_idx"),
        ]

    def __str__(self):
        return self.name or f"Order #{self.pk}"

    @property
    def status_url(self) -> str:
        """Public order status page on the storefront."""
        return f"{settings.BACKOFFICE['STORE_URL'].rstrip('/')}/purchases/{self.name.replace('#', '')}"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "catalog.Product", on_delete=models.SET_NULL, null=True, blank=True, related_name="order_items"
    )
    variant = models.ForeignKey(
        "catalog.Variant", on_delete=models.SET_NULL, null=True, blank=True, related_name="order_items"
    )
    image = models.ForeignKey(
        "catalog.ProductImage", on_delete=models.SET_NULL, null=True, blank=True, related_name="order_items"
    )
    # snapshot of the catalog at purchase time
    title = models.CharField(max_length=255)
    variant_title = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    final_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.title} x{self.quantity}"

    @property
    def line_total(self):
        return (self.final_price or 0) * (self.quantity or 0)


class OrderShipping(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="shippings")
    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=32, blank=True, default="")
    note = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.name


class AuditLog(models.Model):
    class Event(models.TextChoices):
        CREATED = "created", "Created"
        UPDATED = "updated", "Updated"
        DELETED = "deleted", "Deleted"

    order = models.ForeignKey(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name="audits")
    object_id = models.PositiveBigIntegerField(db_index=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="audit_logs"
    )
    event = models.CharField(max_length=16, choices=Event.choices)
    message = models.TextField(blank=True, default="")
    old_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_values = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.event} #{self.object_id} @ {self.created_at}"

    @classmethod
    def record(cls, *, order, event, message, user=None, old_values=None, new_values=None):
        # a deleted order can no longer be referenced; keep its id only
        return cls.objects.create(
            order=order if event != cls.Event.DELETED else None,
            object_id=order.pk,
            user=user if getattr(user, "is_authenticated", False) else None,
            event=event,
            message=message,
            old_values=old_values,
            new_values=new_values,
        )
