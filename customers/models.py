# customers/models.py

from django.db import models

from common.models import TimeStampedModel


class Customer(TimeStampedModel):
    """
    A storefront buyer. Customers are shared across brands; a brand sees the
    customers that ordered from it.
    """
    email = models.EmailField(blank=True, default="", db_index=True)
    name = models.CharField(max_length=255, blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        ordering = ["-id"]

    def __str__(self):
        return self.name or self.email or f"Customer #{self.id}"
