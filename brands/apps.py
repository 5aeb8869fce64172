from django.apps import AppConfig
from django.db.models.signals import post_migrate


class BrandsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "brands"
    verbose_name = "Brands"

    def ready(self):
        def seed_shipping_methods(sender, **kwargs):
            from brands.models import ShippingMethod

            ShippingMethod.ensure_defaults()

        post_migrate.connect(seed_shipping_methods, sender=self)
