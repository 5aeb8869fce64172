# catalog/signals.py
import logging

from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import Max
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from .models import Image, ProductImage, reorder_product_images

logger = logging.getLogger(__name__)


@receiver(pre_save, sender=ProductImage)
def append_new_product_image(sender, instance, **kwargs):
    if instance.pk is None and not instance.position:
        last = ProductImage.objects.filter(product_id=instance.product_id).aggregate(m=Max("position"))["m"]
        instance.position = (last or 0) + 1


@receiver(post_save, sender=ProductImage)
@receiver(post_delete, sender=ProductImage)
def compact_product_image_positions(sender, instance, **kwargs):
    reorder_product_images(instance.product_id)


def _delete_stored_file(src):
    try:
        if default_storage.exists(src):
            default_storage.delete(src)
    except OSError:
        logger.exception("Could not delete stored image %s", src)


@receiver(post_delete, sender=Image)
def delete_image_file(sender, instance, **kwargs):
    src = instance.src or ""
    if not src or src.startswith(("http://", "https://", "//")):
        return
    transaction.on_commit(lambda: _delete_stored_file(src))
