# orders/signals.py
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from . import audit
from .models import Order


def _actor(instance):
    return getattr(instance, "_audit_user", None)


@receiver(pre_save, sender=Order)
def remember_order_state(sender, instance: Order, raw=False, **kwargs):
    if raw or not instance.pk:
        instance._audit_old = None
        return
    previous = Order.objects.filter(pk=instance.pk).first()
    instance._audit_old = audit.snapshot(previous) if previous else None


@receiver(post_save, sender=Order)
def audit_order_saved(sender, instance: Order, created, raw=False, **kwargs):
    if raw:
        return
    old = getattr(instance, "_audit_old", None)
    if created or old is None:
        audit.log_order_created(instance, _actor(instance))
    else:
        audit.log_order_updated(instance, old, _actor(instance))
    instance._audit_old = audit.snapshot(instance)


@receiver(post_delete, sender=Order)
def audit_order_deleted(sender, instance: Order, **kwargs):
    audit.log_order_deleted(instance, _actor(instance))
