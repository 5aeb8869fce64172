# brands/services.py
import logging
import secrets

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.db import transaction
from django.utils import timezone

from common.roles import UserRole

from .models import Brand, BrandRequest, BrandUser, Contact

logger = logging.getLogger(__name__)


class BrandRequestError(Exception):
    """Business-rule refusal while reviewing a brand request."""


def _find_or_create_user(brand_request: BrandRequest):
    User = get_user_model()
    user = User.objects.filter(email__iexact=brand_request.email).first()
    if user is not None:
        return user, False
    username = brand_request.email
    if User.objects.filter(username=username).exists():
        username = f"{brand_request.email}-{secrets.token_hex(3)}"
    user = User.objects.create_user(
        username=username,
        email=brand_request.email,
        password=secrets.token_urlsafe(16),
        first_name=(brand_request.name or "")[:150],
    )
    return user, True


@transaction.atomic
def approve_brand_request(brand_request: BrandRequest, reviewer) -> BrandRequest:
    """
    Find or create the user by email, make them a manager, create the brand
    and the membership, and mark the request approved.
    """
    brand_request = BrandRequest.objects.select_for_update().get(pk=brand_request.pk)
    if not brand_request.is_pending:
        raise BrandRequestError("This request has already been processed.")

    brand_name = (brand_request.brand_name or brand_request.email).strip()
    if Brand.objects.filter(name__iexact=brand_name).exists():
        raise BrandRequestError(f"A brand named '{brand_name}' already exists.")

    user, created = _find_or_create_user(brand_request)
    manager_group, _ = Group.objects.get_or_create(name=UserRole.MANAGER.value)
    user.groups.add(manager_group)

    brand = Brand.objects.create(name=brand_name)
    BrandUser.objects.create(brand=brand, user=user)

    brand_request.status = BrandRequest.Status.APPROVED
    brand_request.brand = brand
    brand_request.user = user
    brand_request.reviewed_by = reviewer
    brand_request.approved_at = timezone.now()
    brand_request.save()

    logger.info(
        "Brand request %s approved by %s: brand=%s user=%s (new=%s)",
        brand_request.pk, getattr(reviewer, "pk", None), brand.pk, user.pk, created,
    )
    return brand_request


@transaction.atomic
def reject_brand_request(brand_request: BrandRequest, reviewer, reason: str = "") -> BrandRequest:
    brand_request = BrandRequest.objects.select_for_update().get(pk=brand_request.pk)
    if not brand_request.is_pending:
        raise BrandRequestError("This request has already been processed.")

    brand_request.status = BrandRequest.Status.REJECTED
    brand_request.rejection_reason = reason or ""
    brand_request.reviewed_by = reviewer
    brand_request.rejected_at = timezone.now()
    brand_request.save()

    logger.info("Brand request %s rejected by %s", brand_request.pk, getattr(reviewer, "pk", None))
    return brand_request


@transaction.atomic
def sync_contacts(brand: Brand, data: dict) -> list:
    """
    One contact per type. A non-empty value creates or updates it, an empty
    value deletes it; types missing from `data` are left alone.
    """
    for contact_type in Contact.Type.values:
        if contact_type not in data:
            continue
        value = (data.get(contact_type) or "").strip()
        if value:
            Contact.objects.update_or_create(brand=brand, type=contact_type, defaults={"value": value})
        else:
            Contact.objects.filter(brand=brand, type=contact_type).delete()
    return list(brand.contacts.all())


def sync_shipping_methods(brand: Brand, methods) -> list:
    brand.shipping_methods.set(methods)
    return list(brand.shipping_methods.all())
