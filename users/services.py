# users/services.py
import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.db import transaction

from brands.models import Brand, BrandUser
from common.auth_tokens import issue_tokens
from common.roles import UserRole, is_admin

logger = logging.getLogger(__name__)

User = get_user_model()


class ImpersonationError(Exception):
    pass


def sync_role(user, role):
    """Leave the user with exactly one back-office role, or none when role is empty."""
    user.groups.remove(*Group.objects.filter(name__in=UserRole.values))
    if role:
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
    # roles are memoized on the instance
    user.__dict__.pop("_backoffice_roles", None)
    logger.info("User %s role set to %r", user.pk, role or None)


@transaction.atomic
def bulk_set_role(users, role) -> int:
    for user in users:
        sync_role(user, role)
    return len(users)


@transaction.atomic
def bulk_delete(users, acting_user) -> int:
    """Delete the given users except the acting one; returns how many were deleted."""
    ids = [user.pk for user in users if user.pk != acting_user.pk]
    User.objects.filter(pk__in=ids).delete()
    logger.info("User %s deleted users %s", acting_user.pk, ids)
    return len(ids)


@transaction.atomic
def sync_brands(user, brands):
    """Make the user's memberships match brands: missing ones are added, others removed."""
    wanted = {brand.pk for brand in brands}
    BrandUser.objects.filter(user=user).exclude(brand_id__in=wanted).delete()
    existing = set(BrandUser.objects.filter(user=user).values_list("brand_id", flat=True))
    BrandUser.objects.bulk_create([
        BrandUser(user=user, brand_id=brand_id) for brand_id in sorted(wanted - existing)
    ])
    BrandUser.objects.filter(user=user, brand_id__in=wanted).update(is_active=True)
    return Brand.objects.filter(pk__in=wanted)


def start_impersonation(admin, target):
    """Token pair for target carrying the admin's id so the session can be handed back."""
    if not is_admin(admin):
        raise ImpersonationError("Only administrators can impersonate users.")
    if target.pk == admin.pk:
        raise ImpersonationError("You cannot impersonate yourself.")
    if is_admin(target):
        raise ImpersonationError("You cannot impersonate another administrator.")
    if not target.is_active:
        raise ImpersonationError("This user is inactive.")
    logger.info("User %s started impersonating user %s", admin.pk, target.pk)
    return issue_tokens(target, Brand.objects.resolve_for(target), impersonator_id=admin.pk)


def stop_impersonation(token):
    """Token pair for the admin recorded in an impersonation token."""
    impersonator_id = token.get("impersonator_id") if token is not None else None
    if not impersonator_id:
        raise ImpersonationError("You are not impersonating anyone.")
    original = User.objects.filter(pk=impersonator_id, is_active=True).first()
    if original is None:
        raise ImpersonationError("Original user not found.")
    logger.info("User %s stopped impersonating", original.pk)
    return issue_tokens(original, Brand.objects.resolve_for(original))
