from django.contrib import admin

from brands.models import BrandUser
from common.roles import is_admin


class BrandScopedAdmin(admin.ModelAdmin):
    """
    Filter admin queryset to the user's brand memberships.
    Admins see all.
    """
    brand_field = "brand"  # override for product-linked models, e.g. "product__brand"

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if is_admin(request.user):
            return qs
        brand_ids = BrandUser.objects.filter(user=request.user, is_active=True).values_list("brand_id", flat=True)
        if not brand_ids.exists():
            return qs.none()
        if self.brand_field:
            return qs.filter(**{f"{self.brand_field}__in": brand_ids}).distinct()
        return qs

    def save_model(self, request, obj, form, change):
        field = self.brand_field
        if not change and field and "__" not in field and getattr(obj, f"{field}_id", None) is None:
            m = BrandUser.objects.filter(user=request.user, is_active=True).order_by("id").first()
            if m:
                setattr(obj, f"{field}_id", m.brand_id)
        super().save_model(request, obj, form, change)
