from django.http import Http404
from rest_framework.exceptions import PermissionDenied

from brands.models import Brand
from common.roles import is_admin


def resolve_request_brand(request):
    """
    Brand the request acts as: request.brand (set by middleware), then the
    brand_id claim of the JWT, then the user's first active membership.
    """
    brand = getattr(request, "brand", None)
    if brand:
        return brand
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    payload = getattr(request, "auth", None)
    brand_id = payload.get("brand_id") if hasattr(payload, "get") else None
    return Brand.objects.resolve_for(user, brand_id)


def apply_sorting(qs, sort_by, sort_order, allowed, default="id", default_order="desc"):
    """
    Order qs by a whitelisted field. Unknown fields fall back to the default;
    any direction other than 'asc' sorts descending.
    """
    field = sort_by if sort_by in allowed else default
    order = (sort_order or default_order).lower()
    prefix = "" if order == "asc" else "-"
    if field == "id":
        return qs.order_by(f"{prefix}id")
    return qs.order_by(f"{prefix}{field}", f"{prefix}id")


class BrandScopedViewSetMixin:
    """
    Auto-filters by brand and sets brand on create.
    For models with a direct FK: brand_field = "brand"
    For models linked via product: brand_field=None, brand_path="product__brand"
    Admins see every brand. A non-admin without a brand sees nothing.
    """
    brand_field = "brand"
    brand_path = None

    def get_brand(self):
        if not hasattr(self, "_brand"):
            self._brand = resolve_request_brand(self.request)
        return self._brand

    def get_queryset(self):
        qs = super().get_queryset()
        if is_admin(self.request.user):
            return qs
        brand = self.get_brand()
        if brand is None:
            return qs.none()
        return qs.filter(**{self.brand_path or self.brand_field: brand})

    def get_object(self):
        try:
            return super().get_object()
        except Http404:
            # rows owned by another brand are forbidden, not missing
            lookup_url_kwarg = self.lookup_url_kwarg or self.lookup_field
            lookup = {self.lookup_field: self.kwargs[lookup_url_kwarg]}
            if self.queryset is not None and self.queryset.model._default_manager.filter(**lookup).exists():
                raise PermissionDenied("Access denied")
            raise

    def perform_create(self, serializer):
        if not self.brand_field:
            serializer.save()
            return
        brand = self.get_brand()
        if brand is None:
            raise PermissionDenied("No brand associated with user")
        serializer.save(**{self.brand_field: brand})
