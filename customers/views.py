# customers/views.py

from django.db.models import Count, Q
from rest_framework import generics

from common.api_mixins import resolve_request_brand
from common.pagination import BackOfficePagination
from common.permissions import IsBackOfficeUser, PermissionRequired
from common.roles import READ_ORDERS, is_admin

from .models import Customer
from .serializers import CustomerSerializer


class CustomerScopeMixin:
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = {"GET": READ_ORDERS}
    serializer_class = CustomerSerializer

    def get_queryset(self):
        qs = Customer.objects.all()
        if is_admin(self.request.user):
            return qs.annotate(orders_count=Count("orders", distinct=True))
        brand = resolve_request_brand(self.request)
        if brand is None:
            return qs.none()
        return qs.filter(orders__brand=brand).annotate(
            orders_count=Count("orders", filter=Q(orders__brand=brand), distinct=True)
        )


class CustomerListView(CustomerScopeMixin, generics.ListAPIView):
    """
    GET /api/v1/customers/?search=&page=&per_page=
    Admins see every customer; managers see who ordered from their brand.
    """
    pagination_class = BackOfficePagination

    def get_queryset(self):
        qs = super().get_queryset()
        q = (self.request.query_params.get("search") or "").strip()
        if q:
            qs = qs.filter(Q(name__icontains=q) | Q(email__icontains=q) | Q(phone__icontains=q))
        return qs.order_by("-id")


class CustomerDetailView(CustomerScopeMixin, generics.RetrieveAPIView):
    """GET /api/v1/customers/<id>"""
