# orders/views.py
import logging

from django.db.models import Count, DecimalField, ExpressionWrapper, F, Prefetch, Sum, Value
from django.db.models.functions import Coalesce
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, mixins, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from common.api_mixins import BrandScopedViewSetMixin
from common.pagination import WhitelistPagination
from common.permissions import IsBackOfficeUser, PermissionRequired, read_write
from common.roles import READ_ORDERS, WRITE_ORDERS

from .models import AuditLog, Order, OrderItem
from .serializers import OrderDetailSerializer, OrderListSerializer, OrderStatusSerializer

logger = logging.getLogger(__name__)

MONEY = DecimalField(max_digits=12, decimal_places=2)


def with_totals(qs):
    line_total = ExpressionWrapper(F("items__final_price") * F("items__quantity"), output_field=MONEY)
    return qs.annotate(
        items_count=Count("items", distinct=True),
        total=Coalesce(Sum(line_total), Value(0), output_field=MONEY),
    )


class OrderViewSet(BrandScopedViewSetMixin, mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    GET   /api/v1/orders?search=&status=&financial_status=&delivery_status=&page=&per_page=
    GET   /api/v1/orders/<id>                 items, shippings, customer and audit trail
    PATCH /api/v1/orders/<id>/status          {status?, delivery_status?, financial_status?}
    """
    queryset = Order.objects.all()
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_ORDERS, WRITE_ORDERS)
    pagination_class = WhitelistPagination
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ["status", "financial_status", "delivery_status"]
    search_fields = ["name"]
    lookup_value_regex = r"\d+"

    def get_serializer_class(self):
        if self.action == "list":
            return OrderListSerializer
        if self.action == "update_status":
            return OrderStatusSerializer
        return OrderDetailSerializer

    def get_queryset(self):
        qs = with_totals(super().get_queryset().select_related("customer"))
        if self.action == "retrieve":
            qs = qs.prefetch_related(
                Prefetch("items", queryset=OrderItem.objects.select_related("image__image")),
                "shippings",
                Prefetch("audits", queryset=AuditLog.objects.select_related("user")),
            )
        return qs.order_by("-created_at", "-id")

    @action(detail=True, methods=["patch", "put"], url_path="status")
    def update_status(self, request, pk=None):
        order = self.get_object()
        serializer = self.get_serializer(order, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        order._audit_user = request.user
        serializer.save()
        logger.info("Order %s status updated by %s: %s", order.pk, request.user.pk, serializer.validated_data)
        order = self.get_queryset().filter(pk=order.pk).prefetch_related(
            "items__image__image", "shippings", "audits__user"
        ).get()
        return Response(OrderDetailSerializer(order, context=self.get_serializer_context()).data)
