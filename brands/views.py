# brands/views.py
from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from common.api_mixins import apply_sorting, resolve_request_brand
from common.pagination import SmallPagination
from common.permissions import IsAdmin, IsBackOfficeUser
from common.roles import is_admin

from .models import Address, Brand, BrandRequest, BrandUser, ShippingMethod
from .serializers import (
    AddressSerializer,
    BrandRequestRejectSerializer,
    BrandRequestSerializer,
    BrandSerializer,
    ContactSerializer,
    ContactsSyncSerializer,
    ShippingMethodSerializer,
    ShippingMethodsSyncSerializer,
)
from .services import (
    BrandRequestError,
    approve_brand_request,
    reject_brand_request,
    sync_contacts,
    sync_shipping_methods,
)

BRAND_SORT_FIELDS = {"id", "name", "created_at", "updated_at", "products_count", "orders_count"}


def unprocessable(message):
    return Response({"message": message}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)


class BrandViewSet(viewsets.ModelViewSet):
    """
    GET    /api/v1/brands?search=&sort_by=&sort_order=&page=&per_page=
    POST   /api/v1/brands                 creator becomes a member
    GET    /api/v1/brands/<id>
    PUT    /api/v1/brands/<id>
    DELETE /api/v1/brands/<id>            admins only; refused while it has products
    """
    queryset = Brand.objects.all()
    serializer_class = BrandSerializer
    permission_classes = [IsBackOfficeUser]
    pagination_class = SmallPagination
    filter_backends = [filters.SearchFilter]
    search_fields = ["name", "description"]
    lookup_value_regex = r"\d+"

    def get_permissions(self):
        if self.action == "destroy":
            return [IsAdmin()]
        return super().get_permissions()

    def get_queryset(self):
        qs = Brand.objects.all()
        if not is_admin(self.request.user):
            qs = Brand.objects.for_user(self.request.user)
        qs = qs.annotate(
            products_count=Count("products", distinct=True),
            categories_count=Count("categories", distinct=True),
            orders_count=Count("orders", distinct=True),
        )
        return apply_sorting(
            qs,
            self.request.query_params.get("sort_by"),
            self.request.query_params.get("sort_order"),
            BRAND_SORT_FIELDS,
        )

    def get_object(self):
        brand = self.get_queryset().filter(pk=self.kwargs["pk"]).first()
        if brand is None:
            get_object_or_404(Brand, pk=self.kwargs["pk"])
            raise PermissionDenied("Access denied")
        return brand

    def perform_create(self, serializer):
        brand = serializer.save()
        BrandUser.objects.get_or_create(brand=brand, user=self.request.user)

    def destroy(self, request, *args, **kwargs):
        brand = self.get_object()
        if brand.products.exists():
            return unprocessable("Cannot delete brand with existing products.")
        brand.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


def _require_brand(request):
    brand = resolve_request_brand(request)
    if brand is None:
        raise PermissionDenied("No brand found.")
    return brand


class BrandSettingsView(APIView):
    """GET /api/v1/brand/settings  addresses, contacts and shipping methods of the current brand"""
    permission_classes = [IsBackOfficeUser]

    def get(self, request):
        brand = _require_brand(request)
        return Response({
            "brand": {"id": brand.id, "name": brand.name},
            "addresses": AddressSerializer(brand.addresses.all(), many=True).data,
            "contacts": ContactSerializer(brand.contacts.all(), many=True).data,
            "shipping_methods": ShippingMethodSerializer(brand.shipping_methods.all(), many=True).data,
            "all_shipping_methods": ShippingMethodSerializer(ShippingMethod.objects.all(), many=True).data,
        })


class AddressViewSet(mixins.CreateModelMixin,
                     mixins.UpdateModelMixin,
                     mixins.DestroyModelMixin,
                     mixins.ListModelMixin,
                     viewsets.GenericViewSet):
    serializer_class = AddressSerializer
    permission_classes = [IsBackOfficeUser]
    pagination_class = None

    def get_queryset(self):
        return Address.objects.filter(brand=_require_brand(self.request))

    def perform_create(self, serializer):
        serializer.save(brand=_require_brand(self.request))


class ContactsView(APIView):
    """PUT /api/v1/brand/contacts  {email, phone, whatsapp, telegram, instagram, facebook}"""
    permission_classes = [IsBackOfficeUser]

    def put(self, request):
        brand = _require_brand(request)
        ser = ContactsSyncSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        contacts = sync_contacts(brand, ser.validated_data)
        return Response(ContactSerializer(contacts, many=True).data)


class ShippingMethodsView(APIView):
    """PUT /api/v1/brand/shipping-methods  {shipping_method_ids: [...]}"""
    permission_classes = [IsBackOfficeUser]

    def put(self, request):
        brand = _require_brand(request)
        ser = ShippingMethodsSyncSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        methods = sync_shipping_methods(brand, ser.validated_data["shipping_method_ids"])
        return Response(ShippingMethodSerializer(methods, many=True).data)


class BrandRequestViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Admin review of seller sign-ups.
    POST /api/v1/brand-requests/<id>/approve
    POST /api/v1/brand-requests/<id>/reject   {rejection_reason}
    """
    queryset = BrandRequest.objects.select_related("brand", "reviewed_by")
    serializer_class = BrandRequestSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ["status"]

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        try:
            brand_request = approve_brand_request(self.get_object(), request.user)
        except BrandRequestError as exc:
            return unprocessable(str(exc))
        return Response(self.get_serializer(brand_request).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        ser = BrandRequestRejectSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            brand_request = reject_brand_request(
                self.get_object(), request.user, ser.validated_data.get("rejection_reason") or ""
            )
        except BrandRequestError as exc:
            return unprocessable(str(exc))
        return Response(self.get_serializer(brand_request).data)


class BrandRequestCreateView(APIView):
    """POST /api/v1/brand/requests  public sign-up form"""
    permission_classes = [AllowAny]
    authentication_classes = []

    def post(self, request):
        ser = BrandRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        brand_request = ser.save()
        return Response(BrandRequestSerializer(brand_request).data, status=status.HTTP_201_CREATED)
