# catalog/views.py
import django_filters
from django_filters.rest_framework import DjangoFilterBackend
from django.shortcuts import get_object_or_404
from django.db.models import Count, Max, Min, Prefetch, Q
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from brands.models import Brand
from common.api_mixins import BrandScopedViewSetMixin, apply_sorting, resolve_request_brand
from common.pagination import BackOfficePagination
from common.permissions import IsBackOfficeUser, PermissionRequired, read_write
from common.roles import (
    READ_CATEGORIES, WRITE_CATEGORIES,
    READ_COLLECTIONS, WRITE_COLLECTIONS,
    READ_OPTIONS, WRITE_OPTIONS,
    READ_OPTION_VALUES, WRITE_OPTION_VALUES,
    READ_PRODUCTS, WRITE_PRODUCTS,
    READ_PRODUCT_VARIANTS, WRITE_PRODUCT_VARIANTS,
    is_admin,
)
from . import variants as engine
from .models import Category, Collection, Option, OptionValue, Product, Variant, VariantValue
from .serializers import (
    CategorySerializer,
    CollectionSerializer,
    OptionSerializer,
    OptionValueSerializer,
    ProductDetailSerializer,
    ProductListSerializer,
    ProductWriteSerializer,
    VariantInputSerializer,
    VariantSerializer,
)

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}

PRODUCT_SORT_FIELDS = {"id", "title", "created_at", "updated_at", "variants_count", "images_count", "orders_count"}


def unprocessable(message):
    return Response({"message": message}, status=status.HTTP_422_UNPROCESSABLE_ENTITY)


class ProductFilter(django_filters.FilterSet):
    category_id = django_filters.NumberFilter(field_name="category_id")
    enabled = django_filters.CharFilter(method="filter_enabled")

    class Meta:
        model = Product
        fields = ["category_id", "enabled"]

    def filter_enabled(self, queryset, name, value):
        flag = (value or "").strip().lower()
        if flag in TRUE_VALUES:
            return queryset.filter(enabled=True)
        if flag in FALSE_VALUES:
            return queryset.filter(enabled=False)
        return queryset


class ProductViewSet(BrandScopedViewSetMixin, viewsets.ModelViewSet):
    """
    GET    /api/v1/catalog/products?search=&category_id=&enabled=&sort_by=&sort_order=&page=&per_page=
    POST   /api/v1/catalog/products              {title, description, enabled, category_id, variants: [...]}
    GET    /api/v1/catalog/products/<id>
    PUT    /api/v1/catalog/products/<id>         variants are synced (create / update / delete)
    DELETE /api/v1/catalog/products/<id>         refused while order items reference it
    """
    queryset = Product.objects.all()
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_PRODUCTS, WRITE_PRODUCTS)
    pagination_class = BackOfficePagination
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_class = ProductFilter
    search_fields = ["title", "description"]

    def get_serializer_class(self):
        if self.action == "list":
            return ProductListSerializer
        if self.action in ("create", "update", "partial_update"):
            return ProductWriteSerializer
        return ProductDetailSerializer

    def get_queryset(self):
        qs = super().get_queryset().select_related("brand", "category")
        if self.action == "list":
            qs = qs.annotate(
                variants_count=Count("variants", distinct=True),
                images_count=Count("images", distinct=True),
                orders_count=Count("order_items", distinct=True),
                price_min=Min("variants__final_price", filter=Q(variants__final_price__gt=0)),
                price_max=Max("variants__final_price", filter=Q(variants__final_price__gt=0)),
            )
            return apply_sorting(
                qs,
                self.request.query_params.get("sort_by"),
                self.request.query_params.get("sort_order"),
                PRODUCT_SORT_FIELDS,
            )
        return qs.prefetch_related(
            Prefetch("variants__values", queryset=VariantValue.objects.select_related("option", "option_value")),
            "images__image",
        )

    def _detail(self, product, status_code=status.HTTP_200_OK):
        product = self.get_queryset().get(pk=product.pk)
        return Response(ProductDetailSerializer(product, context=self.get_serializer_context()).data, status=status_code)

    def perform_create(self, serializer):
        brand_id = self.request.data.get("brand_id")
        if brand_id and is_admin(self.request.user):
            serializer.save(brand=get_object_or_404(Brand, pk=brand_id))
            return
        super().perform_create(serializer)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        return self._detail(serializer.instance, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return self._detail(serializer.instance)

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        if product.order_items.exists():
            return unprocessable("Cannot delete product with existing orders.")
        product.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _category_options(self, product):
        if product.category_id is None:
            return []
        return list(product.category.options.prefetch_related("values"))

    def _existing_variants(self, request, product):
        submitted = request.data.get("variants") if request.method == "POST" else None
        if submitted is None:
            return list(product.variants.prefetch_related("values"))
        serializer = VariantInputSerializer(data=submitted, many=True)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @action(detail=True, methods=["get"], url_path="variant-options")
    def variant_options(self, request, pk=None):
        """Category options with values, combination stats and availability."""
        product = self.get_object()
        options = self._category_options(product)
        existing = list(product.variants.prefetch_related("values"))
        return Response({
            "options": OptionSerializer(options, many=True).data,
            "stats": engine.combination_stats(options, existing),
            "has_available_combinations": engine.has_available_combinations(options, existing),
        })

    @action(detail=True, methods=["post"], url_path="generate-variant")
    def generate_variant(self, request, pk=None):
        """
        Next unused combination with its title. The body may carry the
        editor's current (unsaved) `variants`; otherwise stored ones are used.
        """
        product = self.get_object()
        options = self._category_options(product)
        generated = engine.generate_variant(options, self._existing_variants(request, product))
        if generated is None:
            return Response(
                {"message": "All variant combinations are already used."},
                status=status.HTTP_409_CONFLICT,
            )
        return Response(generated)


class VariantViewSet(BrandScopedViewSetMixin,
                     mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.UpdateModelMixin,
                     mixins.DestroyModelMixin,
                     viewsets.GenericViewSet):
    queryset = Variant.objects.select_related("product").prefetch_related("values__option", "values__option_value")
    serializer_class = VariantSerializer
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_PRODUCT_VARIANTS, WRITE_PRODUCT_VARIANTS)
    pagination_class = BackOfficePagination
    brand_field = None
    brand_path = "product__brand"
    filterset_fields = ["product", "enabled"]


class CategoryViewSet(viewsets.ModelViewSet):
    """
    Global categories. Non-admins only see categories linked to their brand;
    ?brand_id= narrows the list to one brand.
    """
    queryset = Category.objects.prefetch_related("options__values", "collections")
    serializer_class = CategorySerializer
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_CATEGORIES, WRITE_CATEGORIES)
    pagination_class = None

    def get_queryset(self):
        qs = super().get_queryset().annotate(products_count=Count("products", distinct=True))
        brand_id = self.request.query_params.get("brand_id")
        if brand_id and brand_id.isdigit():
            qs = qs.filter(brands__id=int(brand_id))
        if not is_admin(self.request.user):
            brand = resolve_request_brand(self.request)
            if brand is None:
                return qs.none()
            qs = qs.filter(brands=brand)
        return qs.distinct().order_by("name")


class CollectionViewSet(viewsets.ModelViewSet):
    queryset = Collection.objects.all()
    serializer_class = CollectionSerializer
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_COLLECTIONS, WRITE_COLLECTIONS)
    pagination_class = BackOfficePagination
    filter_backends = [filters.SearchFilter]
    search_fields = ["name", "title", "handle"]


class OptionViewSet(viewsets.ModelViewSet):
    queryset = Option.objects.prefetch_related("values")
    serializer_class = OptionSerializer
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_OPTIONS, WRITE_OPTIONS)
    pagination_class = None


class OptionValueViewSet(viewsets.ModelViewSet):
    queryset = OptionValue.objects.select_related("option")
    serializer_class = OptionValueSerializer
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_OPTION_VALUES, WRITE_OPTION_VALUES)
    pagination_class = None
    filterset_fields = ["option"]
