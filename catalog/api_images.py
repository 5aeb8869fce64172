# catalog/api_images.py
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from common.api_mixins import resolve_request_brand
from common.pagination import BackOfficePagination
from common.permissions import IsBackOfficeUser, PermissionRequired, read_write
from common.roles import READ_IMAGES, READ_PRODUCTS, WRITE_IMAGES, WRITE_PRODUCTS, is_admin

from .media import store_images
from .models import Image, Product, ProductImage
from .serializers import ImageSerializer, ProductImageSerializer

MAX_FILES_PER_UPLOAD = 50


class ImageLibraryViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.UpdateModelMixin,
                          mixins.DestroyModelMixin,
                          viewsets.GenericViewSet):
    """
    GET    /api/v1/catalog/images            brand's media library (admins: everything)
    POST   /api/v1/catalog/images            multipart `images` (one or many), optional `alt`
    PATCH  /api/v1/catalog/images/<id>       {alt}
    DELETE /api/v1/catalog/images/<id>       stored file is removed too
    """
    queryset = Image.objects.prefetch_related("brands")
    serializer_class = ImageSerializer
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_IMAGES, WRITE_IMAGES)
    pagination_class = BackOfficePagination
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def get_queryset(self):
        qs = super().get_queryset()
        if is_admin(self.request.user):
            return qs
        brand = resolve_request_brand(self.request)
        if brand is None:
            return qs.none()
        return qs.filter(brands=brand)

    def get_object(self):
        image = get_object_or_404(Image.objects.prefetch_related("brands"), pk=self.kwargs["pk"])
        if not is_admin(self.request.user):
            brand = resolve_request_brand(self.request)
            if brand is None or not image.brands.filter(pk=brand.pk).exists():
                raise PermissionDenied("Unauthorized to access this image")
        return image

    def create(self, request, *args, **kwargs):
        brand = resolve_request_brand(request)
        if brand is None and not is_admin(request.user):
            raise PermissionDenied("No brand associated with user")
        files = request.FILES.getlist("images") or request.FILES.getlist("image")
        if not files:
            raise ValidationError({"images": ["At least one image is required."]})
        if len(files) > MAX_FILES_PER_UPLOAD:
            raise ValidationError({"images": [f"At most {MAX_FILES_PER_UPLOAD} images per upload."]})

        alt = request.data.get("alt") or ""
        images = store_images(files, brand=brand, alt=alt)
        data = self.get_serializer(images, many=True).data
        return Response({"data": data, "message": f"{len(images)} images uploaded successfully"},
                        status=status.HTTP_201_CREATED)


class ProductImagesView(APIView):
    """
    GET    /api/v1/catalog/products/<product_id>/images
    POST   /api/v1/catalog/products/<product_id>/images        {image_id}   attach from the library
    PUT    /api/v1/catalog/products/<product_id>/images        {order: [product_image_id, ...]}
    DELETE /api/v1/catalog/products/<product_id>/images/<id>
    Positions are kept compacted to 1..n.
    """
    permission_classes = [IsBackOfficeUser, PermissionRequired]
    required_permissions = read_write(READ_PRODUCTS, WRITE_PRODUCTS)

    def _product(self, request, product_id):
        product = get_object_or_404(Product, pk=product_id)
        if not is_admin(request.user):
            brand = resolve_request_brand(request)
            if brand is None or product.brand_id != brand.pk:
                raise PermissionDenied("Access denied")
        return product

    def _listing(self, product, status_code=status.HTTP_200_OK):
        rows = product.images.select_related("image").order_by("position", "id")
        return Response(ProductImageSerializer(rows, many=True).data, status=status_code)

    def get(self, request, product_id, image_id=None):
        return self._listing(self._product(request, product_id))

    def post(self, request, product_id, image_id=None):
        product = self._product(request, product_id)
        image_id = request.data.get("image_id")
        if not str(image_id or "").isdigit():
            raise ValidationError({"image_id": ["A valid image id is required."]})
        image = get_object_or_404(Image, pk=int(image_id))
        if not is_admin(request.user) and not image.brands.filter(pk=product.brand_id).exists():
            raise PermissionDenied("Image belongs to another brand")
        ProductImage.objects.create(product=product, image=image)
        return self._listing(product, status.HTTP_201_CREATED)

    def put(self, request, product_id, image_id=None):
        product = self._product(request, product_id)
        order = request.data.get("order")
        current = set(product.images.values_list("id", flat=True))
        if (not isinstance(order, list) or not all(isinstance(i, int) for i in order)
                or set(order) != current or len(order) != len(current)):
            raise ValidationError({"order": ["Must list every image of the product exactly once."]})
        with transaction.atomic():
            for position, row_id in enumerate(order, start=1):
                ProductImage.objects.filter(pk=row_id).update(position=position)
        return self._listing(product)

    def delete(self, request, product_id, image_id=None):
        product = self._product(request, product_id)
        row = get_object_or_404(ProductImage, pk=image_id, product=product)
        row.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
