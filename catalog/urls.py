# catalog/urls.py
from django.urls import path

from .api_images import ProductImagesView

app_name = "catalog"

urlpatterns = [
    path("products/<int:product_id>/images", ProductImagesView.as_view(), name="product-images"),
    path("products/<int:product_id>/images/<int:image_id>", ProductImagesView.as_view(), name="product-image-detail"),
]
