# core/api.py
from rest_framework.routers import DefaultRouter

from brands.views import BrandRequestViewSet, BrandViewSet
from catalog.api_images import ImageLibraryViewSet
from catalog.views import (
    CategoryViewSet,
    CollectionViewSet,
    OptionValueViewSet,
    OptionViewSet,
    ProductViewSet,
    VariantViewSet,
)
from orders.views import OrderViewSet
from users.views import UserViewSet

router = DefaultRouter()
# Brands
router.register(r"brands", BrandViewSet, basename="brand")
router.register(r"brand-requests", BrandRequestViewSet, basename="brand-request")
# Catalog
router.register(r"catalog/products", ProductViewSet, basename="catalog-product")
router.register(r"catalog/variants", VariantViewSet, basename="catalog-variant")
router.register(r"catalog/categories", CategoryViewSet, basename="catalog-category")
router.register(r"catalog/collections", CollectionViewSet, basename="catalog-collection")
router.register(r"catalog/options", OptionViewSet, basename="catalog-option")
router.register(r"catalog/option-values", OptionValueViewSet, basename="catalog-option-value")
router.register(r"catalog/images", ImageLibraryViewSet, basename="catalog-image")
# Orders
router.register(r"orders", OrderViewSet, basename="order")
# Users
router.register(r"users", UserViewSet, basename="user")
