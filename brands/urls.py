# brands/urls.py
from django.urls import path
from rest_framework.routers import SimpleRouter

from .views import AddressViewSet, BrandRequestCreateView, BrandSettingsView, ContactsView, ShippingMethodsView

app_name = "brands"

router = SimpleRouter(trailing_slash=False)
router.register(r"addresses", AddressViewSet, basename="address")

urlpatterns = [
    path("settings", BrandSettingsView.as_view(), name="settings"),
    path("contacts", ContactsView.as_view(), name="contacts"),
    path("shipping-methods", ShippingMethodsView.as_view(), name="shipping-methods"),
    path("requests", BrandRequestCreateView.as_view(), name="request-create"),
] + router.urls
