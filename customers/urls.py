# customers/urls.py

from django.urls import path

from .views import CustomerDetailView, CustomerListView

app_name = "customers"

urlpatterns = [
    path("customers/", CustomerListView.as_view(), name="customer-list"),
    path("customers/<int:pk>", CustomerDetailView.as_view(), name="customer-detail"),
]
