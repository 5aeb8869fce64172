# orders/admin.py
from django.contrib import admin

from common.admin_mixins import BrandScopedAdmin

from .models import AuditLog, Order, OrderItem, OrderShipping


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ("product", "variant", "image")


class OrderShippingInline(admin.TabularInline):
    model = OrderShipping
    extra = 0


class AuditLogInline(admin.TabularInline):
    model = AuditLog
    extra = 0
    can_delete = False
    readonly_fields = ("event", "message", "user", "created_at")
    fields = readonly_fields


@admin.register(Order)
class OrderAdmin(BrandScopedAdmin):
    list_display = ("name", "brand", "customer", "status", "delivery_status", "financial_status", "created_at")
    list_filter = ("status", "delivery_status", "financial_status", "brand")
    search_fields = ("name", "customer__email", "customer__name")
    date_hierarchy = "created_at"
    inlines = [OrderItemInline, OrderShippingInline, AuditLogInline]

    def save_model(self, request, obj, form, change):
        obj._audit_user = request.user
        super().save_model(request, obj, form, change)


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("object_id", "event", "message", "user", "created_at")
    list_filter = ("event",)
    search_fields = ("message", "object_id")
    readonly_fields = ("order", "object_id", "user", "event", "message", "old_values", "new_values", "created_at")
