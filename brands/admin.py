from django.contrib import admin

from .models import Address, Brand, BrandRequest, BrandSettings, BrandUser, Contact, ShippingMethod
from .services import BrandRequestError, approve_brand_request, reject_brand_request


class BrandUserInline(admin.TabularInline):
    model = BrandUser
    extra = 0
    autocomplete_fields = ("user",)


class AddressInline(admin.StackedInline):
    model = Address
    extra = 0


class ContactInline(admin.TabularInline):
    model = Contact
    extra = 0


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "created_at")
    search_fields = ("name", "description")
    list_filter = ("is_active",)
    inlines = (BrandUserInline, AddressInline, ContactInline)


@admin.register(BrandUser)
class BrandUserAdmin(admin.ModelAdmin):
    list_display = ("brand", "user", "is_active", "created_at")
    list_filter = ("brand", "is_active")
    search_fields = ("user__username", "user__email", "brand__name")


@admin.register(BrandSettings)
class BrandSettingsAdmin(admin.ModelAdmin):
    list_display = ("brand", "type", "updated_at")
    list_filter = ("type",)


@admin.register(ShippingMethod)
class ShippingMethodAdmin(admin.ModelAdmin):
    list_display = ("key", "name")
    search_fields = ("key", "name")
    filter_horizontal = ("brands",)


@admin.register(BrandRequest)
class BrandRequestAdmin(admin.ModelAdmin):
    list_display = ("brand_name", "email", "status", "created_at", "reviewed_by")
    list_filter = ("status",)
    search_fields = ("brand_name", "email", "name", "phone")
    readonly_fields = ("brand", "user", "reviewed_by", "approved_at", "rejected_at")
    actions = ("approve_requests", "reject_requests")

    @admin.action(description="Approve selected requests")
    def approve_requests(self, request, queryset):
        self._review(request, queryset, lambda br: approve_brand_request(br, request.user))

    @admin.action(description="Reject selected requests")
    def reject_requests(self, request, queryset):
        self._review(request, queryset, lambda br: reject_brand_request(br, request.user))

    def _review(self, request, queryset, review):
        done = 0
        for brand_request in queryset:
            try:
                review(brand_request)
                done += 1
            except BrandRequestError as exc:
                self.message_user(request, f"{brand_request}: {exc}", level="warning")
        if done:
            self.message_user(request, f"{done} request(s) processed.")
