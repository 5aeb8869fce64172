from django.contrib import admin

from common.admin_mixins import BrandScopedAdmin

from .models import (
    Category,
    Collection,
    Image,
    Option,
    OptionValue,
    Product,
    ProductImage,
    ProductStatistics,
    Variant,
    VariantValue,
)


class OptionValueInline(admin.TabularInline):
    model = OptionValue
    extra = 0


@admin.register(Option)
class OptionAdmin(admin.ModelAdmin):
    list_display = ("name", "title", "created_at")
    search_fields = ("name", "title")
    inlines = [OptionValueInline]


@admin.register(OptionValue)
class OptionValueAdmin(admin.ModelAdmin):
    list_display = ("option", "value")
    list_filter = ("option",)
    search_fields = ("value",)  # REQUIRED for autocomplete to work


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "handle", "created_at")
    search_fields = ("name", "handle")
    filter_horizontal = ("options", "collections", "brands")


@admin.register(Collection)
class CollectionAdmin(admin.ModelAdmin):
    list_display = ("name", "handle", "created_at")
    search_fields = ("name", "handle")


@admin.register(Image)
class ImageAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "src", "created_at")
    search_fields = ("name", "src", "alt")
    filter_horizontal = ("brands",)


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0
    raw_id_fields = ("image",)


class VariantInline(admin.TabularInline):
    model = Variant
    extra = 0
    fields = ("title", "price", "final_price", "enabled", "image")
    raw_id_fields = ("image",)


@admin.register(Product)
class ProductAdmin(BrandScopedAdmin):
    list_display = ("title", "brand", "category", "enabled", "created_at")
    list_filter = ("enabled", "brand", "category")
    search_fields = ("title", "description")
    inlines = [ProductImageInline, VariantInline]

    def thumbnail(self, obj):
        return obj.image_url
    thumbnail.short_description = "Image"


class VariantValueInline(admin.TabularInline):
    model = VariantValue
    extra = 0
    autocomplete_fields = ("option_value",)


@admin.register(Variant)
class VariantAdmin(BrandScopedAdmin):
    brand_field = "product__brand"
    list_display = ("id", "product", "title", "price", "final_price", "enabled")
    list_filter = ("enabled",)
    search_fields = ("title", "product__title")
    inlines = [VariantValueInline]


@admin.register(ProductStatistics)
class ProductStatisticsAdmin(admin.ModelAdmin):
    list_display = ("product", "type", "created_at")
    list_filter = ("type",)
    date_hierarchy = "created_at"
