# catalog/serializers.py
from django.db import transaction
from rest_framework import serializers

from catalog.models import (
    Category,
    Collection,
    Image,
    Option,
    OptionValue,
    Product,
    ProductImage,
    Variant,
    VariantValue,
)
from catalog.services import create_variants, sync_variants
from catalog.validators import (
    stored_variants,
    validate_options_belong_to_category,
    validate_single_value_per_option,
    validate_unique_combinations,
    validate_variant_images,
)


# ----------------- Options, categories, collections -----------------

class OptionValueSerializer(serializers.ModelSerializer):
    class Meta:
        model = OptionValue
        fields = ["id", "option", "value", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class OptionValueNestedSerializer(serializers.ModelSerializer):
    class Meta:
        model = OptionValue
        fields = ["id", "value"]


class OptionSerializer(serializers.ModelSerializer):
    values = OptionValueNestedSerializer(many=True, read_only=True)

    class Meta:
        model = Option
        fields = ["id", "name", "title", "description", "values", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class CollectionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Collection
        fields = ["id", "handle", "name", "title", "description", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {"handle": {"required": False}}


class CategorySerializer(serializers.ModelSerializer):
    options = OptionSerializer(many=True, read_only=True)
    option_ids = serializers.PrimaryKeyRelatedField(
        source="options", queryset=Option.objects.all(), many=True, required=False, write_only=True
    )
    collection_ids = serializers.PrimaryKeyRelatedField(
        source="collections", queryset=Collection.objects.all(), many=True, required=False
    )
    products_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Category
        fields = [
            "id", "name", "handle", "title", "description",
            "options", "option_ids", "collection_ids", "products_count",
            "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        extra_kwargs = {"handle": {"required": False}}


# ----------------- Images -----------------

class ImageSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()
    brands = serializers.SerializerMethodField()

    class Meta:
        model = Image
        fields = ["id", "name", "src", "alt", "meta", "url", "brands", "created_at"]
        read_only_fields = ["id", "name", "src", "meta", "url", "brands", "created_at"]

    def get_url(self, obj):
        return obj.url

    def get_brands(self, obj):
        return [{"id": b.id, "name": b.name} for b in obj.brands.all()]


class ProductImageSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()
    alt = serializers.CharField(source="image.alt", read_only=True)

    class Meta:
        model = ProductImage
        fields = ["id", "image", "position", "url", "alt"]
        read_only_fields = ["id", "url", "alt"]

    def get_url(self, obj):
        return obj.image.url


# ----------------- Variants -----------------

class VariantValueSerializer(serializers.ModelSerializer):
    option_name = serializers.CharField(source="option.name", read_only=True)
    value = serializers.CharField(source="option_value.value", read_only=True)

    class Meta:
        model = VariantValue
        fields = ["id", "option_id", "option_value_id", "option_name", "value"]


class VariantSerializer(serializers.ModelSerializer):
    values = VariantValueSerializer(many=True, read_only=True)
    discount = serializers.IntegerField(read_only=True)
    image_id = serializers.PrimaryKeyRelatedField(
        source="image", queryset=ProductImage.objects.all(), required=False, allow_null=True
    )

    class Meta:
        model = Variant
        fields = [
            "id", "product", "title", "price", "final_price", "discount",
            "enabled", "image_id", "values", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "product", "discount", "values", "created_at", "updated_at"]

    def validate(self, attrs):
        image = attrs.get("image")
        if image is not None and self.instance is not None and image.product_id != self.instance.product_id:
            raise serializers.ValidationError({"image_id": "Image does not belong to this product."})
        return attrs


class VariantValueInputSerializer(serializers.Serializer):
    option_id = serializers.IntegerField(min_value=1)
    option_value_id = serializers.IntegerField(min_value=1)


class VariantInputSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False, allow_null=True)
    title = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    final_price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    enabled = serializers.BooleanField()
    image_id = serializers.IntegerField(required=False, allow_null=True)
    image_index = serializers.IntegerField(required=False, allow_null=True, write_only=True)
    values = VariantValueInputSerializer(many=True, required=False, allow_null=True)


# ----------------- Products -----------------

class BrandStubSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()


class CategoryStubSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()


class ProductListSerializer(serializers.ModelSerializer):
    brand = BrandStubSerializer(read_only=True)
    category = CategoryStubSerializer(read_only=True)
    variants_count = serializers.IntegerField(read_only=True)
    images_count = serializers.IntegerField(read_only=True)
    orders_count = serializers.IntegerField(read_only=True)
    min_price = serializers.DecimalField(source="price_min", max_digits=10, decimal_places=2, read_only=True)
    max_price = serializers.DecimalField(source="price_max", max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = Product
        fields = [
            "id", "title", "description", "enabled",
            "brand_id", "category_id", "brand", "category",
            "variants_count", "images_count", "orders_count",
            "min_price", "max_price", "created_at", "updated_at",
        ]


class ProductDetailSerializer(serializers.ModelSerializer):
    brand = BrandStubSerializer(read_only=True)
    category = CategoryStubSerializer(read_only=True)
    variants = VariantSerializer(many=True, read_only=True)
    images = ProductImageSerializer(many=True, read_only=True)
    min_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    max_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    image_url = serializers.CharField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id", "title", "description", "enabled",
            "brand_id", "category_id", "brand", "category",
            "min_price", "max_price", "image_url",
            "variants", "images", "created_at", "updated_at",
        ]


class ProductWriteSerializer(serializers.ModelSerializer):
    """
    Create/update a product together with its variants.
    Create makes every submitted variant; update syncs them (see catalog.services).
    """
    category_id = serializers.PrimaryKeyRelatedField(source="category", queryset=Category.objects.all())
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    enabled = serializers.BooleanField()
    variants = VariantInputSerializer(many=True, allow_empty=False, write_only=True)

    class Meta:
        model = Product
        fields = ["id", "title", "description", "enabled", "category_id", "variants"]
        read_only_fields = ["id"]

    def validate_description(self, value):
        return value or ""

    def validate(self, attrs):
        category = attrs.get("category", getattr(self.instance, "category", None))
        variants = attrs.get("variants")
        if variants is None:
            # partial update without variants: stored ones must fit a new category
            if self.instance is not None and "category" in attrs:
                validate_options_belong_to_category(stored_variants(self.instance), category)
            return attrs
        validate_unique_combinations(variants)
        validate_single_value_per_option(variants)
        validate_options_belong_to_category(variants, category)
        validate_variant_images(variants, self.instance)
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        variants = validated_data.pop("variants")
        product = Product.objects.create(**validated_data)
        create_variants(product, variants)
        return product

    @transaction.atomic
    def update(self, instance, validated_data):
        variants = validated_data.pop("variants", None)
        for name, value in validated_data.items():
            setattr(instance, name, value)
        instance.save()
        if variants is not None:
            sync_variants(instance, variants)
        return instance
