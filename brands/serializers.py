# brands/serializers.py
from rest_framework import serializers

from common.roles import is_admin

from .models import Address, Brand, BrandRequest, Contact, ShippingMethod


class BrandSerializer(serializers.ModelSerializer):
    products_count = serializers.IntegerField(read_only=True, required=False)
    categories_count = serializers.IntegerField(read_only=True, required=False)
    orders_count = serializers.IntegerField(read_only=True, required=False)
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = Brand
        fields = [
            "id", "name", "description", "is_active",
            "products_count", "categories_count", "orders_count",
            "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_description(self, value):
        return value or ""

    def get_fields(self):
        fields = super().get_fields()
        request = self.context.get("request")
        # only admins switch brands on and off
        if request is not None and not is_admin(request.user):
            fields["is_active"].read_only = True
        return fields


class AddressSerializer(serializers.ModelSerializer):
    class Meta:
        model = Address
        fields = [
            "id", "name", "country", "province", "city",
            "zip_code", "address1", "address2", "created_at", "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class ContactSerializer(serializers.ModelSerializer):
    class Meta:
        model = Contact
        fields = ["id", "type", "value"]


class ContactsSyncSerializer(serializers.Serializer):
    email = serializers.EmailField(max_length=255, required=False, allow_blank=True, allow_null=True)
    phone = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    whatsapp = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    telegram = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    instagram = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    facebook = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)


class ShippingMethodSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShippingMethod
        fields = ["id", "key", "name", "description"]


class ShippingMethodsSyncSerializer(serializers.Serializer):
    shipping_method_ids = serializers.PrimaryKeyRelatedField(
        queryset=ShippingMethod.objects.all(), many=True, allow_empty=True
    )


class BrandRequestSerializer(serializers.ModelSerializer):
    brand = serializers.SerializerMethodField()
    reviewed_by = serializers.SerializerMethodField()

    class Meta:
        model = BrandRequest
        fields = [
            "id", "email", "phone", "name", "brand_name", "status",
            "brand", "user", "rejection_reason", "reviewed_by",
            "approved_at", "rejected_at", "created_at", "updated_at",
        ]
        read_only_fields = [
            "id", "status", "brand", "user", "rejection_reason", "reviewed_by",
            "approved_at", "rejected_at", "created_at", "updated_at",
        ]

    def get_brand(self, obj):
        return {"id": obj.brand_id, "name": obj.brand.name} if obj.brand_id else None

    def get_reviewed_by(self, obj):
        reviewer = obj.reviewed_by
        return {"id": reviewer.pk, "username": reviewer.get_username()} if reviewer else None


class BrandRequestRejectSerializer(serializers.Serializer):
    rejection_reason = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)
