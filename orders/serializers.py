# orders/serializers.py
from rest_framework import serializers

from catalog.models import resolve_image_url

from .models import AuditLog, Order, OrderItem, OrderShipping


class OrderCustomerSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    email = serializers.EmailField()
    phone = serializers.CharField()


class OrderListSerializer(serializers.ModelSerializer):
    customer = OrderCustomerSerializer(read_only=True)
    # annotated, not model fields
    items_count = serializers.IntegerField(read_only=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id", "name", "status", "delivery_status", "financial_status",
            "customer", "items_count", "total", "created_at", "updated_at",
        ]


class OrderItemSerializer(serializers.ModelSerializer):
    image_url = serializers.SerializerMethodField()
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id", "product_id", "variant_id", "title", "variant_title", "description",
            "quantity", "price", "final_price", "line_total", "image_url",
        ]

    def get_image_url(self, obj):
        if obj.image_id is None:
            return None
        return resolve_image_url(obj.image.image.src)


class OrderShippingSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderShipping
        fields = ["id", "name", "phone", "note"]


class AuditLogSerializer(serializers.ModelSerializer):
    user = serializers.SerializerMethodField()

    class Meta:
        model = AuditLog
        fields = ["id", "event", "message", "old_values", "new_values", "user", "created_at"]

    def get_user(self, obj):
        if obj.user_id is None:
            return None
        return {"id": obj.user_id, "username": obj.user.get_username()}


class OrderDetailSerializer(OrderListSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    shippings = OrderShippingSerializer(many=True, read_only=True)
    audits = AuditLogSerializer(many=True, read_only=True)
    status_url = serializers.CharField(read_only=True)

    class Meta(OrderListSerializer.Meta):
        fields = OrderListSerializer.Meta.fields + ["note", "status_url", "items", "shippings", "audits"]


class OrderStatusSerializer(serializers.ModelSerializer):
    """Only the three status fields are writable; each must be one of its choices."""

    class Meta:
        model = Order
        fields = ["status", "delivery_status", "financial_status"]
        extra_kwargs = {
            "status": {"required": False},
            "delivery_status": {"required": False},
            "financial_status": {"required": False},
        }

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Nothing to update.")
        return attrs
